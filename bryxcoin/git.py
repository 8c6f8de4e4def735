"""
Git Repository Module

Thin wrapper over the git command line. Every operation runs `git` in the
working copy and returns its trimmed stdout; non-zero exits raise
GitCommandError carrying git's stderr so callers can map it onto the ledger
error taxonomy.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union
import logging
import os
import shlex
import subprocess

from .errors import LedgerError, SyncFailure


logger = logging.getLogger(__name__)


class GitCommandError(LedgerError):
    """Raised when a git invocation fails or cannot be started"""
    
    def __init__(self, args: List[str], returncode: Optional[int], stderr: str):
        super().__init__(f"git {' '.join(args)} failed: {stderr.strip() or 'no output'}",
                         {"returncode": returncode})
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


def ssh_environment(public_key: Optional[str], private_key: Optional[str]) -> Dict[str, str]:
    """
    Build the environment that makes git authenticate with a key pair.
    
    Args:
        public_key: Path to the public key file
        private_key: Path to the private key file
        
    Returns:
        Environment overrides; empty when no private key is configured
        
    Raises:
        SyncFailure: If a configured key file does not exist
    """
    if not private_key:
        return {}
    
    for label, key_path in (("public", public_key), ("private", private_key)):
        if key_path and not Path(key_path).is_file():
            raise SyncFailure(f"Configured {label} key not found", {"path": key_path})
    
    command = f"ssh -i {shlex.quote(private_key)} -o IdentitiesOnly=yes -o BatchMode=yes"
    return {"GIT_SSH_COMMAND": command}


def _run_git(args: List[str], cwd: Optional[Path], env: Dict[str, str],
             timeout: Optional[float]) -> str:
    full_env = dict(os.environ)
    full_env["GIT_TERMINAL_PROMPT"] = "0"
    full_env.update(env)
    
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            env=full_env,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(args, None, f"timed out after {timeout}s") from e
    except (FileNotFoundError, subprocess.SubprocessError) as e:
        raise GitCommandError(args, None, str(e)) from e
    
    if result.returncode != 0:
        raise GitCommandError(args, result.returncode, result.stderr)
    
    return result.stdout.strip()


class GitRepository:
    """A local git working copy driven through the git command line"""
    
    def __init__(self, path: Union[str, Path], env: Optional[Dict[str, str]] = None,
                 timeout: Optional[float] = None):
        self.path = Path(path)
        self.env = dict(env or {})
        self.timeout = timeout
    
    @classmethod
    def clone(cls, url: str, path: Union[str, Path], env: Optional[Dict[str, str]] = None,
              timeout: Optional[float] = None, branch: Optional[str] = None) -> 'GitRepository':
        """Clone a remote repository into path and return the working copy"""
        args = ["clone"]
        if branch:
            args += ["--branch", branch]
        args += [url, str(path)]
        
        _run_git(args, None, dict(env or {}), timeout)
        logger.info(f"Cloned {url} into {path}")
        return cls(path, env=env, timeout=timeout)
    
    def run(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        """Run a git subcommand in the working copy"""
        merged = dict(self.env)
        if env:
            merged.update(env)
        return _run_git(list(args), self.path, merged, self.timeout)
    
    def head_commit(self) -> Optional[str]:
        """
        Object id of the commit HEAD resolves to, or None for an unborn branch.
        
        Raises:
            GitCommandError: If git fails for any other reason (not a
                repository, timeout, missing binary)
        """
        try:
            return self.run("rev-parse", "--verify", "--quiet", "HEAD^{commit}")
        except GitCommandError as e:
            # --verify --quiet exits 1 with no output when HEAD does not resolve
            if e.returncode == 1 and not e.stderr.strip():
                return None
            raise
    
    def commit_message(self, commit: str) -> str:
        """Raw message of a commit"""
        return self.run("log", "-1", "--format=%B", commit)
    
    def add(self, path: Union[str, Path]) -> None:
        self.run("add", "--", str(path))
    
    def write_tree(self) -> str:
        return self.run("write-tree")
    
    def commit_tree(self, tree: str, message: str, parents: List[str],
                    name: str, email: str) -> str:
        """Create a commit object with a fixed identity and return its id"""
        identity = {
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
        }
        args = ["commit-tree", tree, "-m", message]
        for parent in parents:
            args += ["-p", parent]
        return self.run(*args, env=identity)
    
    def update_head(self, commit: str, previous: Optional[str]) -> None:
        """Move HEAD (and the branch it points at) to commit"""
        args = ["update-ref", "HEAD", commit]
        if previous:
            args.append(previous)
        self.run(*args)
    
    def fetch(self, remote: str, branch: str) -> None:
        self.run("fetch", remote, branch)
    
    def fast_forward(self, ref: str) -> None:
        self.run("merge", "--ff-only", ref)
    
    def push(self, remote: str, refspec: str) -> None:
        self.run("push", remote, refspec)
