"""
Remote Synchronization Module

Pulls from and pushes to the remote copy of the ledger repository. A pull
must succeed before the next sequence index is trusted; a rejected push is
the only conflict detection there is, concurrent writers are not reconciled.
"""

from abc import ABC, abstractmethod
import logging

from .errors import SyncFailure
from .git import GitCommandError, GitRepository
from .logging_config import log_action


logger = logging.getLogger(__name__)


class SyncCoordinator(ABC):
    """Abstract interface for remote synchronization"""

    @abstractmethod
    def pull(self) -> None:
        """Bring the local copy up to date with the remote"""
        pass

    @abstractmethod
    def push(self) -> None:
        """Publish local commits to the remote"""
        pass


class GitSyncCoordinator(SyncCoordinator):
    """Synchronizes a git working copy with one remote branch"""

    def __init__(self, repo: GitRepository, remote: str = "origin", branch: str = "master"):
        self.repo = repo
        self.remote = remote
        self.branch = branch

    def pull(self) -> None:
        """
        Fetch the remote branch and fast-forward the local branch onto it.

        Raises:
            SyncFailure: On network or authentication errors, or when local
                history has diverged from the remote
        """
        try:
            self.repo.fetch(self.remote, self.branch)
            self.repo.fast_forward("FETCH_HEAD")
        except GitCommandError as e:
            log_action(logger, "error", f"Pull from {self.remote}/{self.branch} failed",
                       action="pull", extra={"stderr": e.stderr.strip()})
            raise SyncFailure(f"Failed to pull from {self.remote}/{self.branch}: {e.stderr.strip()}",
                              {"returncode": e.returncode}) from e

        log_action(logger, "debug", f"Pulled {self.remote}/{self.branch}", action="pull")

    def push(self) -> None:
        """
        Push the local branch to the same branch on the remote.

        Raises:
            SyncFailure: On network or authentication errors, or when the
                remote rejects a non-fast-forward update
        """
        refspec = f"refs/heads/{self.branch}:refs/heads/{self.branch}"
        try:
            self.repo.push(self.remote, refspec)
        except GitCommandError as e:
            log_action(logger, "error", f"Push to {self.remote}/{self.branch} failed",
                       action="push", extra={"stderr": e.stderr.strip()})
            raise SyncFailure(f"Failed to push to {self.remote}/{self.branch}: {e.stderr.strip()}",
                              {"returncode": e.returncode}) from e

        log_action(logger, "debug", f"Pushed {self.remote}/{self.branch}", action="push")


class LocalSyncCoordinator(SyncCoordinator):
    """Coordinator for ledgers without a remote; both directions are no-ops"""

    def __init__(self):
        self.pulls = 0
        self.pushes = 0

    def pull(self) -> None:
        self.pulls += 1

    def push(self) -> None:
        self.pushes += 1
