"""
Ledger Service Module

The Ledger owns the working directory, the repository handle, the transaction
log and the current balance snapshot, all behind one exclusive lock. Every
mutation runs pull -> next index -> append -> commit -> recompute -> push
while holding that lock, network round trips included.

Any failure inside that sequence is fatal: the instance is quarantined and
refuses further requests until the process is restarted.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union
import logging
import shutil
import threading

from .balances import BalanceEngine
from .errors import IOFailure, LedgerError, LedgerQuarantined, SyncFailure
from .git import GitCommandError, GitRepository, ssh_environment
from .indexer import CommitIndexer, LogSequenceIndexer, SequenceIndexer
from .logging_config import log_action
from .records import TransactionRecord
from .sync import GitSyncCoordinator, LocalSyncCoordinator, SyncCoordinator
from .transaction_log import (
    FileTransactionLog, InMemoryTransactionLog, TransactionLog, check_contiguous
)


logger = logging.getLogger(__name__)


class Ledger:
    """
    Single-writer transfer ledger service

    Handed to request handlers by reference; tests build isolated instances
    with in_memory() or against temporary repositories with open().
    """

    def __init__(
        self,
        log: TransactionLog,
        indexer: SequenceIndexer,
        sync: SyncCoordinator,
        engine: BalanceEngine,
        workdir: Optional[Path] = None,
        owns_workdir: bool = False
    ):
        self.log = log
        self.indexer = indexer
        self.sync = sync
        self.engine = engine
        self.workdir = workdir
        self.owns_workdir = owns_workdir
        self._lock = threading.RLock()
        self._fatal_error: Optional[BaseException] = None
        self._closed = False

    @classmethod
    def open(
        cls,
        remote_url: str,
        workdir: Union[str, Path],
        mint_address: str,
        public_key: Optional[str] = None,
        private_key: Optional[str] = None,
        remote: str = "origin",
        branch: str = "master",
        committer_name: str = "Bryxcoin Committer",
        committer_email: str = "ledger@bryxcoin.org",
        timeout: Optional[float] = None
    ) -> 'Ledger':
        """
        Clone the remote ledger repository into a fresh working directory.

        Args:
            remote_url: URL of the remote repository
            workdir: Directory to clone into; must be absent or empty
            mint_address: Address exempt from the overdraft check
            public_key: Path to the SSH public key
            private_key: Path to the SSH private key
            remote: Remote name used for pull/push
            branch: Branch holding the ledger
            committer_name: Identity recorded on ledger commits
            committer_email: Identity recorded on ledger commits
            timeout: Per git command timeout in seconds

        Returns:
            Started Ledger with balances computed

        Raises:
            IOFailure: If workdir already holds files
            SyncFailure: If the clone fails
            CorruptLedgerFailure: If the cloned history does not replay
        """
        workdir = Path(workdir).resolve()
        if workdir.exists() and any(workdir.iterdir()):
            raise IOFailure("Ledger working directory is not empty", {"path": str(workdir)})

        env = ssh_environment(public_key, private_key)
        try:
            repo = GitRepository.clone(remote_url, workdir, env=env, timeout=timeout, branch=branch)
        except GitCommandError as e:
            raise SyncFailure(f"Failed to clone ledger repository: {e.stderr.strip()}",
                              {"remote": remote_url}) from e

        ledger = cls(
            log=FileTransactionLog(workdir),
            indexer=CommitIndexer(repo, committer_name, committer_email),
            sync=GitSyncCoordinator(repo, remote=remote, branch=branch),
            engine=BalanceEngine(mint_address),
            workdir=workdir,
            owns_workdir=True
        )

        try:
            ledger.start()
        except LedgerError:
            ledger.close()
            raise

        return ledger

    @classmethod
    def from_config(cls, config, base_dir: Optional[Path] = None) -> 'Ledger':
        """Open the ledger described by a BryxcoinConfig"""
        workdir = Path(config.ledger_dir)
        if not workdir.is_absolute():
            workdir = (base_dir or Path.cwd()) / workdir

        return cls.open(
            remote_url=config.ledger_repo,
            workdir=workdir,
            mint_address=config.mint_address,
            public_key=config.public_key,
            private_key=config.private_key,
            remote=config.remote_name,
            branch=config.branch,
            committer_name=config.committer_name,
            committer_email=config.committer_email,
            timeout=config.git_timeout_seconds
        )

    @classmethod
    def in_memory(cls, mint_address: str, baseline: int = 0) -> 'Ledger':
        """Ledger with no repository or remote behind it"""
        log = InMemoryTransactionLog()
        ledger = cls(
            log=log,
            indexer=LogSequenceIndexer(log, baseline=baseline),
            sync=LocalSyncCoordinator(),
            engine=BalanceEngine(mint_address)
        )
        ledger.start()
        return ledger

    @property
    def mint_address(self) -> str:
        return self.engine.mint_address

    @property
    def fatal_error(self) -> Optional[BaseException]:
        return self._fatal_error

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def healthy(self) -> bool:
        return self._fatal_error is None and not self._closed

    def start(self) -> None:
        """Verify the sequence and compute the initial balances"""
        with self._lock:
            check_contiguous(self.log.indices())
            balances = self.engine.recompute(self.log)

            log_action(logger, "info", f"Ledger loaded with {self.engine.replayed_count} entries",
                       action="start", extra={"addresses": len(balances)})
            for address, balance in sorted(balances.items()):
                log_action(logger, "info", f"{address}: {balance} bxcn",
                           action="balance", address=address)

    @contextmanager
    def locked(self) -> Iterator['Ledger']:
        """Hold the ledger lock; raises if the ledger is quarantined or closed"""
        with self._lock:
            self._ensure_usable()
            yield self

    def _ensure_usable(self) -> None:
        if self._fatal_error is not None:
            raise LedgerQuarantined(self._fatal_error)
        if self._closed:
            raise IOFailure("Ledger is closed")

    def _quarantine(self, error: BaseException) -> None:
        self._fatal_error = error
        log_action(logger, "critical", f"Ledger quarantined: {error}",
                   action="quarantine", extra={"error_type": type(error).__name__})

    def append_transaction(self, record: TransactionRecord) -> Tuple[int, TransactionRecord]:
        """
        Append a record and publish it.

        Callers are expected to have validated the transfer; this only
        enforces ordering and durability.

        Args:
            record: Record to append

        Returns:
            (sequence index, record)

        Raises:
            LedgerQuarantined: If an earlier fatal error stopped the ledger
            SyncFailure, IOFailure, CorruptLedgerFailure: Fatal; the ledger
                is quarantined before the error propagates
        """
        with self.locked():
            try:
                self.sync.pull()
                index = self.indexer.next_index()
                self.log.append(record, index)
                self.indexer.commit_entry(self.log.path_for(index), index)
                self.engine.recompute(self.log)
                self.sync.push()
            except Exception as e:
                self._quarantine(e)
                raise

            log_action(logger, "info", f"Appended transaction {record.encode()}",
                       action="append", address=record.from_addr, sequence_index=index,
                       extra=record.to_dict())
            return index, record

    def get_balance(self, address: str) -> int:
        with self.locked():
            return self.engine.get_balance(address)

    def balances(self) -> Dict[str, int]:
        """Copy of the full balance map"""
        with self.locked():
            return self.engine.snapshot()

    def history(self) -> List[Tuple[int, TransactionRecord]]:
        """All entries in sequence order"""
        with self.locked():
            return list(self.log.read_indexed())

    def close(self) -> None:
        """Remove the working directory if this ledger created it"""
        with self._lock:
            if self._closed:
                return
            self._closed = True

            if self.owns_workdir and self.workdir is not None and self.workdir.exists():
                try:
                    shutil.rmtree(self.workdir)
                except OSError as e:
                    raise IOFailure(f"Failed to remove ledger working directory: {e}",
                                    {"path": str(self.workdir)}) from e
                log_action(logger, "info", f"Removed working directory {self.workdir}",
                           action="close")

    def __enter__(self) -> 'Ledger':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
