"""
Sequence Indexer Module

Derives the next sequence index and records new entries. CommitIndexer keeps
the counter in git history: the message of the commit introducing a record
IS that record's index, so next_index = int(last commit message) + 1.
LogSequenceIndexer derives the same value from the log itself for ledgers
that have no repository behind them.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
import logging

from .errors import CorruptLedgerFailure, IOFailure
from .git import GitCommandError, GitRepository
from .records import AMOUNT_PATTERN
from .transaction_log import TransactionLog


logger = logging.getLogger(__name__)


class SequenceIndexer(ABC):
    """Abstract interface for sequence index allocation"""
    
    @abstractmethod
    def next_index(self) -> int:
        """Index the next appended record must carry"""
        pass
    
    @abstractmethod
    def commit_entry(self, path: Union[str, Path], index: int) -> None:
        """Durably record that the entry at path carries index"""
        pass


class CommitIndexer(SequenceIndexer):
    """
    Sequence indexer backed by git commit history
    
    There is no counter file: the decimal text of each commit message is the
    only persisted form of the sequence.
    """
    
    def __init__(self, repo: GitRepository, committer_name: str, committer_email: str):
        self.repo = repo
        self.committer_name = committer_name
        self.committer_email = committer_email
    
    def _head(self) -> Optional[str]:
        try:
            return self.repo.head_commit()
        except GitCommandError as e:
            raise IOFailure(f"Cannot resolve ledger HEAD: {e}",
                            {"path": str(self.repo.path)}) from e
    
    def last_index(self) -> int:
        """
        Parse the sequence index recorded by the latest commit.
        
        Raises:
            CorruptLedgerFailure: If there are no commits or the message is
                not a pure non-negative integer
            IOFailure: If git cannot read the repository at all
        """
        head = self._head()
        if head is None:
            raise CorruptLedgerFailure("Ledger repository has no commits")
        
        try:
            message = self.repo.commit_message(head).strip()
        except GitCommandError as e:
            raise CorruptLedgerFailure(f"Cannot read last commit: {e}") from e
        
        if not AMOUNT_PATTERN.fullmatch(message):
            raise CorruptLedgerFailure("Last commit message is not a sequence index",
                                       {"commit": head, "message": message})
        
        return int(message)
    
    def next_index(self) -> int:
        return self.last_index() + 1
    
    def commit_entry(self, path: Union[str, Path], index: int) -> None:
        """
        Stage a record file and commit it with the index as message.
        
        Args:
            path: Record file, absolute or relative to the working copy
            index: Sequence index; becomes the commit message
            
        Raises:
            CorruptLedgerFailure: If the repository has no commits
            IOFailure: If HEAD cannot be read, or staging or writing the
                commit fails
        """
        parent = self._head()
        if parent is None:
            raise CorruptLedgerFailure("Ledger repository has no commits")
        
        relative = Path(path)
        if relative.is_absolute():
            relative = relative.resolve().relative_to(self.repo.path.resolve())
        
        try:
            self.repo.add(relative)
            tree = self.repo.write_tree()
            commit = self.repo.commit_tree(
                tree, str(index), [parent], self.committer_name, self.committer_email
            )
            self.repo.update_head(commit, parent)
        except GitCommandError as e:
            raise IOFailure(f"Failed to commit ledger entry: {e}",
                            {"index": index, "path": str(relative)}) from e
        
        logger.info(f"Committed {relative} as {commit[:12]}")


class LogSequenceIndexer(SequenceIndexer):
    """Sequence indexer that reads the highest index straight from the log"""
    
    def __init__(self, log: TransactionLog, baseline: int = 0):
        self.log = log
        self.baseline = baseline
    
    def next_index(self) -> int:
        return max(self.log.last_index(), self.baseline) + 1
    
    def commit_entry(self, path: Union[str, Path], index: int) -> None:
        # The log write itself is the durable record
        pass
