"""
Transaction Log Module

Durable, append-only store of transaction records. The abstract interface is
what the Ledger depends on; FileTransactionLog keeps one "<index>.tx" file per
record in a working directory (the git working copy in deployment), and
InMemoryTransactionLog serves tests and local experiments.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Tuple, Union
import logging
import re
import threading

from .errors import CorruptLedgerFailure, IOFailure
from .records import TransactionRecord


logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".tx"
RECORD_NAME_PATTERN = re.compile(r'(0|[1-9][0-9]*)\.tx')


def record_name(index: int) -> str:
    """File name holding the record with the given sequence index"""
    return f"{index}{RECORD_SUFFIX}"


def check_contiguous(indices: Iterable[int]) -> None:
    """
    Verify that sorted sequence indices form an unbroken ascending run.
    
    The run may start at any baseline; gaps and duplicates are corruption.
    
    Raises:
        CorruptLedgerFailure: On the first gap or duplicate found
    """
    previous = None
    for index in indices:
        if previous is not None and index != previous + 1:
            raise CorruptLedgerFailure("Sequence indices are not contiguous",
                                       {"previous": previous, "next": index})
        previous = index


class TransactionLog(ABC):
    """Abstract interface for the durable ordered transaction log"""
    
    @abstractmethod
    def append(self, record: TransactionRecord, index: int) -> int:
        """Persist a record under the given sequence index and return the index"""
        pass
    
    @abstractmethod
    def indices(self) -> List[int]:
        """All sequence indices present, in ascending numeric order"""
        pass
    
    @abstractmethod
    def read_indexed(self) -> Iterator[Tuple[int, TransactionRecord]]:
        """Lazily yield (index, record) pairs in ascending index order"""
        pass
    
    def read_ordered(self) -> Iterator[TransactionRecord]:
        """Lazily yield records in ascending sequence order"""
        for _, record in self.read_indexed():
            yield record
    
    def path_for(self, index: int) -> Path:
        """Location of the record for an index"""
        return Path(record_name(index))

    def last_index(self) -> int:
        """Highest sequence index present, or 0 for an empty log"""
        indices = self.indices()
        return indices[-1] if indices else 0
    
    def __len__(self) -> int:
        return len(self.indices())


class FileTransactionLog(TransactionLog):
    """Transaction log kept as one "<index>.tx" file per record in a directory"""
    
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
    
    def path_for(self, index: int) -> Path:
        """Absolute path of the record file for an index"""
        return self.directory / record_name(index)
    
    def append(self, record: TransactionRecord, index: int) -> int:
        """
        Write the canonical encoding of a record to "<index>.tx".
        
        Args:
            record: Record to persist
            index: Sequence index assigned by the indexer
            
        Returns:
            The sequence index written
            
        Raises:
            CorruptLedgerFailure: If a record with this index already exists
            IOFailure: If the file cannot be written
        """
        path = self.path_for(index)
        try:
            # "x" never overwrites: an existing file means history and tree disagree
            with open(path, "x", encoding="utf-8") as f:
                f.write(record.encode())
        except FileExistsError as e:
            raise CorruptLedgerFailure("Record file already exists",
                                       {"path": str(path)}) from e
        except OSError as e:
            raise IOFailure(f"Cannot write record file: {e}", {"path": str(path)}) from e
        
        logger.debug(f"Wrote {path.name}: {record.encode()}")
        return index
    
    def indices(self) -> List[int]:
        """Scan the directory for record files and sort them numerically"""
        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            raise IOFailure(f"Cannot list ledger directory: {e}",
                            {"directory": str(self.directory)}) from e
        
        indices = []
        for entry in entries:
            if entry.is_dir() or entry.suffix != RECORD_SUFFIX:
                continue
            match = RECORD_NAME_PATTERN.fullmatch(entry.name)
            if not match:
                raise CorruptLedgerFailure("Unexpected record file name",
                                           {"path": str(entry)})
            indices.append(int(match.group(1)))
        
        return sorted(indices)
    
    def read_indexed(self) -> Iterator[Tuple[int, TransactionRecord]]:
        for index in self.indices():
            path = self.path_for(index)
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise IOFailure(f"Cannot read record file: {e}", {"path": str(path)}) from e
            
            try:
                record = TransactionRecord.parse(text)
            except CorruptLedgerFailure as e:
                e.details.setdefault("path", str(path))
                raise
            
            yield index, record


class InMemoryTransactionLog(TransactionLog):
    """In-memory transaction log for testing"""
    
    def __init__(self):
        self._entries: Dict[int, str] = {}
        self._lock = threading.RLock()
    
    def append(self, record: TransactionRecord, index: int) -> int:
        with self._lock:
            if index in self._entries:
                raise CorruptLedgerFailure("Record already exists", {"index": index})
            # Stored encoded so reads go through the same decoder as files
            self._entries[index] = record.encode()
            return index
    
    def indices(self) -> List[int]:
        with self._lock:
            return sorted(self._entries)
    
    def read_indexed(self) -> Iterator[Tuple[int, TransactionRecord]]:
        with self._lock:
            snapshot = sorted(self._entries.items())
        for index, text in snapshot:
            yield index, TransactionRecord.parse(text)
    
    def put_raw(self, index: int, text: str) -> None:
        """Store raw record text, bypassing encoding (for corruption tests)"""
        with self._lock:
            self._entries[index] = text
