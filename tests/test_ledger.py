"""
Test suite for the Ledger service

Covers startup verification, appends, quarantine and working directory
ownership using the in-memory and plain-file backends.
"""

import pytest

from bryxcoin.balances import BalanceEngine
from bryxcoin.errors import CorruptLedgerFailure, IOFailure, LedgerQuarantined
from bryxcoin.indexer import LogSequenceIndexer
from bryxcoin.ledger import Ledger
from bryxcoin.records import TransactionRecord
from bryxcoin.sync import LocalSyncCoordinator
from bryxcoin.transaction_log import FileTransactionLog, InMemoryTransactionLog


MINT = "mint"


def file_ledger(directory, owns_workdir=False) -> Ledger:
    log = FileTransactionLog(directory)
    ledger = Ledger(
        log=log,
        indexer=LogSequenceIndexer(log),
        sync=LocalSyncCoordinator(),
        engine=BalanceEngine(MINT),
        workdir=directory,
        owns_workdir=owns_workdir
    )
    ledger.start()
    return ledger


class TestInMemoryLedger:
    """Test the ledger with no repository behind it"""
    
    def test_append_assigns_sequence(self):
        ledger = Ledger.in_memory(MINT)
        
        first, _ = ledger.append_transaction(TransactionRecord(MINT, "alice", 10))
        second, _ = ledger.append_transaction(TransactionRecord("alice", "bob", 4))
        
        assert (first, second) == (1, 2)
        assert ledger.balances() == {"alice": 6, "bob": 4}
    
    def test_baseline(self):
        """Sequence continues from a baseline"""
        ledger = Ledger.in_memory(MINT, baseline=41)
        index, _ = ledger.append_transaction(TransactionRecord(MINT, "alice", 1))
        assert index == 42
    
    def test_history(self):
        ledger = Ledger.in_memory(MINT)
        record = TransactionRecord(MINT, "alice", 10)
        ledger.append_transaction(record)
        
        assert ledger.history() == [(1, record)]
    
    def test_corrupt_append_quarantines(self):
        """An append that breaks replay halts the ledger"""
        ledger = Ledger.in_memory(MINT)
        
        with pytest.raises(CorruptLedgerFailure):
            ledger.append_transaction(TransactionRecord("alice", "bob", 10))
        
        assert not ledger.healthy
        with pytest.raises(LedgerQuarantined):
            ledger.history()
    
    def test_start_rejects_gaps(self):
        log = InMemoryTransactionLog()
        log.append(TransactionRecord(MINT, "alice", 1), 1)
        log.append(TransactionRecord(MINT, "alice", 1), 3)
        ledger = Ledger(log, LogSequenceIndexer(log), LocalSyncCoordinator(), BalanceEngine(MINT))
        
        with pytest.raises(CorruptLedgerFailure, match="not contiguous"):
            ledger.start()
    
    def test_mint_address(self):
        assert Ledger.in_memory("0" * 64).mint_address == "0" * 64


class TestFileLedger:
    """Test the ledger over a plain directory"""
    
    def test_replays_existing_files(self, tmp_path):
        """Balances are computed from files present at startup"""
        (tmp_path / "1.tx").write_text("mint-alice | 100")
        (tmp_path / "2.tx").write_text("alice-bob | 40")
        
        ledger = file_ledger(tmp_path)
        
        assert ledger.balances() == {"alice": 60, "bob": 40}
    
    def test_startup_halts_on_corrupt_file(self, tmp_path):
        (tmp_path / "1.tx").write_text("mint-alice | lots")
        with pytest.raises(CorruptLedgerFailure):
            file_ledger(tmp_path)
    
    def test_append_writes_next_file(self, tmp_path):
        (tmp_path / "1.tx").write_text("mint-alice | 100")
        ledger = file_ledger(tmp_path)
        
        ledger.append_transaction(TransactionRecord("alice", "bob", 1))
        
        assert (tmp_path / "2.tx").read_text() == "alice-bob | 1"
    
    def test_close_removes_owned_workdir(self, tmp_path):
        workdir = tmp_path / "ledger"
        workdir.mkdir()
        ledger = file_ledger(workdir, owns_workdir=True)
        
        with ledger:
            ledger.append_transaction(TransactionRecord(MINT, "alice", 1))
        
        assert not workdir.exists()
        with pytest.raises(IOFailure, match="closed"):
            ledger.balances()
    
    def test_close_keeps_unowned_workdir(self, tmp_path):
        ledger = file_ledger(tmp_path)
        ledger.close()
        ledger.close()
        
        assert tmp_path.exists()
        assert not ledger.healthy
