"""
Test suite for the balance engine

Validates replay determinism, conservation of supply, non-negative balances,
the mint exemption and halting on corrupt history.
"""

import random

import pytest

from bryxcoin.balances import BalanceEngine
from bryxcoin.errors import CorruptLedgerFailure
from bryxcoin.records import TransactionRecord
from bryxcoin.transaction_log import InMemoryTransactionLog


MINT = "mint"


def build_log(*transfers):
    log = InMemoryTransactionLog()
    for index, (from_addr, to_addr, amount) in enumerate(transfers, start=1):
        log.append(TransactionRecord(from_addr=from_addr, to_addr=to_addr, amount=amount), index)
    return log


def random_valid_transfers(seed: int, count: int):
    """Random history that only ever spends funds an address holds"""
    rng = random.Random(seed)
    addresses = [f"user{i}" for i in range(6)]
    balances = {}
    transfers = []
    
    for _ in range(count):
        funded = [a for a in addresses if balances.get(a, 0) > 0]
        if not funded or rng.random() < 0.3:
            to_addr = rng.choice(addresses)
            amount = rng.randint(1, 100)
            transfers.append((MINT, to_addr, amount))
            balances[to_addr] = balances.get(to_addr, 0) + amount
        else:
            from_addr = rng.choice(funded)
            to_addr = rng.choice(addresses)
            amount = rng.randint(1, balances[from_addr])
            transfers.append((from_addr, to_addr, amount))
            balances[from_addr] -= amount
            balances[to_addr] = balances.get(to_addr, 0) + amount
    
    return transfers


class TestBalanceEngine:
    """Test balance replay"""
    
    def setup_method(self):
        self.engine = BalanceEngine(MINT)
    
    def test_empty_log(self):
        assert self.engine.recompute(InMemoryTransactionLog()) == {}
        assert self.engine.get_balance("anyone") == 0
    
    def test_simple_replay(self):
        """Test mint issue followed by a transfer"""
        log = build_log((MINT, "alice", 100), ("alice", "bob", 30))
        
        balances = self.engine.recompute(log)
        
        assert balances == {"alice": 70, "bob": 30}
        assert self.engine.get_balance("alice") == 70
        assert self.engine.get_balance("bob") == 30
        assert self.engine.get_balance("carol") == 0
        assert self.engine.replayed_count == 2
    
    def test_mint_exemption(self):
        """The mint can send regardless of its own tracked balance"""
        log = build_log((MINT, "alice", 1000))
        
        self.engine.recompute(log)
        
        assert self.engine.get_balance("alice") == 1000
        assert self.engine.get_balance(MINT) == 0
    
    def test_mint_can_receive(self):
        log = build_log((MINT, "alice", 10), ("alice", MINT, 4))
        assert self.engine.recompute(log) == {"alice": 6, MINT: 4}
    
    def test_exact_balance_spend(self):
        log = build_log((MINT, "alice", 10), ("alice", "bob", 10))
        assert self.engine.recompute(log) == {"alice": 0, "bob": 10}
    
    def test_overdraft_halts_replay(self):
        """An overdraft found during replay is corruption"""
        log = build_log((MINT, "alice", 5), ("alice", "bob", 10))
        
        with pytest.raises(CorruptLedgerFailure, match="overdraws") as exc_info:
            self.engine.recompute(log)
        
        assert exc_info.value.details["index"] == 2
        assert exc_info.value.details["balance"] == 5
    
    def test_unfunded_sender_halts_replay(self):
        log = build_log(("alice", "bob", 1))
        with pytest.raises(CorruptLedgerFailure):
            self.engine.recompute(log)
    
    def test_self_transfer_checked_before_credit(self):
        """A self-transfer cannot fund itself"""
        log = build_log((MINT, "alice", 5), ("alice", "alice", 8))
        with pytest.raises(CorruptLedgerFailure):
            self.engine.recompute(log)
    
    def test_self_transfer_is_net_zero(self):
        log = build_log((MINT, "alice", 5), ("alice", "alice", 5))
        assert self.engine.recompute(log) == {"alice": 5}
    
    def test_failed_replay_keeps_previous_balances(self):
        good = build_log((MINT, "alice", 5))
        self.engine.recompute(good)
        
        good.put_raw(2, "alice-bob | 50")
        with pytest.raises(CorruptLedgerFailure):
            self.engine.recompute(good)
        
        assert self.engine.get_balance("alice") == 5
    
    def test_recompute_is_full_not_incremental(self):
        """Balances are rebuilt from scratch on every call"""
        log = build_log((MINT, "alice", 5))
        self.engine.recompute(log)
        self.engine.recompute(log)
        
        assert self.engine.get_balance("alice") == 5
    
    def test_snapshot_is_a_copy(self):
        self.engine.recompute(build_log((MINT, "alice", 5)))
        snapshot = self.engine.snapshot()
        snapshot["alice"] = 1000
        
        assert self.engine.get_balance("alice") == 5


class TestReplayProperties:
    """Property checks over randomly generated valid histories"""
    
    @pytest.mark.parametrize("seed", range(5))
    def test_determinism(self, seed):
        """Identical histories replay to identical balances"""
        transfers = random_valid_transfers(seed, 60)
        
        first = BalanceEngine(MINT).recompute(build_log(*transfers))
        second = BalanceEngine(MINT).recompute(build_log(*transfers))
        
        assert first == second
    
    @pytest.mark.parametrize("seed", range(5))
    def test_conservation(self, seed):
        """Total balances equal everything ever issued by the mint"""
        transfers = random_valid_transfers(seed, 60)
        minted = sum(amount for from_addr, _, amount in transfers if from_addr == MINT)
        
        engine = BalanceEngine(MINT)
        balances = engine.recompute(build_log(*transfers))
        
        assert sum(balances.values()) == minted
        assert engine.circulating_supply() == minted
    
    @pytest.mark.parametrize("seed", range(5))
    def test_non_negativity(self, seed):
        """No prefix of a valid history leaves a negative balance"""
        transfers = random_valid_transfers(seed, 40)
        
        for length in range(1, len(transfers) + 1):
            balances = BalanceEngine(MINT).recompute(build_log(*transfers[:length]))
            assert all(balance >= 0 for balance in balances.values())
