"""
Balance Engine Module

Balances are derived from the transaction log, never stored separately: every
recompute replays the full ordered history from an empty map. The mint address
is the only source of new supply and is exempt from the overdraft check.
"""

from typing import Dict
import logging

from .errors import CorruptLedgerFailure
from .transaction_log import TransactionLog


logger = logging.getLogger(__name__)


class BalanceEngine:
    """
    Replays the transaction log into an address -> balance mapping

    A replayed entry that overdraws a non-mint sender means the log holds a
    transfer admission would never have accepted, so replay halts instead of
    repairing it.
    """

    def __init__(self, mint_address: str):
        self.mint_address = mint_address
        self._balances: Dict[str, int] = {}
        self.replayed_count = 0

    def recompute(self, log: TransactionLog) -> Dict[str, int]:
        """
        Rebuild all balances from the complete ordered log.

        Args:
            log: Transaction log to replay

        Returns:
            Copy of the new balance map

        Raises:
            CorruptLedgerFailure: If an entry overdraws its sender or cannot
                be parsed; the previous balances are left in place
        """
        balances: Dict[str, int] = {}
        count = 0

        for index, record in log.read_indexed():
            # Debit before credit so a self-transfer is checked against the
            # balance held before the record
            if record.from_addr != self.mint_address:
                sender_balance = balances.get(record.from_addr, 0)
                if sender_balance < record.amount:
                    raise CorruptLedgerFailure(
                        "Replay overdraws sender",
                        {
                            "index": index,
                            "address": record.from_addr,
                            "balance": sender_balance,
                            "amount": record.amount
                        }
                    )
                balances[record.from_addr] = sender_balance - record.amount

            balances[record.to_addr] = balances.get(record.to_addr, 0) + record.amount
            count += 1

        self._balances = balances
        self.replayed_count = count
        logger.debug(f"Replayed {count} entries into {len(balances)} balances")
        return dict(balances)

    def get_balance(self, address: str) -> int:
        """Tracked balance of an address, 0 if never seen"""
        return self._balances.get(address, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of the current balance map"""
        return dict(self._balances)

    def circulating_supply(self) -> int:
        """Sum of all balances held outside the mint address"""
        return sum(
            balance for address, balance in self._balances.items()
            if address != self.mint_address
        )
