"""
Transaction Admission Module

The contract the request boundary uses to submit a transfer. Recipient,
sender, secret and funds are checked in that order; only when all pass is the
transfer handed to the Ledger for pull, append, commit, recompute and push.
"""

import logging

from .directory import AccountDirectory
from .errors import ValidationFailure
from .ledger import Ledger
from .logging_config import log_action
from .records import MAX_AMOUNT, TransactionRecord


logger = logging.getLogger(__name__)

UNKNOWN_RECIPIENT = "unknown recipient"
UNKNOWN_SENDER = "unknown sender"
INVALID_SECRET = "invalid secret"
INSUFFICIENT_FUNDS = "insufficient funds"
INVALID_AMOUNT = "invalid amount"


class TransactionAdmission:
    """Validates proposed transfers and commits the accepted ones"""

    def __init__(self, ledger: Ledger, directory: AccountDirectory):
        self.ledger = ledger
        self.directory = directory

    def _reject(self, reason: str, from_addr: str, to_addr: str, amount: int):
        log_action(logger, "warning", f"Rejected transfer: {reason}",
                   action="reject", address=from_addr,
                   extra={"to_addr": to_addr, "amount": amount, "reason": reason})
        return ValidationFailure(reason, {"from_addr": from_addr, "to_addr": to_addr})

    def submit(self, from_addr: str, to_addr: str, amount: int, secret: str) -> TransactionRecord:
        """
        Admit a transfer and return the committed record.

        Args:
            from_addr: Sender address
            to_addr: Recipient address
            amount: Integer amount in 0..MAX_AMOUNT
            secret: Sender's credential

        Returns:
            The committed TransactionRecord

        Raises:
            ValidationFailure: If the transfer is rejected; nothing is written
            LedgerError: Any other kind is fatal for the ledger
        """
        # Directory lookups do not need the ledger lock
        recipient = self.directory.lookup_by_address(to_addr)
        if recipient is None:
            raise self._reject(UNKNOWN_RECIPIENT, from_addr, to_addr, amount)

        sender = self.directory.lookup_by_address(from_addr)
        if sender is None:
            raise self._reject(UNKNOWN_SENDER, from_addr, to_addr, amount)

        if not sender.check_credential(secret):
            raise self._reject(INVALID_SECRET, from_addr, to_addr, amount)

        # Zero is a valid amount
        if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= MAX_AMOUNT:
            raise self._reject(INVALID_AMOUNT, from_addr, to_addr, amount)

        record = TransactionRecord(from_addr=from_addr, to_addr=to_addr, amount=amount)

        # Funds check and append share one lock acquisition
        with self.ledger.locked():
            if from_addr != self.ledger.mint_address:
                if self.ledger.get_balance(from_addr) < amount:
                    raise self._reject(INSUFFICIENT_FUNDS, from_addr, to_addr, amount)

            _, committed = self.ledger.append_transaction(record)

        return committed
