"""
Ledger Exception Hierarchy

All exceptions inherit from LedgerError. ValidationFailure is the only kind
recovered at the admission boundary; every other kind is fatal for the
Ledger instance that raised it.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors"""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationFailure(LedgerError):
    """Raised when a proposed transfer is rejected; no state was mutated"""
    
    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(reason, details)
        self.reason = reason


class CorruptLedgerFailure(LedgerError):
    """Raised when the durable log or commit history is inconsistent"""
    pass


class ParseFailure(CorruptLedgerFailure):
    """Raised when a record file cannot be decoded"""
    pass


class SyncFailure(LedgerError):
    """Raised when a pull or push against the remote fails"""
    pass


class IOFailure(LedgerError):
    """Raised on local disk read/write errors"""
    pass


class LedgerQuarantined(LedgerError):
    """Raised for every request after a fatal error stopped the ledger"""
    
    def __init__(self, cause: BaseException):
        super().__init__(f"ledger quarantined after fatal error: {cause}")
        self.cause = cause
