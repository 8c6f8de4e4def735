"""
Transaction Record Module

Immutable value representing one transfer, with its canonical text encoding
"<from>-<to> | <amount>". One record is stored per file; the sequence index
lives in the file name and in commit history, never in the record body.
"""

from dataclasses import dataclass
from typing import Any, Dict
import re

from .errors import ParseFailure


# Unsigned 32-bit amount, matching the width of the deployed ledger format
MAX_AMOUNT = 2 ** 32 - 1

# Addresses may not contain the record delimiters or whitespace
ADDRESS_PATTERN = re.compile(r'[^\s|\-]+')
AMOUNT_PATTERN = re.compile(r'[0-9]+')
DELIMITERS = re.compile(r'[|\-]')


def is_valid_address(address: str) -> bool:
    """Check that an address can be encoded without ambiguity"""
    return bool(address) and ADDRESS_PATTERN.fullmatch(address) is not None


@dataclass(frozen=True)
class TransactionRecord:
    """A single transfer of `amount` from `from_addr` to `to_addr`"""
    from_addr: str
    to_addr: str
    amount: int
    
    def __post_init__(self):
        for name in ("from_addr", "to_addr"):
            value = getattr(self, name)
            if not isinstance(value, str) or not is_valid_address(value):
                raise ValueError(f"Invalid {name} {value!r}: addresses may not be empty "
                                 f"or contain '-', '|' or whitespace")
        
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Amount must be an integer, got {self.amount!r}")
        
        if self.amount < 0 or self.amount > MAX_AMOUNT:
            raise ValueError(f"Amount {self.amount} outside 0..{MAX_AMOUNT}")
    
    def encode(self) -> str:
        """Canonical text encoding of this record"""
        return f"{self.from_addr}-{self.to_addr} | {self.amount}"
    
    def __str__(self) -> str:
        return self.encode()
    
    @classmethod
    def parse(cls, text: str) -> 'TransactionRecord':
        """
        Decode the canonical text encoding.
        
        Args:
            text: Record text, surrounding whitespace is ignored
            
        Returns:
            Decoded TransactionRecord
            
        Raises:
            ParseFailure: If the text does not hold exactly a sender, a
                recipient and a non-negative integer amount
        """
        tokens = [token.strip() for token in DELIMITERS.split(text)]
        
        if len(tokens) != 3:
            raise ParseFailure("Malformed transaction record",
                               {"text": text.strip(), "tokens": len(tokens)})
        
        from_addr, to_addr, amount_text = tokens
        
        if not AMOUNT_PATTERN.fullmatch(amount_text):
            raise ParseFailure("Invalid transaction amount", {"amount": amount_text})
        
        try:
            return cls(from_addr=from_addr, to_addr=to_addr, amount=int(amount_text))
        except ValueError as e:
            raise ParseFailure(f"Invalid transaction record: {e}") from e
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            "from_addr": self.from_addr,
            "to_addr": self.to_addr,
            "amount": self.amount
        }


def parse_record(text: str) -> TransactionRecord:
    """Module-level shortcut for TransactionRecord.parse"""
    return TransactionRecord.parse(text)
