"""
Account Directory Module

Keyed store resolving a ledger address or a name to an account record. The
directory is read-only from the ledger's point of view and is queried without
holding the ledger lock.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import hmac
import logging

from .records import is_valid_address
from .storage import DuplicateRecordError, StorageInterface


logger = logging.getLogger(__name__)


@dataclass
class Account:
    """Directory entry for one ledger participant"""
    first_name: str
    last_name: str
    address: str
    credential: str

    def __post_init__(self):
        if not is_valid_address(self.address):
            raise ValueError(f"Invalid address {self.address!r}")

    def check_credential(self, secret: str) -> bool:
        """Constant-time comparison of a presented secret"""
        return hmac.compare_digest(self.credential.encode("utf-8"), secret.encode("utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_public_dict(self) -> Dict[str, Any]:
        """Account fields safe to return to callers"""
        result = self.to_dict()
        del result['credential']
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(
            first_name=data['first_name'],
            last_name=data['last_name'],
            address=data['address'],
            credential=data['credential']
        )


class AccountDirectory:
    """Account lookups by address or by name"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "accounts"

    def register(self, first_name: str, last_name: str, address: str,
                 credential: str) -> Account:
        """
        Add an account to the directory.

        Raises:
            ValueError: If the address is invalid or already registered
        """
        account = Account(
            first_name=first_name,
            last_name=last_name,
            address=address,
            credential=credential
        )

        try:
            self.storage.insert(self.table_name, address, account.to_dict())
        except DuplicateRecordError as e:
            raise ValueError(f"Address {address} is already registered") from e
        logger.info(f"Registered account {address}")
        return account

    def lookup_by_address(self, address: str) -> Optional[Account]:
        """Account owning an address, or None"""
        data = self.storage.load(self.table_name, address)
        if data:
            return Account.from_dict(data)
        return None

    def lookup_by_filter(self, first_name: Optional[str] = None,
                         last_name: Optional[str] = None) -> List[Account]:
        """
        Accounts whose names match every given filter exactly.

        Raises:
            ValueError: If neither filter is given
        """
        filters = {}
        if first_name is not None:
            filters['first_name'] = first_name
        if last_name is not None:
            filters['last_name'] = last_name

        if not filters:
            raise ValueError("'first_name', 'last_name', or both must be specified. Found none.")

        return [Account.from_dict(data) for data in self.storage.find(self.table_name, filters)]
