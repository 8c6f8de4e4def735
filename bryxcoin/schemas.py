"""
Pydantic schemas for API requests and responses
"""

from typing import Dict, List
from pydantic import AliasChoices, BaseModel, Field

from .directory import Account
from .records import TransactionRecord


class TransferRequest(BaseModel):
    from_addr: str
    to_addr: str
    amount: int = Field(..., validation_alias=AliasChoices("amount", "amt"),
                        description="Whole coins to transfer")
    secret: str = Field(..., description="Sender's credential")


class TransactionModel(BaseModel):
    from_addr: str
    to_addr: str
    amount: int

    @classmethod
    def from_record(cls, record: TransactionRecord) -> 'TransactionModel':
        return cls(**record.to_dict())


class IndexedTransactionModel(TransactionModel):
    index: int


class RequestFailure(BaseModel):
    justification: str


class AccountModel(BaseModel):
    """Account with the credential redacted"""
    first_name: str
    last_name: str
    address: str

    @classmethod
    def from_account(cls, account: Account) -> 'AccountModel':
        return cls(**account.to_public_dict())


class UsersResponse(BaseModel):
    users: List[AccountModel]


class LedgerResponse(BaseModel):
    balances: Dict[str, int]


class BalanceResponse(BaseModel):
    address: str
    balance: int


class HistoryResponse(BaseModel):
    transactions: List[IndexedTransactionModel]
