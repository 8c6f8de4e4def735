"""
FastAPI REST API Module

Request boundary for the ledger: transfer submission, account lookup with
credentials redacted, and ledger state queries. Handlers are plain functions
so the blocking git round trips run in the threadpool, serialized by the
Ledger lock.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
import uvicorn

from .admission import TransactionAdmission
from .config import BryxcoinConfig, get_config
from .directory import AccountDirectory
from .errors import LedgerError, ValidationFailure
from .ledger import Ledger
from .schemas import (
    AccountModel, BalanceResponse, HistoryResponse, IndexedTransactionModel,
    LedgerResponse, RequestFailure, TransactionModel, TransferRequest, UsersResponse
)
from .storage import SQLiteStorage


logger = logging.getLogger(__name__)


def _failure(status_code: int, justification: str) -> JSONResponse:
    return JSONResponse(status_code=status_code,
                        content=RequestFailure(justification=justification).model_dump())


def _unavailable(route: str, error: LedgerError) -> JSONResponse:
    logger.error(f"Fatal ledger error on {route}: {error}")
    return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, str(error))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open whatever the app was not given, and close what it opened"""
    state = app.state
    opened_ledger = False
    opened_storage = None

    if state.ledger is None:
        state.ledger = Ledger.from_config(state.config)
        opened_ledger = True

    try:
        if state.directory is None:
            opened_storage = SQLiteStorage(state.config.directory_db_path)
            state.directory = AccountDirectory(opened_storage)

        yield
    finally:
        if opened_storage is not None:
            opened_storage.close()
        if opened_ledger:
            state.ledger.close()
            logger.info("Ledger closed")


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


def get_directory(request: Request) -> AccountDirectory:
    return request.app.state.directory


def get_admission(
    ledger: Ledger = Depends(get_ledger),
    directory: AccountDirectory = Depends(get_directory)
) -> TransactionAdmission:
    return TransactionAdmission(ledger, directory)


def create_app(
    ledger: Optional[Ledger] = None,
    directory: Optional[AccountDirectory] = None,
    config: Optional[BryxcoinConfig] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    A ledger or directory passed in is used as-is and left open on shutdown;
    missing ones are built from config when the app starts.
    """
    app = FastAPI(
        title="Bryxcoin Ledger API",
        description="Transfer ledger backed by an append-only git log",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config or get_config()
    app.state.ledger = ledger
    app.state.directory = directory

    @app.get("/health")
    def health_check(ledger: Ledger = Depends(get_ledger)):
        """Health check endpoint"""
        timestamp = datetime.now(timezone.utc).isoformat()
        if ledger.fatal_error is not None:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "quarantined", "error": str(ledger.fatal_error),
                         "timestamp": timestamp}
            )
        if ledger.closed:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "closed", "timestamp": timestamp}
            )
        return {"status": "healthy", "timestamp": timestamp}

    @app.post("/tx", status_code=status.HTTP_201_CREATED, response_model=TransactionModel)
    def submit_transaction(
        request: TransferRequest,
        admission: TransactionAdmission = Depends(get_admission)
    ):
        """Submit a transfer"""
        try:
            record = admission.submit(
                from_addr=request.from_addr,
                to_addr=request.to_addr,
                amount=request.amount,
                secret=request.secret
            )
        except ValidationFailure as e:
            return _failure(status.HTTP_400_BAD_REQUEST, e.reason)
        except LedgerError as e:
            return _unavailable("/tx", e)

        return TransactionModel.from_record(record)

    @app.get("/users", response_model=UsersResponse)
    def find_users(
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        directory: AccountDirectory = Depends(get_directory)
    ):
        """Look up accounts by name; credentials are never returned"""
        try:
            accounts = directory.lookup_by_filter(first_name=first_name, last_name=last_name)
        except ValueError as e:
            return _failure(status.HTTP_400_BAD_REQUEST, str(e))

        return UsersResponse(users=[AccountModel.from_account(a) for a in accounts])

    @app.get("/ledger", response_model=LedgerResponse)
    def get_balances(ledger: Ledger = Depends(get_ledger)):
        """Full balance map"""
        try:
            return LedgerResponse(balances=ledger.balances())
        except LedgerError as e:
            return _unavailable("/ledger", e)

    @app.get("/ledger/transactions", response_model=HistoryResponse)
    def get_transactions(ledger: Ledger = Depends(get_ledger)):
        """Every transaction in sequence order"""
        try:
            history = ledger.history()
        except LedgerError as e:
            return _unavailable("/ledger/transactions", e)

        return HistoryResponse(transactions=[
            IndexedTransactionModel(index=index, **record.to_dict())
            for index, record in history
        ])

    @app.get("/ledger/{address}", response_model=BalanceResponse)
    def get_balance(address: str, ledger: Ledger = Depends(get_ledger)):
        """Balance of one address"""
        try:
            return BalanceResponse(address=address, balance=ledger.get_balance(address))
        except LedgerError as e:
            return _unavailable("/ledger/{address}", e)

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090):
    """Run the FastAPI server"""
    uvicorn.run(
        "bryxcoin.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_level="info"
    )
