"""Client origination, profile edits and ledger reads"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from loan_core.api.dependencies import get_audit_client, get_request_id, get_today
from loan_core.api.v1.common import (
    client_response,
    domain_error,
    record_audit,
    transaction_response,
    unexpected_error,
)
from loan_core.api.v1.schemas import (
    ClientCreateRequest,
    ClientResponse,
    ClientUpdateRequest,
    LedgerResponse,
)
from loan_core.config import settings
from loan_core.domain.amortization import project_loan
from loan_core.domain.exceptions import DomainException
from loan_core.domain.ledger import append_transaction, current_balance
from loan_core.domain.models import Client, ClientStatus, DisbursementEvent, new_id
from loan_core.domain.redirection import open_redirection
from loan_core.domain.schedule import next_due_date
from loan_core.domain.treasury import apply_to_account
from loan_core.infrastructure.clients.audit import AuditClient
from loan_core.infrastructure.database.repositories import (
    BankAccountRepository,
    ClientRepository,
    TransactionRepository,
)
from loan_core.infrastructure.database.session import get_db
from loan_core.infrastructure.observability.logging import log_ledger_write
from loan_core.infrastructure.observability.metrics import (
    record_ledger_write,
    record_treasury_balance,
    redirection_counter,
)

router = APIRouter()

PROFILE_FIELDS = (
    "name", "card_code", "phone", "address", "work_address", "occupation", "guarantor_name",
    "guarantor_phone", "collateral", "notes", "loan_limit", "referrer_id", "status", "next_payment_date",
)
TERM_FIELDS = ("interest_rate", "interest_method", "payment_frequency", "loan_term_months")


@router.post("/clients", response_model=ClientResponse, status_code=201)
def create_client(
    request_body: ClientCreateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """
    Register a client and, optionally, originate the first loan.

    Flow:
    1. Project the loan to cache quota and installment count
    2. Compute the first due date from the credit start date
    3. Persist the client
    4. Initial loan: either a treasury DISBURSEMENT (funds checked) or a
       redirection the client will wait for
    5. Audit and commit as one unit of work
    """
    request_id = get_request_id(request)
    start_date = request_body.credit_start_date or today
    rate = request_body.interest_rate if request_body.interest_rate is not None else settings.default_interest_rate
    chain = []

    try:
        projection = project_loan(
            request_body.initial_amount,
            rate,
            request_body.loan_term_months,
            request_body.payment_frequency,
            request_body.interest_method,
        )

        client_repo = ClientRepository(db)
        if request_body.referrer_id:
            client_repo.get(request_body.referrer_id)

        client = Client(
            id=new_id(),
            name=request_body.name,
            cedula=request_body.cedula,
            credit_start_date=start_date,
            interest_rate=rate,
            interest_method=request_body.interest_method,
            payment_frequency=request_body.payment_frequency,
            loan_term_months=request_body.loan_term_months,
            next_payment_date=next_due_date(start_date, request_body.payment_frequency),
            installment_amount=projection.quota if projection else None,
            installments_count=projection.total_installments if projection else None,
            card_code=request_body.card_code,
            phone=request_body.phone,
            address=request_body.address,
            work_address=request_body.work_address,
            occupation=request_body.occupation,
            guarantor_name=request_body.guarantor_name,
            guarantor_phone=request_body.guarantor_phone,
            collateral=request_body.collateral,
            notes=request_body.notes,
            loan_limit=request_body.loan_limit,
            referrer_id=request_body.referrer_id,
        )
        client_repo.add(client)

        if request_body.initial_amount > 0:
            if request_body.is_redirection:
                wait_days = (
                    request_body.redirection_wait_days
                    if request_body.redirection_wait_days is not None
                    else settings.default_redirection_wait_days
                )
                result = open_redirection(
                    client, [], request_body.initial_amount, wait_days, start_date,
                    notes="Initial disbursement via redirection",
                )
                client = client_repo.save(result.recipient)
                txn = result.incoming
                redirection_counter.labels(kind="open").inc()
            else:
                bank_repo = BankAccountRepository(db)
                account = (
                    bank_repo.get(request_body.initial_bank_account_id, lock=True)
                    if request_body.initial_bank_account_id
                    else None
                )
                txn = append_transaction(
                    client,
                    None,
                    DisbursementEvent(request_body.initial_amount, bank_account_id=request_body.initial_bank_account_id),
                    start_date,
                    account=account,
                    notes="Initial disbursement (treasury)",
                )
                if account is not None:
                    account = bank_repo.save_balance(apply_to_account(account, txn))
                    record_treasury_balance(account.id, account.balance)
            TransactionRepository(db).add(txn)
            chain = [txn]

        record_audit(db, background_tasks, audit_client, "CREATE", "CLIENT", f"New client registered: {client.name}")
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "create_client", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    for txn in chain:
        record_ledger_write(txn.type.value)
        log_ledger_write(request_id, client.id, txn.type.value, txn.amount, txn.balance_after, txn.bank_account_id)

    return client_response(client, chain, today)


@router.get("/clients", response_model=List[ClientResponse])
def list_clients(
    status: Optional[ClientStatus] = Query(None, description="Filter by status"),
    waiting: bool = Query(False, description="Only clients waiting for redirected funds"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """List clients, optionally only those waiting for redirected funds"""
    transaction_repo = TransactionRepository(db)
    clients = ClientRepository(db).list_clients(status)
    if waiting:
        clients = [c for c in clients if c.pending_redirection_balance > 0]
    return [client_response(c, transaction_repo.chain(c.id), today) for c in clients]


@router.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(client_id: str, db: Session = Depends(get_db), today: date = Depends(get_today)):
    """Client with balance summary, lateness and redirection status"""
    try:
        client = ClientRepository(db).get(client_id)
    except DomainException as e:
        raise HTTPException(status_code=404, detail=str(e))
    return client_response(client, TransactionRepository(db).chain(client_id), today)


@router.patch("/clients/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: str,
    request_body: ClientUpdateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """
    Edit profile data or loan terms.

    Changing a loan term re-projects the installment on the outstanding
    balance so the cached quota never goes stale.
    """
    request_id = get_request_id(request)
    changes = request_body.model_dump(exclude_unset=True)

    try:
        client_repo = ClientRepository(db)
        client = client_repo.get(client_id, lock=True)
        chain = TransactionRepository(db).chain(client_id)

        if changes.get("referrer_id"):
            client_repo.get(changes["referrer_id"])
        for name in PROFILE_FIELDS + TERM_FIELDS:
            if name in changes and (changes[name] is not None or name in ("loan_limit", "referrer_id", "next_payment_date")):
                setattr(client, name, changes[name])

        if any(name in changes for name in TERM_FIELDS):
            projection = project_loan(
                current_balance(chain),
                client.interest_rate,
                client.loan_term_months,
                client.payment_frequency,
                client.interest_method,
            )
            if projection:
                client.installment_amount = projection.quota
                client.installments_count = projection.total_installments

        client_repo.save(client)
        record_audit(
            db, background_tasks, audit_client, "UPDATE", "CLIENT",
            f"Client data updated: {client.name}", details=", ".join(sorted(changes)),
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "update_client", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    return client_response(client, chain, today)


@router.get("/clients/{client_id}/transactions", response_model=LedgerResponse)
def get_ledger(client_id: str, db: Session = Depends(get_db)):
    """Client's ledger chain in chronological order"""
    try:
        ClientRepository(db).get(client_id)
    except DomainException as e:
        raise HTTPException(status_code=404, detail=str(e))
    chain = TransactionRepository(db).chain(client_id)
    return LedgerResponse(client_id=client_id, transactions=[transaction_response(t) for t in chain])
