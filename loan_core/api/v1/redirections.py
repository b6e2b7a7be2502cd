"""Redirection endpoints: money routed between clients instead of through treasury"""

from datetime import date
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from loan_core.api.dependencies import get_audit_client, get_request_id, get_today
from loan_core.api.v1.common import domain_error, record_audit, transaction_response, unexpected_error
from loan_core.api.v1.schemas import (
    OpenRedirectionRequest,
    OrphanResponse,
    RedirectionResponse,
    RedirectPaymentRequest,
    TreasuryDeliveryRequest,
)
from loan_core.config import settings
from loan_core.domain.exceptions import DomainException
from loan_core.domain.redirection import (
    RedirectionResult,
    find_orphaned_legs,
    fund_redirection,
    open_redirection,
    redirect_payment,
    resolve_from_treasury,
)
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
from loan_core.utils.money import format_currency

router = APIRouter()


def _response(result: RedirectionResult) -> RedirectionResponse:
    return RedirectionResponse(
        state=result.state,
        recipient_id=result.recipient.id,
        pending_redirection_balance=result.recipient.pending_redirection_balance,
        incoming=transaction_response(result.incoming) if result.incoming else None,
        outgoing=transaction_response(result.outgoing) if result.outgoing else None,
    )


def _log_legs(request_id: str, result: RedirectionResult) -> None:
    for leg in (result.outgoing, result.incoming):
        if leg is not None:
            record_ledger_write(leg.type.value)
            log_ledger_write(request_id, leg.client_id, leg.type.value, leg.amount, leg.balance_after)


def _lock_pair(client_repo: ClientRepository, first_id: str, second_id: str):
    """Lock two clients in id order so opposite redirections cannot deadlock"""
    locked = {cid: client_repo.get(cid, lock=True) for cid in sorted({first_id, second_id})}
    return locked[first_id], locked[second_id]


@router.post("/redirections/open", response_model=RedirectionResponse, status_code=201)
def open_client_redirection(
    request_body: OpenRedirectionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """Lend to an existing client who will wait for another client's payments"""
    request_id = get_request_id(request)
    wait_days = request_body.wait_days if request_body.wait_days is not None else settings.default_redirection_wait_days

    try:
        client_repo = ClientRepository(db)
        transaction_repo = TransactionRepository(db)
        client = client_repo.get(request_body.client_id, lock=True)

        result = open_redirection(
            client,
            transaction_repo.chain(client.id),
            request_body.amount,
            wait_days,
            request_body.date or today,
            notes=request_body.notes,
        )
        transaction_repo.add(result.incoming)
        client_repo.save(result.recipient)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "TRANSACTION",
            f"Redirection opened: {format_currency(request_body.amount)}",
            details=f"Client: {client.name} | Wait days: {wait_days}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "open_redirection", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    redirection_counter.labels(kind="open").inc()
    _log_legs(request_id, result)
    return _response(result)


@router.post("/redirections/fund", response_model=RedirectionResponse, status_code=201)
def fund_client_redirection(
    request_body: RedirectPaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """Route a payer's collection to a client waiting for redirected funds"""
    request_id = get_request_id(request)

    try:
        client_repo = ClientRepository(db)
        transaction_repo = TransactionRepository(db)
        payer, recipient = _lock_pair(client_repo, request_body.payer_id, request_body.recipient_id)

        result = fund_redirection(
            payer,
            transaction_repo.chain(payer.id),
            recipient,
            transaction_repo.chain(recipient.id),
            request_body.amount,
            request_body.date or today,
            interest_paid=request_body.interest_paid,
            notes=request_body.notes,
        )
        transaction_repo.add(result.outgoing)
        client_repo.save(result.recipient)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "TRANSACTION",
            f"Redirection funded: {format_currency(request_body.amount)}",
            details=f"From: {payer.name} | To: {recipient.name} | State: {result.state.value}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "fund_redirection", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    redirection_counter.labels(kind="fund").inc()
    _log_legs(request_id, result)
    return _response(result)


@router.post("/redirections/direct", response_model=RedirectionResponse, status_code=201)
def redirect_client_payment(
    request_body: RedirectPaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """Turn a payer's collection into a loan for the recipient; both legs or neither"""
    request_id = get_request_id(request)

    try:
        client_repo = ClientRepository(db)
        transaction_repo = TransactionRepository(db)
        payer, recipient = _lock_pair(client_repo, request_body.payer_id, request_body.recipient_id)

        result = redirect_payment(
            payer,
            transaction_repo.chain(payer.id),
            recipient,
            transaction_repo.chain(recipient.id),
            request_body.amount,
            request_body.date or today,
            interest_paid=request_body.interest_paid,
            notes=request_body.notes,
        )
        transaction_repo.add(result.outgoing)
        transaction_repo.add(result.incoming)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "TRANSACTION",
            f"Payment redirected: {format_currency(request_body.amount)}",
            details=f"From: {payer.name} | To: {recipient.name}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "redirect_payment", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    redirection_counter.labels(kind="direct").inc()
    _log_legs(request_id, result)
    return _response(result)


@router.post("/redirections/treasury", response_model=RedirectionResponse, status_code=201)
def deliver_from_treasury(
    request_body: TreasuryDeliveryRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """Pay a waiting client from a bank account instead of another client's collection"""
    request_id = get_request_id(request)

    try:
        client_repo = ClientRepository(db)
        bank_repo = BankAccountRepository(db)
        recipient = client_repo.get(request_body.recipient_id, lock=True)
        account = bank_repo.get(request_body.bank_account_id, lock=True)

        result, account, movement = resolve_from_treasury(
            recipient,
            TransactionRepository(db).chain(recipient.id),
            account,
            request_body.amount,
            request_body.date or today,
            notes=request_body.notes,
        )
        client_repo.save(result.recipient)
        bank_repo.save_balance(account)
        bank_repo.add_movement(movement)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "BANK",
            f"Redirection delivered from treasury: {format_currency(request_body.amount)}",
            details=f"Account: {account.name} | To: {recipient.name}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "resolve_from_treasury", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    redirection_counter.labels(kind="treasury").inc()
    record_treasury_balance(account.id, account.balance)
    return _response(result)


@router.get("/redirections/orphans", response_model=OrphanResponse)
def list_orphaned_legs(db: Session = Depends(get_db)):
    """Redirection legs without their counterpart, for reconciliation"""
    orphans = find_orphaned_legs(TransactionRepository(db).redirection_legs())
    return OrphanResponse(orphans=[transaction_response(t) for t in orphans])
