"""Shared helpers for v1 routes: error mapping, audit trail and response shaping"""

import logging
from datetime import date
from typing import Optional
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.orm import Session

from loan_core.api.v1.schemas import (
    BankAccountResponse,
    ClientResponse,
    ClientSummarySchema,
    RedirectionStatusSchema,
    TransactionResponse,
)
from loan_core.domain.exceptions import (
    BankAccountNotFound,
    ChainIntegrityViolation,
    ClientNotFound,
    DomainException,
    InsufficientTreasuryFunds,
    InvalidLoanTerms,
    OverpaymentRejected,
    TransactionNotFound,
)
from loan_core.domain.ledger import summarize_client
from loan_core.domain.models import BankAccount, Client, Transaction
from loan_core.domain.redirection import redirection_status
from loan_core.domain.schedule import is_late
from loan_core.infrastructure.clients.audit import AuditClient
from loan_core.infrastructure.database.repositories import AuditLogRepository
from loan_core.infrastructure.observability.logging import log_rejection
from loan_core.infrastructure.observability.metrics import record_rejection

ERROR_STATUS = {
    ClientNotFound: 404,
    BankAccountNotFound: 404,
    TransactionNotFound: 404,
    InvalidLoanTerms: 422,
    OverpaymentRejected: 409,
    InsufficientTreasuryFunds: 409,
    ChainIntegrityViolation: 409,
}


def domain_error(db: Session, request_id: str, operation: str, error: DomainException) -> HTTPException:
    """Roll back the unit of work and map a domain error onto an HTTP error"""
    db.rollback()
    record_rejection(error)
    log_rejection(request_id, operation, error)
    return HTTPException(status_code=ERROR_STATUS.get(type(error), 400), detail=str(error))


def unexpected_error(db: Session, request_id: str, error: Exception) -> HTTPException:
    db.rollback()
    logging.error(f"Unexpected error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")


def record_audit(
    db: Session,
    background_tasks: BackgroundTasks,
    audit_client: AuditClient,
    action: str,
    entity: str,
    message: str,
    details: Optional[str] = None,
    level: str = "SUCCESS",
) -> None:
    """Persist an audit entry in the current unit of work and forward it after the response"""
    AuditLogRepository(db).record(action, entity, message, details, level)
    if audit_client.enabled:
        background_tasks.add_task(
            audit_client.send_audit_event,
            {"action": action, "entity": entity, "message": message, "details": details, "level": level},
        )


def transaction_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        client_id=txn.client_id,
        date=txn.date,
        type=txn.type,
        amount=txn.amount,
        interest_paid=txn.interest_paid,
        capital_paid=txn.capital_paid,
        balance_after=txn.balance_after,
        bank_account_id=txn.bank_account_id,
        related_client_id=txn.related_client_id,
        redirection_id=txn.redirection_id,
        receipt_url=txn.receipt_url,
        notes=txn.notes,
    )


def client_response(client: Client, chain: list[Transaction], today: date) -> ClientResponse:
    summary = summarize_client(chain)
    status = redirection_status(client, today)
    return ClientResponse(
        id=client.id,
        name=client.name,
        cedula=client.cedula,
        card_code=client.card_code,
        status=client.status,
        credit_start_date=client.credit_start_date,
        next_payment_date=client.next_payment_date,
        interest_rate=client.interest_rate,
        interest_method=client.interest_method,
        payment_frequency=client.payment_frequency,
        loan_term_months=client.loan_term_months,
        installment_amount=client.installment_amount,
        installments_count=client.installments_count,
        loan_limit=client.loan_limit,
        referrer_id=client.referrer_id,
        pending_redirection_balance=client.pending_redirection_balance,
        redirection_wait_days=client.redirection_wait_days,
        is_late=is_late(client, summary.current_balance, today),
        summary=ClientSummarySchema(**summary.__dict__),
        redirection=RedirectionStatusSchema(
            state=status.state,
            remaining_wait_days=status.remaining_wait_days,
            pending_balance=status.pending_balance,
        ),
    )


def account_response(account: BankAccount) -> BankAccountResponse:
    return BankAccountResponse(
        id=account.id,
        name=account.name,
        account_number=account.account_number,
        is_cash=account.is_cash,
        balance=account.balance,
    )
