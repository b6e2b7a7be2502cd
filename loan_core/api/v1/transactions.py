"""Ledger writes: record, edit and delete client transactions"""

from dataclasses import replace
from datetime import date
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from loan_core.api.dependencies import get_audit_client, get_request_id, get_today
from loan_core.api.v1.common import domain_error, record_audit, transaction_response, unexpected_error
from loan_core.api.v1.schemas import (
    LedgerResponse,
    TransactionRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from loan_core.domain.amortization import project_loan
from loan_core.domain.exceptions import ChainIntegrityViolation, DomainException, InvalidLoanTerms
from loan_core.domain.ledger import append_transaction, chain_tail, current_balance, event_from_fields, recompute_chain
from loan_core.domain.models import ClientStatus, RedirectionState, TransactionType
from loan_core.domain.redirection import resolve_by_disbursement
from loan_core.domain.schedule import next_due_date
from loan_core.domain.treasury import apply_to_account, rebook_on_account, reverse_on_account
from loan_core.infrastructure.clients.audit import AuditClient
from loan_core.infrastructure.database.repositories import (
    BankAccountRepository,
    ClientRepository,
    TransactionRepository,
)
from loan_core.infrastructure.database.session import get_db
from loan_core.infrastructure.observability.logging import log_ledger_write
from loan_core.infrastructure.observability.metrics import (
    chain_recompute_counter,
    record_ledger_write,
    record_treasury_balance,
    redirection_counter,
)
from loan_core.utils.money import format_currency

router = APIRouter()

LENDING_TYPES = {TransactionType.DISBURSEMENT, TransactionType.REFINANCE}
COLLECTION_TYPES = {TransactionType.PAYMENT_CAPITAL, TransactionType.PAYMENT_INTEREST}
REDIRECTION_TYPES = {TransactionType.REDIRECT_IN, TransactionType.REDIRECT_OUT}


@router.post("/clients/{client_id}/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    client_id: str,
    request_body: TransactionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """
    Append one entry to a client's ledger.

    Flow:
    1. Lock the client (and the bank account) so concurrent writers queue up
    2. Build the entry against the chain tail; overpayment and missing funds
       are rejected before anything is written
    3. Move treasury cash and roll the client's schedule forward
    4. Audit and commit as one unit of work

    Redirection legs are created through /v1/redirections so both sides are
    always written together.
    """
    request_id = get_request_id(request)
    on_date = request_body.date or today
    redirection_state = RedirectionState.NONE

    if request_body.type in REDIRECTION_TYPES:
        raise HTTPException(status_code=422, detail="Redirection legs must be created through /v1/redirections")

    try:
        client_repo = ClientRepository(db)
        transaction_repo = TransactionRepository(db)
        bank_repo = BankAccountRepository(db)

        client = client_repo.get(client_id, lock=True)
        account = bank_repo.get(request_body.bank_account_id, lock=True) if request_body.bank_account_id else None

        event = event_from_fields(
            request_body.type,
            request_body.amount,
            request_body.interest_paid,
            bank_account_id=request_body.bank_account_id,
        )
        txn = append_transaction(
            client,
            chain_tail(transaction_repo.chain(client_id)),
            event,
            on_date,
            account=account,
            notes=request_body.notes,
            receipt_url=request_body.receipt_url,
        )
        transaction_repo.add(txn)

        if account is not None:
            account = bank_repo.save_balance(apply_to_account(account, txn))

        if txn.type in LENDING_TYPES:
            client, redirection_state = resolve_by_disbursement(client)
            # New money restarts the loan under the (possibly new) terms
            for name in ("interest_rate", "interest_method", "payment_frequency", "loan_term_months"):
                value = getattr(request_body, name)
                if value is not None:
                    setattr(client, name, value)
            projection = project_loan(
                txn.balance_after,
                client.interest_rate,
                client.loan_term_months,
                client.payment_frequency,
                client.interest_method,
            )
            client.installment_amount = projection.quota
            client.installments_count = projection.total_installments
            client.status = ClientStatus.ACTIVE
            client.next_payment_date = request_body.next_payment_date or next_due_date(on_date, client.payment_frequency)
        elif txn.type in COLLECTION_TYPES:
            client.next_payment_date = request_body.next_payment_date or next_due_date(
                client.next_payment_date or on_date, client.payment_frequency
            )
        elif txn.type == TransactionType.SETTLEMENT:
            client.status = ClientStatus.INACTIVE
            client.next_payment_date = None
        client_repo.save(client)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "TRANSACTION",
            f"New transaction: {format_currency(txn.amount)}",
            details=f"Client: {client.name} | Type: {txn.type.value}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "create_transaction", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    record_ledger_write(txn.type.value)
    log_ledger_write(request_id, client_id, txn.type.value, txn.amount, txn.balance_after, txn.bank_account_id)
    if redirection_state == RedirectionState.RESOLVED:
        redirection_counter.labels(kind="disbursement").inc()
    if account is not None:
        record_treasury_balance(account.id, account.balance)

    return transaction_response(txn)


@router.put("/transactions/{transaction_id}", response_model=LedgerResponse)
def update_transaction(
    transaction_id: str,
    request_body: TransactionUpdateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Edit an entry and rewrite every later balance of the client.

    The bank account moves by the net difference between the old and the
    edited cash effect. Editing a disbursement re-projects the cached
    installment on the new balance.
    """
    request_id = get_request_id(request)
    changes = request_body.model_dump(exclude_unset=True, exclude_none=True)

    try:
        client_repo = ClientRepository(db)
        transaction_repo = TransactionRepository(db)
        bank_repo = BankAccountRepository(db)

        original = transaction_repo.get(transaction_id)
        client = client_repo.get(original.client_id, lock=True)

        if original.type in REDIRECTION_TYPES and "amount" in changes and changes["amount"] != original.amount:
            raise ChainIntegrityViolation("Redirection legs are paired; their amount cannot be edited alone")
        if original.type in LENDING_TYPES and changes.get("amount", original.amount) <= 0:
            raise InvalidLoanTerms("Disbursed amount must stay positive")

        edited = replace(original, **changes)
        if edited.type == TransactionType.PAYMENT_CAPITAL:
            edited = replace(edited, capital_paid=edited.amount)

        chain = [edited if t.id == transaction_id else t for t in transaction_repo.chain(client.id)]
        rebuilt = recompute_chain(client.id, chain)

        if original.bank_account_id:
            account = bank_repo.get(original.bank_account_id, lock=True)
            account = bank_repo.save_balance(rebook_on_account(account, original, edited))
            record_treasury_balance(account.id, account.balance)

        transaction_repo.save_chain(rebuilt)
        chain_recompute_counter.inc()

        if edited.type in LENDING_TYPES and edited.amount != original.amount:
            # Cached installment follows the new outstanding balance
            projection = project_loan(
                current_balance(rebuilt),
                client.interest_rate,
                client.loan_term_months,
                client.payment_frequency,
                client.interest_method,
            )
            client.installment_amount = projection.quota if projection else None
            client.installments_count = projection.total_installments if projection else None
            client_repo.save(client)

        record_audit(
            db, background_tasks, audit_client, "UPDATE", "TRANSACTION",
            f"Transaction edited: {format_currency(edited.amount)}",
            details=f"Client: {client.name} | Type: {edited.type.value} | ID: {transaction_id}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "update_transaction", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    return LedgerResponse(client_id=client.id, transactions=[transaction_response(t) for t in rebuilt])


@router.delete("/transactions/{transaction_id}", response_model=LedgerResponse)
def delete_transaction(
    transaction_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Remove an entry, undo its cash movement and re-walk the client's chain.

    Rejected when the remaining chain would go negative, e.g. deleting the
    disbursement that later payments reduced, and for redirection legs,
    which only exist in pairs.
    """
    request_id = get_request_id(request)

    try:
        transaction_repo = TransactionRepository(db)
        bank_repo = BankAccountRepository(db)

        target = transaction_repo.get(transaction_id)
        client = ClientRepository(db).get(target.client_id, lock=True)

        if target.type in REDIRECTION_TYPES:
            raise ChainIntegrityViolation("Deleting one redirection leg would orphan its counterpart")

        remaining = [t for t in transaction_repo.chain(client.id) if t.id != transaction_id]
        rebuilt = recompute_chain(client.id, remaining)

        if target.bank_account_id:
            account = bank_repo.save_balance(reverse_on_account(bank_repo.get(target.bank_account_id, lock=True), target))
            record_treasury_balance(account.id, account.balance)

        transaction_repo.delete(transaction_id)
        transaction_repo.save_chain(rebuilt)
        chain_recompute_counter.inc()

        record_audit(
            db, background_tasks, audit_client, "DELETE", "TRANSACTION",
            f"Transaction deleted: {format_currency(target.amount)}",
            details=f"Type: {target.type.value} | ID: {transaction_id}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "delete_transaction", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    return LedgerResponse(client_id=client.id, transactions=[transaction_response(t) for t in rebuilt])
