"""Treasury accounts: bank accounts and cash boxes"""

from datetime import date
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from loan_core.api.dependencies import get_audit_client, get_request_id, get_today
from loan_core.api.v1.common import account_response, domain_error, record_audit, unexpected_error
from loan_core.api.v1.schemas import BankAccountRequest, BankAccountResponse, MovementRequest, MovementResponse
from loan_core.domain.exceptions import DomainException
from loan_core.domain.models import BankAccount, new_id
from loan_core.domain.treasury import record_movement
from loan_core.infrastructure.clients.audit import AuditClient
from loan_core.infrastructure.database.repositories import BankAccountRepository
from loan_core.infrastructure.database.session import get_db
from loan_core.infrastructure.observability.metrics import record_treasury_balance
from loan_core.utils.money import format_currency

router = APIRouter()


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=201)
def create_account(
    request_body: BankAccountRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Open a treasury account with its starting balance"""
    request_id = get_request_id(request)
    account = BankAccount(
        id=new_id(),
        name=request_body.name,
        balance=request_body.balance,
        account_number=request_body.account_number,
        is_cash=request_body.is_cash,
    )

    try:
        BankAccountRepository(db).add(account)
        record_audit(
            db, background_tasks, audit_client, "CREATE", "BANK",
            f"New account: {account.name}", details=f"Type: {'Cash' if account.is_cash else 'Bank'}",
        )
        db.commit()
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    record_treasury_balance(account.id, account.balance)
    return account_response(account)


@router.get("/bank-accounts", response_model=List[BankAccountResponse])
def list_accounts(db: Session = Depends(get_db)):
    return [account_response(a) for a in BankAccountRepository(db).list_accounts()]


@router.post("/bank-accounts/{account_id}/movements", response_model=MovementResponse, status_code=201)
def create_movement(
    account_id: str,
    request_body: MovementRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
    today: date = Depends(get_today),
):
    """Deposit or withdraw; a withdrawal above the balance is refused"""
    request_id = get_request_id(request)

    try:
        bank_repo = BankAccountRepository(db)
        account, movement = record_movement(
            bank_repo.get(account_id, lock=True),
            request_body.type,
            request_body.amount,
            request_body.date or today,
            notes=request_body.notes,
        )
        bank_repo.save_balance(account)
        bank_repo.add_movement(movement)

        record_audit(
            db, background_tasks, audit_client, "CREATE", "BANK",
            f"Bank movement: {format_currency(movement.amount)}",
            details=f"Account: {account.name} | Type: {movement.type.value} | Note: {movement.notes}",
        )
        db.commit()

    except DomainException as e:
        raise domain_error(db, request_id, "bank_movement", e)
    except Exception as e:
        raise unexpected_error(db, request_id, e)

    record_treasury_balance(account.id, account.balance)
    return MovementResponse(
        id=movement.id,
        bank_account_id=account.id,
        type=movement.type,
        amount=movement.amount,
        date=movement.date,
        balance=account.balance,
    )
