"""Data access layer mapping ORM records to domain models"""

from typing import List, Optional
from sqlalchemy.orm import Session
from loan_core.infrastructure.database.models import (
    AuditLogRecord,
    BankAccountRecord,
    ClientRecord,
    TransactionRecord,
    TreasuryMovementRecord,
)
from loan_core.domain.models import (
    BankAccount,
    Client,
    ClientStatus,
    InterestMethod,
    PaymentFrequency,
    Transaction,
    TransactionType,
    TreasuryMovement,
)
from loan_core.domain.exceptions import BankAccountNotFound, ClientNotFound, TransactionNotFound
from loan_core.domain.ledger import chain_order_key

CLIENT_FIELDS = (
    "name", "cedula", "card_code", "phone", "address", "work_address", "occupation",
    "guarantor_name", "guarantor_phone", "collateral", "notes", "loan_limit", "referrer_id",
    "credit_start_date", "next_payment_date", "interest_rate", "loan_term_months",
    "installment_amount", "installments_count", "pending_redirection_balance", "redirection_wait_days",
)

TRANSACTION_FIELDS = (
    "client_id", "date", "amount", "interest_paid", "capital_paid", "balance_after",
    "bank_account_id", "related_client_id", "redirection_id", "receipt_url", "notes", "created_at",
)


def _to_client(record: ClientRecord) -> Client:
    return Client(
        id=record.id,
        status=ClientStatus(record.status),
        interest_method=InterestMethod(record.interest_method),
        payment_frequency=PaymentFrequency(record.payment_frequency),
        **{name: getattr(record, name) for name in CLIENT_FIELDS},
    )


def _to_transaction(record: TransactionRecord) -> Transaction:
    return Transaction(
        id=record.id,
        type=TransactionType(record.type),
        **{name: getattr(record, name) for name in TRANSACTION_FIELDS},
    )


def _to_account(record: BankAccountRecord) -> BankAccount:
    return BankAccount(
        id=record.id,
        name=record.name,
        balance=record.balance,
        account_number=record.account_number,
        is_cash=record.is_cash,
    )


class ClientRepository:
    """Repository for borrowers"""

    def __init__(self, db: Session):
        self.db = db

    def _record(self, client_id: str, lock: bool = False) -> ClientRecord:
        query = self.db.query(ClientRecord).filter(ClientRecord.id == client_id)
        if lock:
            # Serializes ledger writes for this client until commit
            query = query.with_for_update()
        record = query.first()
        if record is None:
            raise ClientNotFound(f"Client {client_id} not found")
        return record

    def get(self, client_id: str, lock: bool = False) -> Client:
        return _to_client(self._record(client_id, lock))

    def list_clients(self, status: Optional[ClientStatus] = None) -> List[Client]:
        query = self.db.query(ClientRecord)
        if status is not None:
            query = query.filter(ClientRecord.status == status.value)
        return [_to_client(r) for r in query.order_by(ClientRecord.name).all()]

    def add(self, client: Client) -> Client:
        record = ClientRecord(
            id=client.id,
            status=client.status.value,
            interest_method=client.interest_method.value,
            payment_frequency=client.payment_frequency.value,
            **{name: getattr(client, name) for name in CLIENT_FIELDS},
        )
        self.db.add(record)
        self.db.flush()
        return client

    def save(self, client: Client) -> Client:
        record = self._record(client.id)
        for name in CLIENT_FIELDS:
            setattr(record, name, getattr(client, name))
        record.status = client.status.value
        record.interest_method = client.interest_method.value
        record.payment_frequency = client.payment_frequency.value
        return client


class TransactionRepository:
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: str) -> Transaction:
        record = self.db.get(TransactionRecord, transaction_id)
        if record is None:
            raise TransactionNotFound(f"Transaction {transaction_id} not found")
        return _to_transaction(record)

    def chain(self, client_id: str) -> List[Transaction]:
        """Client's transactions in ledger order"""
        records = self.db.query(TransactionRecord).filter(TransactionRecord.client_id == client_id).all()
        return sorted((_to_transaction(r) for r in records), key=chain_order_key)

    def redirection_legs(self) -> List[Transaction]:
        records = (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.type.in_([TransactionType.REDIRECT_IN.value, TransactionType.REDIRECT_OUT.value]))
            .all()
        )
        return [_to_transaction(r) for r in records]

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(
            TransactionRecord(
                id=transaction.id,
                type=transaction.type.value,
                **{name: getattr(transaction, name) for name in TRANSACTION_FIELDS},
            )
        )
        self.db.flush()
        return transaction

    def save_chain(self, transactions: List[Transaction]) -> None:
        """Write back a recomputed chain, touching only rows that changed"""
        for txn in transactions:
            record = self.db.get(TransactionRecord, txn.id)
            if record is None:
                raise TransactionNotFound(f"Transaction {txn.id} not found")
            record.type = txn.type.value
            for name in TRANSACTION_FIELDS:
                if getattr(record, name) != getattr(txn, name):
                    setattr(record, name, getattr(txn, name))
        self.db.flush()

    def delete(self, transaction_id: str) -> None:
        record = self.db.get(TransactionRecord, transaction_id)
        if record is None:
            raise TransactionNotFound(f"Transaction {transaction_id} not found")
        self.db.delete(record)
        self.db.flush()


class BankAccountRepository:
    """Repository for treasury accounts and their movements"""

    def __init__(self, db: Session):
        self.db = db

    def _record(self, account_id: str, lock: bool = False) -> BankAccountRecord:
        query = self.db.query(BankAccountRecord).filter(BankAccountRecord.id == account_id)
        if lock:
            query = query.with_for_update()
        record = query.first()
        if record is None:
            raise BankAccountNotFound(f"Bank account {account_id} not found")
        return record

    def get(self, account_id: str, lock: bool = False) -> BankAccount:
        return _to_account(self._record(account_id, lock))

    def list_accounts(self) -> List[BankAccount]:
        return [_to_account(r) for r in self.db.query(BankAccountRecord).order_by(BankAccountRecord.name).all()]

    def add(self, account: BankAccount) -> BankAccount:
        self.db.add(
            BankAccountRecord(
                id=account.id,
                name=account.name,
                account_number=account.account_number,
                is_cash=account.is_cash,
                balance=account.balance,
            )
        )
        self.db.flush()
        return account

    def save_balance(self, account: BankAccount) -> BankAccount:
        self._record(account.id).balance = account.balance
        return account

    def add_movement(self, movement: TreasuryMovement) -> TreasuryMovement:
        self.db.add(
            TreasuryMovementRecord(
                id=movement.id,
                bank_account_id=movement.bank_account_id,
                type=movement.type.value,
                amount=movement.amount,
                date=movement.date,
                notes=movement.notes,
                client_id=movement.client_id,
                redirection_id=movement.redirection_id,
            )
        )
        return movement


class AuditLogRepository:
    """Repository for the audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        entity: str,
        message: str,
        details: Optional[str] = None,
        level: str = "SUCCESS",
        actor: str = "system",
    ) -> AuditLogRecord:
        entry = AuditLogRecord(
            action=action,
            entity=entity,
            message=message,
            details=details,
            level=level,
            actor=actor,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def recent(self, limit: int = 50) -> List[AuditLogRecord]:
        return (
            self.db.query(AuditLogRecord)
            .order_by(AuditLogRecord.created_at.desc())
            .limit(limit)
            .all()
        )
