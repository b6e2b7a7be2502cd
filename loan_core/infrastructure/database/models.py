"""SQLAlchemy ORM models for clients, ledger entries and treasury"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, Float, DateTime, Date, Integer, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class ClientRecord(Base):
    """Borrower and the terms of the current credit"""

    __tablename__ = "client"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    cedula = Column(Text, nullable=False, index=True)
    card_code = Column(Text, nullable=False, default="")
    phone = Column(Text, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    work_address = Column(Text, nullable=False, default="")
    occupation = Column(Text, nullable=False, default="")
    guarantor_name = Column(Text, nullable=False, default="")
    guarantor_phone = Column(Text, nullable=False, default="")
    collateral = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    loan_limit = Column(BigInteger, nullable=True)
    referrer_id = Column(String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True)
    status = Column(Text, nullable=False, default="ACTIVE")

    credit_start_date = Column(Date, nullable=False)
    next_payment_date = Column(Date, nullable=True)
    interest_rate = Column(Float, nullable=False, default=0.0)
    interest_method = Column(Text, nullable=False, default="FIXED")
    payment_frequency = Column(Text, nullable=False, default="MONTHLY")
    loan_term_months = Column(Integer, nullable=False, default=1)
    installment_amount = Column(BigInteger, nullable=True)
    installments_count = Column(Integer, nullable=True)

    pending_redirection_balance = Column(BigInteger, nullable=False, default=0)
    redirection_wait_days = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship(
        "TransactionRecord",
        back_populates="client",
        cascade="all, delete-orphan",
        foreign_keys="TransactionRecord.client_id",
    )


class TransactionRecord(Base):
    """Ledger entry; balance_after is always written by the ledger engine"""

    __tablename__ = "ledger_transaction"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("client.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    type = Column(Text, nullable=False)
    amount = Column(BigInteger, nullable=False)
    interest_paid = Column(BigInteger, nullable=False, default=0)
    capital_paid = Column(BigInteger, nullable=False, default=0)
    balance_after = Column(BigInteger, nullable=False)
    bank_account_id = Column(String(36), ForeignKey("bank_account.id"), nullable=True)
    related_client_id = Column(String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True)
    redirection_id = Column(String(36), nullable=True, index=True)
    receipt_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)

    client = relationship("ClientRecord", back_populates="transactions", foreign_keys=[client_id])


class BankAccountRecord(Base):
    """Treasury account or cash box"""

    __tablename__ = "bank_account"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    account_number = Column(Text, nullable=False, default="")
    is_cash = Column(Boolean, nullable=False, default=False)
    balance = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TreasuryMovementRecord(Base):
    """Deposit or withdrawal that is not a client ledger entry"""

    __tablename__ = "treasury_movement"

    id = Column(String(36), primary_key=True, default=_uuid)
    bank_account_id = Column(String(36), ForeignKey("bank_account.id"), nullable=False, index=True)
    type = Column(Text, nullable=False)
    amount = Column(BigInteger, nullable=False)
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=False, default="")
    client_id = Column(String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True)
    redirection_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLogRecord(Base):
    """Who did what to which entity"""

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=_uuid)
    level = Column(Text, nullable=False, default="INFO")
    action = Column(Text, nullable=False)  # CREATE | UPDATE | DELETE | SYSTEM
    entity = Column(Text, nullable=False)  # CLIENT | TRANSACTION | BANK | SYSTEM
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    actor = Column(Text, nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
