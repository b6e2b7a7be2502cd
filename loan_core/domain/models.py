"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union


class PaymentFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


class InterestMethod(str, Enum):
    FIXED = "FIXED"  # Flat interest on the original principal
    DIMINISHING = "DIMINISHING"  # Interest on the declining balance


class ClientStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BAD_DEBT = "BAD_DEBT"


class TransactionType(str, Enum):
    DISBURSEMENT = "DISBURSEMENT"
    REFINANCE = "REFINANCE"
    PAYMENT_CAPITAL = "PAYMENT_CAPITAL"
    PAYMENT_INTEREST = "PAYMENT_INTEREST"
    REDIRECT_OUT = "REDIRECT_OUT"
    REDIRECT_IN = "REDIRECT_IN"
    SETTLEMENT = "SETTLEMENT"


class TreasuryMovementType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class RedirectionState(str, Enum):
    NONE = "NONE"
    WAITING = "WAITING"
    OVERDUE = "OVERDUE"
    RESOLVED = "RESOLVED"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Client:
    """Borrower with the loan terms of the current credit"""

    id: str
    name: str
    cedula: str
    credit_start_date: date
    interest_rate: float = 0.0  # Monthly nominal percent
    interest_method: InterestMethod = InterestMethod.FIXED
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    loan_term_months: int = 1
    next_payment_date: Optional[date] = None
    installment_amount: Optional[int] = None
    installments_count: Optional[int] = None
    card_code: str = ""
    phone: str = ""
    address: str = ""
    work_address: str = ""
    occupation: str = ""
    guarantor_name: str = ""
    guarantor_phone: str = ""
    collateral: str = ""
    notes: str = ""
    loan_limit: Optional[int] = None
    referrer_id: Optional[str] = None
    status: ClientStatus = ClientStatus.ACTIVE
    pending_redirection_balance: int = 0
    redirection_wait_days: Optional[int] = None


@dataclass(frozen=True)
class Transaction:
    """Immutable ledger entry owned by exactly one client"""

    id: str
    client_id: str
    date: date
    type: TransactionType
    amount: int
    interest_paid: int = 0
    capital_paid: int = 0
    balance_after: int = 0
    bank_account_id: Optional[str] = None
    related_client_id: Optional[str] = None
    redirection_id: Optional[str] = None
    receipt_url: Optional[str] = None
    notes: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class BankAccount:
    """Treasury bucket: a bank account or a cash box"""

    id: str
    name: str
    balance: int = 0
    account_number: str = ""
    is_cash: bool = False


@dataclass(frozen=True)
class TreasuryMovement:
    """Bank-internal deposit or withdrawal"""

    id: str
    bank_account_id: str
    type: TreasuryMovementType
    amount: int
    date: date
    notes: str = ""
    client_id: Optional[str] = None
    redirection_id: Optional[str] = None


@dataclass(frozen=True)
class LoanProjection:
    """Output of the amortization calculator"""

    quota: int
    total_interest: int
    total_installments: int
    first_period_interest: int


@dataclass(frozen=True)
class InstallmentSplit:
    """Suggested split of the next collection into capital and interest"""

    capital: int
    interest: int
    total: int


@dataclass(frozen=True)
class RedirectionStatus:
    state: RedirectionState
    remaining_wait_days: Optional[int]
    pending_balance: int


@dataclass(frozen=True)
class ClientSummary:
    """Roll-up of a client's ledger for profitability reporting"""

    current_balance: int
    total_disbursed: int
    capital_returned: int
    interest_earned: int
    transaction_count: int


# Ledger inputs. Each variant carries only the fields that matter to it.


@dataclass(frozen=True)
class DisbursementEvent:
    """New money lent from treasury; recorded as REFINANCE when debt is already open"""

    amount: int
    bank_account_id: Optional[str] = None


@dataclass(frozen=True)
class PaymentEvent:
    """Collection from the client split into capital and interest"""

    capital: int
    interest: int = 0
    bank_account_id: Optional[str] = None


@dataclass(frozen=True)
class RedirectionEvent:
    """One leg of a transfer between two clients, outside treasury"""

    incoming: bool
    amount: int
    related_client_id: Optional[str] = None
    redirection_id: Optional[str] = None
    interest: int = 0


@dataclass(frozen=True)
class SettlementEvent:
    """Explicit loan closure; the balance drops to zero"""

    amount: int = 0
    interest: int = 0
    bank_account_id: Optional[str] = None


LedgerEvent = Union[DisbursementEvent, PaymentEvent, RedirectionEvent, SettlementEvent]
