"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
import datetime as dt
from typing import List, Optional

from loan_core.domain.models import (
    ClientStatus,
    InterestMethod,
    PaymentFrequency,
    RedirectionState,
    TransactionType,
    TreasuryMovementType,
)


class LoanTerms(BaseModel):
    """Terms shared by the simulator and loan origination"""

    monthly_rate: float = Field(..., ge=0, description="Monthly nominal rate in percent")
    term_months: int = Field(1, ge=1)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    method: InterestMethod = InterestMethod.FIXED


class ProjectionRequest(LoanTerms):
    """Request body for POST /v1/projection"""

    principal: int = Field(..., description="New money lent, whole currency units")
    current_debt: int = Field(0, ge=0, description="Open debt the new money is added to")


class ProjectionResponse(BaseModel):
    quota: int
    total_interest: int
    total_installments: int
    first_period_interest: int


class SimulationResponse(BaseModel):
    """Response for POST /v1/projection; projection is null when principal <= 0"""

    total_debt: int
    projection: Optional[ProjectionResponse] = None


class SplitRequest(BaseModel):
    """Request body for POST /v1/projection/split"""

    balance: int = Field(..., ge=0)
    monthly_rate: float = Field(..., ge=0)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    quota: int = Field(0, ge=0)


class SplitResponse(BaseModel):
    capital: int
    interest: int
    total: int


class ClientCreateRequest(BaseModel):
    """Request body for POST /v1/clients"""

    name: str = Field(..., min_length=1)
    cedula: str = Field(..., min_length=1)
    credit_start_date: Optional[dt.date] = None
    card_code: str = ""
    phone: str = ""
    address: str = ""
    work_address: str = ""
    occupation: str = ""
    guarantor_name: str = ""
    guarantor_phone: str = ""
    collateral: str = ""
    notes: str = ""
    loan_limit: Optional[int] = Field(None, ge=0)
    referrer_id: Optional[str] = None

    interest_rate: Optional[float] = Field(None, ge=0)
    interest_method: InterestMethod = InterestMethod.FIXED
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    loan_term_months: int = Field(1, ge=1)

    initial_amount: int = Field(0, ge=0, description="Loan granted at origination, 0 for none")
    initial_bank_account_id: Optional[str] = None
    is_redirection: bool = False
    redirection_wait_days: Optional[int] = Field(None, ge=0)


class ClientUpdateRequest(BaseModel):
    """Request body for PATCH /v1/clients/{client_id}; omitted fields are unchanged"""

    name: Optional[str] = Field(None, min_length=1)
    card_code: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    work_address: Optional[str] = None
    occupation: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_phone: Optional[str] = None
    collateral: Optional[str] = None
    notes: Optional[str] = None
    loan_limit: Optional[int] = Field(None, ge=0)
    referrer_id: Optional[str] = None
    status: Optional[ClientStatus] = None
    next_payment_date: Optional[dt.date] = None

    interest_rate: Optional[float] = Field(None, ge=0)
    interest_method: Optional[InterestMethod] = None
    payment_frequency: Optional[PaymentFrequency] = None
    loan_term_months: Optional[int] = Field(None, ge=1)


class ClientSummarySchema(BaseModel):
    current_balance: int
    total_disbursed: int
    capital_returned: int
    interest_earned: int
    transaction_count: int


class RedirectionStatusSchema(BaseModel):
    state: RedirectionState
    remaining_wait_days: Optional[int] = None
    pending_balance: int


class ClientResponse(BaseModel):
    """Client with its ledger roll-up and derived flags"""

    id: str
    name: str
    cedula: str
    card_code: str
    status: ClientStatus
    credit_start_date: dt.date
    next_payment_date: Optional[dt.date] = None
    interest_rate: float
    interest_method: InterestMethod
    payment_frequency: PaymentFrequency
    loan_term_months: int
    installment_amount: Optional[int] = None
    installments_count: Optional[int] = None
    loan_limit: Optional[int] = None
    referrer_id: Optional[str] = None
    pending_redirection_balance: int
    redirection_wait_days: Optional[int] = None
    is_late: bool
    summary: ClientSummarySchema
    redirection: RedirectionStatusSchema


class TransactionRequest(BaseModel):
    """Request body for POST /v1/clients/{client_id}/transactions"""

    type: TransactionType
    amount: int = Field(0, ge=0, description="Capital portion")
    interest_paid: int = Field(0, ge=0)
    date: Optional[dt.date] = None
    bank_account_id: Optional[str] = None
    receipt_url: Optional[str] = None
    notes: str = ""
    next_payment_date: Optional[dt.date] = None

    # New loan terms for DISBURSEMENT / REFINANCE; omitted terms keep the client's
    interest_rate: Optional[float] = Field(None, ge=0)
    interest_method: Optional[InterestMethod] = None
    payment_frequency: Optional[PaymentFrequency] = None
    loan_term_months: Optional[int] = Field(None, ge=1)


class TransactionUpdateRequest(BaseModel):
    """Request body for PUT /v1/transactions/{transaction_id}"""

    amount: Optional[int] = Field(None, ge=0)
    interest_paid: Optional[int] = Field(None, ge=0)
    date: Optional[dt.date] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    client_id: str
    date: dt.date
    type: TransactionType
    amount: int
    interest_paid: int
    capital_paid: int
    balance_after: int
    bank_account_id: Optional[str] = None
    related_client_id: Optional[str] = None
    redirection_id: Optional[str] = None
    receipt_url: Optional[str] = None
    notes: str


class LedgerResponse(BaseModel):
    """Response for GET /v1/clients/{client_id}/transactions"""

    client_id: str
    transactions: List[TransactionResponse]


class OpenRedirectionRequest(BaseModel):
    """Request body for POST /v1/redirections/open"""

    client_id: str
    amount: int = Field(..., gt=0)
    wait_days: Optional[int] = Field(None, ge=0)
    date: Optional[dt.date] = None
    notes: str = ""


class RedirectPaymentRequest(BaseModel):
    """Request body for POST /v1/redirections/fund and /v1/redirections/direct"""

    payer_id: str
    recipient_id: str
    amount: int = Field(..., gt=0)
    interest_paid: int = Field(0, ge=0)
    date: Optional[dt.date] = None
    notes: str = ""


class TreasuryDeliveryRequest(BaseModel):
    """Request body for POST /v1/redirections/treasury"""

    recipient_id: str
    bank_account_id: str
    amount: int = Field(..., gt=0)
    date: Optional[dt.date] = None
    notes: str = ""


class RedirectionResponse(BaseModel):
    state: RedirectionState
    recipient_id: str
    pending_redirection_balance: int
    incoming: Optional[TransactionResponse] = None
    outgoing: Optional[TransactionResponse] = None


class OrphanResponse(BaseModel):
    """Response for GET /v1/redirections/orphans"""

    orphans: List[TransactionResponse]


class BankAccountRequest(BaseModel):
    """Request body for POST /v1/bank-accounts"""

    name: str = Field(..., min_length=1)
    account_number: str = ""
    is_cash: bool = False
    balance: int = Field(0, ge=0)


class BankAccountResponse(BaseModel):
    id: str
    name: str
    account_number: str
    is_cash: bool
    balance: int


class MovementRequest(BaseModel):
    """Request body for POST /v1/bank-accounts/{account_id}/movements"""

    type: TreasuryMovementType
    amount: int = Field(..., gt=0)
    date: Optional[dt.date] = None
    notes: str = ""


class MovementResponse(BaseModel):
    id: str
    bank_account_id: str
    type: TreasuryMovementType
    amount: int
    date: dt.date
    balance: int


class AuditEntry(BaseModel):
    id: str
    level: str
    action: str
    entity: str
    message: str
    details: Optional[str] = None
    actor: str
    created_at: str


class AuditLogResponse(BaseModel):
    """Response for GET /v1/audit-log"""

    entries: List[AuditEntry]
