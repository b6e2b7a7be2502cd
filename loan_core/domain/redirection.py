"""Redirection workflow: a client's payment funds another client's loan directly"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Sequence
from loan_core.domain.models import (
    BankAccount,
    Client,
    RedirectionEvent,
    RedirectionState,
    RedirectionStatus,
    Transaction,
    TransactionType,
    TreasuryMovement,
    TreasuryMovementType,
    new_id,
)
from loan_core.domain.exceptions import ChainIntegrityViolation, InvalidLoanTerms, OverpaymentRejected
from loan_core.domain.ledger import append_transaction, chain_order_key, chain_tail
from loan_core.domain.treasury import record_movement
from loan_core.utils.date_utils import days_between


@dataclass(frozen=True)
class RedirectionResult:
    """Outcome of a redirection step: the ledger legs and the updated clients"""

    state: RedirectionState
    recipient: Client
    incoming: Optional[Transaction] = None
    outgoing: Optional[Transaction] = None
    payer: Optional[Client] = None


def redirection_status(client: Client, today: date) -> RedirectionStatus:
    """
    Where the client stands while waiting for redirected funds.

    OVERDUE is derived, never stored: the client is still waiting and more
    days have passed since the credit start than the agreed wait.
    """
    pending = client.pending_redirection_balance or 0
    if pending <= 0:
        return RedirectionStatus(state=RedirectionState.NONE, remaining_wait_days=None, pending_balance=0)

    days_passed = days_between(client.credit_start_date, today)
    remaining = (client.redirection_wait_days or 0) - days_passed
    state = RedirectionState.OVERDUE if remaining < 0 else RedirectionState.WAITING
    return RedirectionStatus(state=state, remaining_wait_days=remaining, pending_balance=pending)


def open_redirection(
    client: Client,
    chain: Sequence[Transaction],
    amount: int,
    wait_days: int,
    on_date: date,
    notes: str = "",
) -> RedirectionResult:
    """
    Lend money that another client's payments will deliver later.

    The debt is recognized now through a REDIRECT_IN leg, and the client
    waits up to wait_days for the funds.
    """
    if wait_days < 0:
        raise InvalidLoanTerms(f"Wait days cannot be negative, got {wait_days}")

    incoming = append_transaction(
        client,
        chain_tail(chain),
        RedirectionEvent(incoming=True, amount=amount, redirection_id=new_id()),
        on_date,
        notes=notes,
    )
    recipient = replace(
        client,
        pending_redirection_balance=(client.pending_redirection_balance or 0) + amount,
        redirection_wait_days=wait_days,
    )
    return RedirectionResult(state=RedirectionState.WAITING, recipient=recipient, incoming=incoming)


def open_redirection_id(chain: Sequence[Transaction]) -> Optional[str]:
    """redirection_id of the latest REDIRECT_IN leg on the chain"""
    incoming = [t for t in chain if t.type == TransactionType.REDIRECT_IN and t.redirection_id]
    if not incoming:
        return None
    return max(incoming, key=chain_order_key).redirection_id


def _reduce_pending(recipient: Client, amount: int) -> tuple[Client, RedirectionState]:
    pending = recipient.pending_redirection_balance or 0
    if amount > pending:
        raise OverpaymentRejected(amount, pending)
    remaining = pending - amount
    state = RedirectionState.RESOLVED if remaining == 0 else RedirectionState.WAITING
    return replace(recipient, pending_redirection_balance=remaining), state


def fund_redirection(
    payer: Client,
    payer_chain: Sequence[Transaction],
    recipient: Client,
    recipient_chain: Sequence[Transaction],
    amount: int,
    on_date: date,
    interest_paid: int = 0,
    notes: str = "",
) -> RedirectionResult:
    """
    Route a payer's collection to a client who is waiting for funds.

    The REDIRECT_OUT leg joins the recipient's open REDIRECT_IN through its
    redirection_id. When the pending balance reaches zero the redirection
    is RESOLVED.

    Raises:
        ChainIntegrityViolation: recipient has no open redirection, or the
            payer and recipient are the same client
        OverpaymentRejected: amount above the payer's debt or above what the
            recipient is still owed
    """
    if payer.id == recipient.id:
        raise ChainIntegrityViolation("A client cannot fund its own redirection")
    redirection_id = open_redirection_id(recipient_chain)
    if redirection_id is None or (recipient.pending_redirection_balance or 0) <= 0:
        raise ChainIntegrityViolation(f"Client {recipient.id} is not waiting for redirected funds")

    updated_recipient, state = _reduce_pending(recipient, amount)
    outgoing = append_transaction(
        payer,
        chain_tail(payer_chain),
        RedirectionEvent(
            incoming=False,
            amount=amount,
            related_client_id=recipient.id,
            redirection_id=redirection_id,
            interest=interest_paid,
        ),
        on_date,
        notes=notes,
    )
    return RedirectionResult(state=state, recipient=updated_recipient, outgoing=outgoing, payer=payer)


def redirect_payment(
    payer: Client,
    payer_chain: Sequence[Transaction],
    recipient: Client,
    recipient_chain: Sequence[Transaction],
    amount: int,
    on_date: date,
    interest_paid: int = 0,
    notes: str = "",
) -> RedirectionResult:
    """
    Turn a payer's collection into a new loan for the recipient at once.

    Both legs share one redirection_id and are built together: if either
    side is rejected, neither transaction exists.
    """
    if payer.id == recipient.id:
        raise ChainIntegrityViolation("A client cannot redirect a payment to itself")

    redirection_id = new_id()
    outgoing = append_transaction(
        payer,
        chain_tail(payer_chain),
        RedirectionEvent(
            incoming=False,
            amount=amount,
            related_client_id=recipient.id,
            redirection_id=redirection_id,
            interest=interest_paid,
        ),
        on_date,
        notes=notes,
    )
    incoming = append_transaction(
        recipient,
        chain_tail(recipient_chain),
        RedirectionEvent(
            incoming=True,
            amount=amount,
            related_client_id=payer.id,
            redirection_id=redirection_id,
        ),
        on_date,
        notes=notes,
    )
    return RedirectionResult(
        state=RedirectionState.NONE,
        recipient=recipient,
        incoming=incoming,
        outgoing=outgoing,
        payer=payer,
    )


def resolve_by_disbursement(recipient: Client) -> tuple[Client, RedirectionState]:
    """
    A manual disbursement hands the client money directly, so whatever it
    was still waiting for through a redirection is no longer pending.

    Returns: (updated client, RESOLVED) or the client unchanged with NONE
    when nothing was pending.
    """
    if (recipient.pending_redirection_balance or 0) <= 0:
        return recipient, RedirectionState.NONE
    return replace(recipient, pending_redirection_balance=0), RedirectionState.RESOLVED


def resolve_from_treasury(
    recipient: Client,
    recipient_chain: Sequence[Transaction],
    account: BankAccount,
    amount: int,
    on_date: date,
    notes: str = "",
) -> tuple[RedirectionResult, BankAccount, TreasuryMovement]:
    """
    Deliver what a waiting client is owed from a bank account instead.

    The debt already exists through the REDIRECT_IN leg, so this only
    withdraws cash and lowers the pending balance.
    """
    redirection_id = open_redirection_id(recipient_chain)
    if redirection_id is None or (recipient.pending_redirection_balance or 0) <= 0:
        raise ChainIntegrityViolation(f"Client {recipient.id} is not waiting for redirected funds")

    updated_recipient, state = _reduce_pending(recipient, amount)
    updated_account, movement = record_movement(
        account,
        TreasuryMovementType.WITHDRAWAL,
        amount,
        on_date,
        notes=notes or f"Redirection delivered to {recipient.name}",
        client_id=recipient.id,
        redirection_id=redirection_id,
    )
    return RedirectionResult(state=state, recipient=updated_recipient), updated_account, movement


def find_orphaned_legs(transactions: Sequence[Transaction]) -> List[Transaction]:
    """
    Redirection legs whose counterpart is missing.

    A REDIRECT_OUT needs a REDIRECT_IN with the same redirection_id and vice
    versa, except that an opened redirection may still be waiting for its
    first funding leg. Legs without any redirection_id predate pairing and
    are always reported.
    """
    legs = [t for t in transactions if t.type in (TransactionType.REDIRECT_IN, TransactionType.REDIRECT_OUT)]
    incoming_ids: Dict[str, Transaction] = {
        t.redirection_id: t for t in legs if t.type == TransactionType.REDIRECT_IN and t.redirection_id
    }
    outgoing_ids = {t.redirection_id for t in legs if t.type == TransactionType.REDIRECT_OUT and t.redirection_id}

    orphans = []
    for leg in legs:
        if not leg.redirection_id:
            orphans.append(leg)
        elif leg.type == TransactionType.REDIRECT_OUT and leg.redirection_id not in incoming_ids:
            orphans.append(leg)
        elif (
            leg.type == TransactionType.REDIRECT_IN
            and leg.related_client_id
            and leg.redirection_id not in outgoing_ids
        ):
            # Direct redirections name their payer; the payer's leg must exist
            orphans.append(leg)
    return sorted(orphans, key=chain_order_key)
