"""Unit tests for the redirection workflow"""

import pytest
from dataclasses import replace
from datetime import date
from loan_core.domain.exceptions import ChainIntegrityViolation, InsufficientTreasuryFunds, OverpaymentRejected
from loan_core.domain.ledger import recompute_chain
from loan_core.domain.models import RedirectionState, TransactionType, TreasuryMovementType
from loan_core.domain.redirection import (
    find_orphaned_legs,
    fund_redirection,
    open_redirection,
    redirect_payment,
    redirection_status,
    resolve_by_disbursement,
    resolve_from_treasury,
)


@pytest.fixture
def waiting(second_borrower):
    """Client B opened a 300.000 redirection on 2024-03-10 with a 3 day wait"""
    return open_redirection(second_borrower, [], 300_000, 3, date(2024, 3, 10))


def test_open_recognizes_debt(waiting, second_borrower):
    assert waiting.state == RedirectionState.WAITING
    assert waiting.incoming.type == TransactionType.REDIRECT_IN
    assert waiting.incoming.balance_after == 300_000
    assert waiting.incoming.redirection_id
    assert waiting.recipient.pending_redirection_balance == 300_000
    assert second_borrower.pending_redirection_balance == 0


def test_status_waiting_then_overdue(waiting):
    status = redirection_status(waiting.recipient, date(2024, 3, 12))
    assert status.state == RedirectionState.WAITING
    assert status.remaining_wait_days == 1

    status = redirection_status(waiting.recipient, date(2024, 3, 15))
    assert status.state == RedirectionState.OVERDUE
    assert status.remaining_wait_days == -2
    assert status.pending_balance == 300_000


def test_status_none_when_nothing_pending(borrower):
    assert redirection_status(borrower, date(2024, 3, 15)).state == RedirectionState.NONE


def test_partial_then_full_funding(borrower, disbursed_chain, waiting):
    partial = fund_redirection(
        borrower, disbursed_chain, waiting.recipient, [waiting.incoming], 100_000, date(2024, 3, 11), interest_paid=20_000
    )
    assert partial.state == RedirectionState.WAITING
    assert partial.outgoing.type == TransactionType.REDIRECT_OUT
    assert partial.outgoing.balance_after == 700_000
    assert partial.outgoing.interest_paid == 20_000
    assert partial.outgoing.related_client_id == waiting.recipient.id
    assert partial.outgoing.redirection_id == waiting.incoming.redirection_id
    assert partial.recipient.pending_redirection_balance == 200_000

    full = fund_redirection(
        borrower,
        disbursed_chain + [partial.outgoing],
        partial.recipient,
        [waiting.incoming],
        200_000,
        date(2024, 3, 12),
    )
    assert full.state == RedirectionState.RESOLVED
    assert full.recipient.pending_redirection_balance == 0
    assert redirection_status(full.recipient, date(2024, 3, 20)).state == RedirectionState.NONE


def test_funding_above_pending_rejected(borrower, disbursed_chain, waiting):
    with pytest.raises(OverpaymentRejected):
        fund_redirection(borrower, disbursed_chain, waiting.recipient, [waiting.incoming], 300_001, date(2024, 3, 11))


def test_funding_above_payer_debt_rejected(borrower, disbursed_chain, second_borrower):
    big = open_redirection(second_borrower, [], 900_000, 3, date(2024, 3, 10))

    with pytest.raises(OverpaymentRejected):
        fund_redirection(borrower, disbursed_chain, big.recipient, [big.incoming], 800_001, date(2024, 3, 11))


def test_funding_requires_open_redirection(borrower, disbursed_chain, second_borrower):
    with pytest.raises(ChainIntegrityViolation):
        fund_redirection(borrower, disbursed_chain, second_borrower, [], 100_000, date(2024, 3, 11))


def test_direct_redirection_writes_both_legs(borrower, disbursed_chain, second_borrower):
    result = redirect_payment(borrower, disbursed_chain, second_borrower, [], 300_000, date(2024, 3, 1))

    assert result.outgoing.balance_after == 500_000
    assert result.incoming.balance_after == 300_000
    assert result.outgoing.redirection_id == result.incoming.redirection_id
    assert result.incoming.related_client_id == borrower.id
    assert result.outgoing.related_client_id == second_borrower.id
    assert find_orphaned_legs([result.outgoing, result.incoming]) == []


def test_direct_redirection_all_or_nothing(borrower, disbursed_chain, second_borrower):
    with pytest.raises(OverpaymentRejected):
        redirect_payment(borrower, disbursed_chain, second_borrower, [], 900_000, date(2024, 3, 1))

    with pytest.raises(ChainIntegrityViolation):
        redirect_payment(borrower, disbursed_chain, borrower, disbursed_chain, 100_000, date(2024, 3, 1))


def test_orphaned_legs(borrower, disbursed_chain, second_borrower, waiting):
    direct = redirect_payment(borrower, disbursed_chain, second_borrower, [waiting.incoming], 100_000, date(2024, 3, 11))
    stray_out = replace(direct.outgoing, id="stray", redirection_id="unknown")
    legacy = replace(direct.incoming, id="legacy", redirection_id=None)

    orphans = find_orphaned_legs([waiting.incoming, direct.incoming, stray_out, legacy])

    # The open redirection still waits for funding and is not an orphan
    assert {t.id for t in orphans} == {direct.incoming.id, "stray", "legacy"}


def test_resolve_from_treasury(waiting, vault):
    result, account, movement = resolve_from_treasury(
        waiting.recipient, [waiting.incoming], vault, 300_000, date(2024, 3, 14)
    )

    assert result.state == RedirectionState.RESOLVED
    assert account.balance == 200_000
    assert movement.type == TreasuryMovementType.WITHDRAWAL
    assert movement.redirection_id == waiting.incoming.redirection_id
    assert movement.client_id == waiting.recipient.id


def test_resolve_from_treasury_needs_funds(second_borrower, vault):
    big = open_redirection(second_borrower, [], 900_000, 3, date(2024, 3, 10))

    with pytest.raises(InsufficientTreasuryFunds):
        resolve_from_treasury(big.recipient, [big.incoming], vault, 600_000, date(2024, 3, 14))


def test_redirection_legs_survive_recompute(borrower, disbursed_chain, second_borrower):
    result = redirect_payment(borrower, disbursed_chain, second_borrower, [], 300_000, date(2024, 3, 1))

    rebuilt = recompute_chain(borrower.id, disbursed_chain + [result.outgoing])

    assert rebuilt[-1].balance_after == 500_000


def test_manual_disbursement_resolves_pending(waiting):
    client, state = resolve_by_disbursement(waiting.recipient)

    assert state == RedirectionState.RESOLVED
    assert client.pending_redirection_balance == 0
    assert redirection_status(client, date(2024, 3, 20)).state == RedirectionState.NONE


def test_manual_disbursement_without_pending(borrower):
    client, state = resolve_by_disbursement(borrower)

    assert state == RedirectionState.NONE
    assert client is borrower
