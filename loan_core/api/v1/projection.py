"""POST /v1/projection - loan simulator run before a loan is committed"""

from fastapi import APIRouter, HTTPException

from loan_core.api.v1.schemas import (
    ProjectionRequest,
    ProjectionResponse,
    SimulationResponse,
    SplitRequest,
    SplitResponse,
)
from loan_core.domain.amortization import simulate_refinance, split_installment
from loan_core.domain.exceptions import InvalidLoanTerms

router = APIRouter()


@router.post("/projection", response_model=SimulationResponse)
def simulate_loan(request_body: ProjectionRequest):
    """
    Project quota, total interest and installment count.

    When current_debt is given the new money is added to it, as a refinance
    would. A non-positive principal yields no projection, even on open debt.
    """
    try:
        projection = simulate_refinance(
            request_body.current_debt,
            request_body.principal,
            request_body.monthly_rate,
            request_body.term_months,
            request_body.frequency,
            request_body.method,
        )
    except InvalidLoanTerms as e:
        raise HTTPException(status_code=422, detail=str(e))

    total_debt = request_body.current_debt + request_body.principal if request_body.current_debt > 0 else request_body.principal
    return SimulationResponse(
        total_debt=total_debt,
        projection=ProjectionResponse(**projection.__dict__) if projection else None,
    )


@router.post("/projection/split", response_model=SplitResponse)
def suggest_split(request_body: SplitRequest):
    """Suggest the capital / interest split of the next collection"""
    split = split_installment(
        request_body.balance,
        request_body.monthly_rate,
        request_body.frequency,
        request_body.quota,
    )
    return SplitResponse(capital=split.capital, interest=split.interest, total=split.total)
