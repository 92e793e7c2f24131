"""
Admin reporting endpoints
"""

from datetime import date, datetime
from typing import List, Optional, Union
from fastapi import APIRouter, Depends, Query

from .auth import BrokerageSystem, get_brokerage_system, get_caller
from .schemas import ProfessionResponse, ClientSpendingResponse
from ..models import CallerIdentity
from ..exceptions import InvalidDateRange, NotFound


router = APIRouter()


def _parse_bound(name: str, value: str) -> Union[date, datetime]:
    """Accept a plain ISO date (whole day) or a full ISO datetime"""
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidDateRange(f"{name} must be an ISO date or datetime, got {value!r}")


@router.get("/best-profession", response_model=ProfessionResponse)
def best_profession(
    start: str = Query(..., description="Range start, ISO date or datetime"),
    end: str = Query(..., description="Range end (inclusive), ISO date or datetime"),
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Profession that earned the most for jobs paid in the range"""
    result = system.reporting_engine.best_profession(
        _parse_bound("start", start), _parse_bound("end", end)
    )
    if result is None:
        raise NotFound("No paid jobs in range")
    return ProfessionResponse.from_earnings(result)


@router.get("/best-clients", response_model=List[ClientSpendingResponse])
def best_clients(
    start: str = Query(..., description="Range start, ISO date or datetime"),
    end: str = Query(..., description="Range end (inclusive), ISO date or datetime"),
    limit: Optional[int] = Query(None, description="Number of clients, default 2"),
    caller: CallerIdentity = Depends(get_caller),
    system: BrokerageSystem = Depends(get_brokerage_system)
):
    """Clients that paid the most for jobs paid in the range"""
    results = system.reporting_engine.best_clients(
        _parse_bound("start", start), _parse_bound("end", end), limit=limit
    )
    return [ClientSpendingResponse.from_spending(r) for r in results]
