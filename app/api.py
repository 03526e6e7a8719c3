"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import (
    CarbonIntensityRequest,
    CarbonIntensityResponse,
    ErrorDetail,
    IntervalOut,
)
from services.aggregator import CarbonIntensityAggregator, build_default_aggregator
from services.errors import CarbonIntensityError, ValidationError

router = APIRouter()


def get_aggregator() -> CarbonIntensityAggregator:
    return build_default_aggregator()


def _error_status(error: CarbonIntensityError) -> int:
    if isinstance(error, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


@router.post(
    "/carbon-intensity",
    response_model=CarbonIntensityResponse,
    summary="Annotate usage intervals with average grid carbon intensity.",
)
async def annotate_intervals(
    payload: CarbonIntensityRequest,
    aggregator: CarbonIntensityAggregator = Depends(get_aggregator),
) -> CarbonIntensityResponse:
    records = [interval.to_record() for interval in payload.intervals]
    outcome = await aggregator.run(records)
    if outcome.error is not None:
        error = outcome.error
        detail = ErrorDetail(
            kind=error.kind,
            message=str(error),
            index=getattr(error, "index", None),
            field=getattr(error, "field", None),
        )
        raise HTTPException(status_code=_error_status(error), detail=detail.model_dump())
    return CarbonIntensityResponse(
        intervals=[IntervalOut.from_record(record) for record in outcome.intervals]
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
