# backend/app/routes/v1/recurring_series.py
"""
Recurring series routes - API v1

Versioned endpoints under /api/v1/recurring-series.
All business logic delegated to RecurringReservationService.

Endpoints:
    POST / - Create a series and materialize its first window
    POST /validate - Conflict warnings for a proposed pattern
    GET /{series_id} - Series details
    GET /{series_id}/instances - Upcoming materialized occurrences
    POST /{series_id}/skip - Skip one occurrence
    POST /{series_id}/extend - Move the end date and backfill
    POST /{series_id}/cancel - Cancel the series and its future occurrences
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.params import Path

from ...api.dependencies import get_current_user_id, get_recurring_reservation_service
from ...core.exceptions import DomainException, NotFoundException
from ...models.recurring_series import RecurringSeries
from ...models.reservation import Reservation
from ...schemas.recurring_series import (
    PatternValidationRequest,
    PatternValidationResponse,
    PatternWarningResponse,
    RecurringSeriesCreate,
    RecurringSeriesResponse,
    SeriesCancelRequest,
    SeriesCancelResponse,
    SeriesExtendRequest,
    SeriesSkipRequest,
)
from ...schemas.reservation import ReservationResponse
from ...services.recurring_reservation_service import PatternWarning, RecurringReservationService
from .reservations import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recurring-series-v1"])


def _owned_series(
    service: RecurringReservationService, series_id: str, user_id: str
) -> RecurringSeries:
    series = service.get_series(series_id)
    if series.user_id != user_id:
        raise NotFoundException(f"Recurring series {series_id} not found", code="SERIES_NOT_FOUND")
    return series


@router.post("", response_model=RecurringSeriesResponse, status_code=status.HTTP_201_CREATED)
async def create_series(
    payload: RecurringSeriesCreate,
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> RecurringSeriesResponse:
    try:
        series = await asyncio.to_thread(
            lambda: service.create_series(
                user_id,
                payload.recurrence_rule,
                payload.series_start_date,
                payload.start_time,
                payload.end_time,
                end_date=payload.series_end_date,
                max_advance_days=payload.max_advance_days,
                notes=payload.notes,
            )
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return RecurringSeriesResponse.model_validate(series)


@router.post("/validate", response_model=PatternValidationResponse)
async def validate_pattern(
    payload: PatternValidationRequest,
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> PatternValidationResponse:
    """Warn about the first occurrences of a pattern that would collide with bookings."""

    def _validate() -> List[PatternWarning]:
        if payload.exclude_series_id:
            _owned_series(service, payload.exclude_series_id, user_id)
        return service.validate_pattern(
            payload.recurrence_rule,
            payload.series_start_date,
            payload.series_end_date,
            payload.start_time,
            payload.end_time,
            check_occurrences=payload.check_occurrences,
            exclude_series_id=payload.exclude_series_id,
        )

    try:
        warnings = await asyncio.to_thread(_validate)
    except DomainException as exc:
        handle_domain_exception(exc)
    return PatternValidationResponse(
        is_clear=not warnings,
        warnings=[PatternWarningResponse(**warning.to_dict()) for warning in warnings],
    )


@router.get("/{series_id}", response_model=RecurringSeriesResponse)
async def get_series(
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> RecurringSeriesResponse:
    try:
        series = await asyncio.to_thread(_owned_series, service, series_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return RecurringSeriesResponse.model_validate(series)


@router.get("/{series_id}/instances", response_model=List[ReservationResponse])
async def get_upcoming_instances(
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> List[ReservationResponse]:
    def _instances() -> List[Reservation]:
        _owned_series(service, series_id, user_id)
        return service.get_upcoming_instances(series_id, limit=limit)

    try:
        reservations = await asyncio.to_thread(_instances)
    except DomainException as exc:
        handle_domain_exception(exc)
    return [ReservationResponse.model_validate(r) for r in reservations]


@router.post("/{series_id}/skip", response_model=ReservationResponse)
async def skip_instance(
    payload: SeriesSkipRequest,
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> ReservationResponse:
    def _skip() -> Reservation:
        _owned_series(service, series_id, user_id)
        return service.skip_instance(series_id, payload.instance_date, payload.reason)

    try:
        reservation = await asyncio.to_thread(_skip)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)


@router.post("/{series_id}/extend", response_model=List[ReservationResponse])
async def extend_series(
    payload: SeriesExtendRequest,
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> List[ReservationResponse]:
    """Returns the reservations created for the newly opened dates."""

    def _extend() -> List[Reservation]:
        _owned_series(service, series_id, user_id)
        return service.extend_series(series_id, payload.series_end_date)

    try:
        created = await asyncio.to_thread(_extend)
    except DomainException as exc:
        handle_domain_exception(exc)
    return [ReservationResponse.model_validate(r) for r in created]


@router.post("/{series_id}/cancel", response_model=SeriesCancelResponse)
async def cancel_series(
    payload: Optional[SeriesCancelRequest] = None,
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: RecurringReservationService = Depends(get_recurring_reservation_service),
) -> SeriesCancelResponse:
    def _cancel() -> int:
        _owned_series(service, series_id, user_id)
        return service.cancel_series(series_id, payload.reason if payload else None)

    try:
        cancelled = await asyncio.to_thread(_cancel)
    except DomainException as exc:
        handle_domain_exception(exc)
    return SeriesCancelResponse(series_id=series_id, cancelled_reservations=cancelled)
