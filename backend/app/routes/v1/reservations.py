# backend/app/routes/v1/reservations.py
"""
Reservation routes - API v1

Versioned reservation endpoints under /api/v1/reservations.
All business logic delegated to ReservationService and ConflictChecker.

Endpoints:
    POST /preview - Validation errors and cost preview without booking
    GET /gaps - Free stretches of a day's operating window
    GET /slots - Bookable fixed-length slots of a day
    GET /availability - Whether a time range is free
    GET /usage - Owner's hours and cost for a month
    POST / - Create a reservation
    GET /{reservation_id} - Reservation details
    PATCH /{reservation_id} - Move or resize a reservation
    POST /{reservation_id}/confirm - Confirm a pending reservation
    POST /{reservation_id}/cancel - Cancel a reservation
"""

import asyncio
from datetime import date, datetime
import logging
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_conflict_checker,
    get_current_user_id,
    get_reservation_service,
)
from ...core.exceptions import DomainException, NotFoundException, ValidationException
from ...core.timezone_utils import to_space_time
from ...models.reservation import Reservation
from ...schemas.reservation import (
    AvailabilityResponse,
    CostBreakdownResponse,
    GapsResponse,
    ReservationCancel,
    ReservationCreate,
    ReservationPreviewRequest,
    ReservationPreviewResponse,
    ReservationResponse,
    ReservationUpdate,
    TimeGap,
)
from ...services.conflict_checker import ConflictChecker
from ...services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["reservations-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _owned_reservation(
    service: ReservationService, reservation_id: str, user_id: str
) -> Reservation:
    reservation = service.get_reservation(reservation_id)
    if reservation.user_id != user_id:
        # Other members' bookings are indistinguishable from missing ones.
        raise NotFoundException(
            f"Reservation {reservation_id} not found", code="RESERVATION_NOT_FOUND"
        )
    return reservation


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post("/preview", response_model=ReservationPreviewResponse)
async def preview_reservation(
    payload: ReservationPreviewRequest,
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationPreviewResponse:
    """Report every failed rule and the price, without booking."""
    try:
        preview = await asyncio.to_thread(
            service.preview, user_id, payload.reserved_at, payload.reserved_until
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationPreviewResponse(
        is_valid=preview.is_valid,
        errors=preview.errors,
        conflicts=preview.conflicts,
        cost=CostBreakdownResponse(**preview.cost.to_dict()) if preview.cost else None,
    )


@router.get("/gaps", response_model=GapsResponse)
async def get_available_gaps(
    day: date = Query(..., alias="date"),
    minimum_minutes: int = Query(60, ge=1, le=24 * 60),
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> GapsResponse:
    """Free stretches of the operating window at least ``minimum_minutes`` long."""
    gaps = await asyncio.to_thread(checker.find_available_gaps, day, minimum_minutes)
    return GapsResponse(
        date=day,
        minimum_minutes=minimum_minutes,
        gaps=[
            TimeGap(start=gap.start, end=gap.end, duration_minutes=gap.duration_minutes)
            for gap in gaps
        ],
    )


@router.get("/slots", response_model=List[TimeGap])
async def get_available_slots(
    day: date = Query(..., alias="date"),
    duration_hours: float = Query(1, gt=0, le=24),
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> List[TimeGap]:
    slots = await asyncio.to_thread(checker.get_available_time_slots, day, duration_hours)
    return [
        TimeGap(start=slot.start, end=slot.end, duration_minutes=slot.duration_minutes)
        for slot in slots
    ]


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    start: datetime = Query(...),
    end: datetime = Query(...),
    exclude_reservation_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailabilityResponse:
    """Whether anything holds the space during ``[start, end)``."""
    start, end = to_space_time(start), to_space_time(end)
    if end <= start:
        handle_domain_exception(
            ValidationException("End time must be after start time.", code="INVALID_TIME_RANGE")
        )
    available = await asyncio.to_thread(
        checker.is_time_slot_available, start, end, exclude_reservation_id
    )
    return AvailabilityResponse(start=start, end=end, available=available)


@router.get("/usage")
async def get_monthly_usage(
    month: str = Query(..., pattern=r"^\d{4}-\d{2}$"),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> Dict[str, Any]:
    try:
        first = datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": f"Invalid month {month}", "code": "INVALID_MONTH"},
        )
    usage = await asyncio.to_thread(service.get_user_usage_for_month, user_id, first)
    return {
        "user_id": usage.user_id,
        "month": usage.month,
        "reservations": usage.reservations,
        "total_hours": float(usage.total_hours),
        "free_hours": float(usage.free_hours),
        "cost": float(usage.cost),
    }


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    """Book the space. A 400 carries every failed rule in ``details.errors``."""
    try:
        reservation = await asyncio.to_thread(
            lambda: service.create(
                user_id,
                payload.reserved_at,
                payload.reserved_until,
                notes=payload.notes,
                credit_hours=payload.credit_hours,
                production_id=payload.production_id,
            )
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)


# ============================================================================
# SECTION 2: Reservation-specific routes
# ============================================================================


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        reservation = await asyncio.to_thread(
            _owned_reservation, service, reservation_id, user_id
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)


@router.patch("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation(
    payload: ReservationUpdate,
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    def _update() -> Reservation:
        _owned_reservation(service, reservation_id, user_id)
        return service.update(
            reservation_id, payload.reserved_at, payload.reserved_until, notes=payload.notes
        )

    try:
        reservation = await asyncio.to_thread(_update)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
async def confirm_reservation(
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    def _confirm() -> Reservation:
        _owned_reservation(service, reservation_id, user_id)
        return service.confirm(reservation_id)

    try:
        reservation = await asyncio.to_thread(_confirm)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    payload: Optional[ReservationCancel] = None,
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    def _cancel() -> Reservation:
        _owned_reservation(service, reservation_id, user_id)
        return service.cancel(reservation_id, payload.reason if payload else None)

    try:
        reservation = await asyncio.to_thread(_cancel)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ReservationResponse.model_validate(reservation)
