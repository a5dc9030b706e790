from __future__ import annotations

from typing import List

from fastapi import APIRouter, Path

from ..appointments import create_appointment, sync_calendar_events
from ..db import (
    delete_appointment,
    get_appointment,
    list_appointments,
    list_upcoming_appointments,
    update_appointment,
)
from ..schemas import (
    Appointment,
    CalendarSyncPayload,
    CalendarSyncResult,
    CreateAppointmentPayload,
    UpdateAppointmentPayload,
)

router = APIRouter(prefix="/api", tags=["appointments"])


@router.get("/appointments/{user_id}", response_model=List[Appointment])
async def list_appointments_endpoint(user_id: int) -> List[Appointment]:
    return list_appointments(user_id)


@router.get("/appointments/{user_id}/upcoming", response_model=List[Appointment])
async def upcoming_appointments_endpoint(user_id: int) -> List[Appointment]:
    return list_upcoming_appointments(user_id)


@router.post("/appointments", response_model=Appointment)
async def create_appointment_endpoint(payload: CreateAppointmentPayload) -> Appointment:
    return create_appointment(payload)


@router.put("/appointments/{appointment_id}", response_model=Appointment)
async def update_appointment_endpoint(appointment_id: int, payload: UpdateAppointmentPayload) -> Appointment:
    updates = {key: getattr(payload, key) for key in payload.model_fields_set}
    if not updates:
        return get_appointment(appointment_id)
    return update_appointment(appointment_id, updates)


@router.delete("/appointments/{appointment_id}")
async def delete_appointment_endpoint(appointment_id: int) -> dict:
    delete_appointment(appointment_id)
    return {"message": "Appointment deleted successfully"}


@router.post("/calendar/sync/{source}", response_model=CalendarSyncResult)
async def calendar_sync_endpoint(
    payload: CalendarSyncPayload,
    source: str = Path(..., pattern="^(google|outlook)$"),
) -> CalendarSyncResult:
    return sync_calendar_events(source, payload)
