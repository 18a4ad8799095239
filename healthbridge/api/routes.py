"""
API Routes
===========
Device readings, emergencies, health alerts, user settings and chat.
"""

from typing import Any

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from healthbridge.api.schemas import (
    AcknowledgeAlertRequest,
    ChatRequest,
    CreateAlertRequest,
    ThresholdsUpdate,
)
from healthbridge.domain.models import AlertInput, EmergencyContact, ReadingSubmission, VitalType
from healthbridge.errors import InvalidInputError
from healthbridge.services.container import ServiceContainer

router = APIRouter()


def _services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _wire(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


@router.get("/health")
def health(request: Request):
    """Health check endpoint."""
    return _services(request).get_health_status()


@router.post("/device-reading")
async def submit_device_reading(submission: ReadingSubmission, request: Request):
    """Record a device reading and escalate if it breaches a threshold."""
    outcome = await _services(request).monitoring.record_reading(submission)
    return {"success": True, **_wire(outcome)}


@router.get("/device-reading")
def get_device_readings(
    request: Request,
    user_id: str | None = Query(default=None, alias="userId"),
    vital_type: VitalType | None = Query(default=None, alias="type"),
    limit: int = Query(default=100, ge=0),
    since: int = Query(default=0, ge=0),
):
    """Reading history for a user, newest first."""
    if not user_id:
        raise InvalidInputError("User ID is required")
    services = _services(request)
    readings = services.monitoring.history(user_id, vital_type, since or None, limit)
    return {
        "userId": user_id,
        "vitalSigns": [_wire(r) for r in readings],
        "thresholds": [_wire(t) for t in services.profiles.get_thresholds(user_id)],
    }


@router.post("/emergency")
async def raise_emergency(alert_input: AlertInput, request: Request):
    """Trigger an emergency manually, by voice, or from a device."""
    result = await _services(request).dispatcher.dispatch(alert_input)
    return {
        "success": True,
        "alert": _wire(result.alert),
        "channelsDelivered": result.channels_delivered,
        "emergencyServicesNotified": result.alert.emergency_services_notified,
    }


@router.get("/emergency")
def list_emergencies(
    request: Request,
    user_id: str | None = Query(default=None, alias="userId"),
    phone_number: str | None = Query(default=None, alias="phoneNumber"),
):
    alerts = _services(request).storage.alerts.list_emergency_alerts(
        user_id or None, phone_number or None
    )
    return {"alerts": [_wire(a) for a in alerts]}


@router.post("/alerts")
def create_alert(body: CreateAlertRequest, request: Request):
    alert = _services(request).health_alerts.create(
        phone_number=body.phone_number,
        message=body.message,
        user_id=body.user_id,
        priority=body.priority,
        category=body.category,
        source=body.source,
        location=body.location,
    )
    return {"success": True, "alert": _wire(alert)}


@router.get("/alerts")
def list_alerts(
    request: Request,
    user_id: str | None = Query(default=None, alias="userId"),
    phone_number: str | None = Query(default=None, alias="phoneNumber"),
):
    """Health alerts newest first, optionally filtered."""
    alerts = _services(request).health_alerts.list_alerts(user_id, phone_number)
    return {"alerts": [_wire(a) for a in alerts]}


@router.patch("/alerts")
def acknowledge_alert(body: AcknowledgeAlertRequest, request: Request):
    """Idempotent acknowledgement; unknown ids are a 404 and change nothing."""
    alert = _services(request).health_alerts.acknowledge(body.alert_id, body.acknowledged)
    return {"success": True, "alert": _wire(alert)}


@router.get("/users/{user_id}/thresholds")
def get_thresholds(user_id: str, request: Request):
    thresholds = _services(request).profiles.get_thresholds(user_id)
    return {"userId": user_id, "thresholds": [_wire(t) for t in thresholds]}


@router.put("/users/{user_id}/thresholds")
def replace_thresholds(user_id: str, body: ThresholdsUpdate, request: Request):
    thresholds = _services(request).profiles.replace_thresholds(user_id, body.thresholds)
    return {"userId": user_id, "thresholds": [_wire(t) for t in thresholds]}


@router.get("/users/{user_id}/contacts")
def list_contacts(user_id: str, request: Request):
    contacts = _services(request).profiles.list_contacts(user_id)
    return {"userId": user_id, "contacts": [_wire(c) for c in contacts]}


@router.post("/users/{user_id}/contacts")
def add_contact(user_id: str, contact: EmergencyContact, request: Request):
    contacts = _services(request).profiles.add_contact(user_id, contact)
    return {"userId": user_id, "contacts": [_wire(c) for c in contacts]}


@router.post("/chat")
def chat(body: ChatRequest, request: Request):
    """Auto-reply to an inbound chat message."""
    reply = _services(request).chat_responder.respond(body.sender, body.message)
    return {
        "success": True,
        "from": body.sender,
        "response": reply.model_dump(mode="json", by_alias=True, exclude_none=True),
    }
