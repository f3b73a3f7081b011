"""
deployment_events.py

Translation of provider (Railway) webhook events into this project's event vocabulary.

This module is the "business" part of webhook processing, separate from Flask routing:
- `app.py` verifies the signature, parses the JSON and delegates here
- this module decides the normalized event kind and the human readable message

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from alert_helpers import safe_get

DEFAULT_ENVIRONMENT = "production"
UNKNOWN_EVENT = "unknown"


class EventKind(str, Enum):
    """Internal event kinds understood by the dashboards (each has its own icon and sound)."""

    BUILD_START = "build_start"
    QUEUED = "queued"
    BUILDING = "building"
    BUILD_SUCCESS = "build_success"
    BUILD_FAILURE = "build_failure"
    DEPLOYING = "deploying"
    DEPLOYMENT_SUCCESS = "deployment_success"
    DEPLOYMENT_FAILURE = "deployment_failure"
    SERVICE_CRASH = "service_crash"
    SLEEPING = "sleeping"
    REMOVED = "removed"
    SKIPPED = "skipped"


class RailwayEventType(str, Enum):
    INITIALIZE = "deployment.initialize"
    QUEUED = "deployment.queued"
    BUILDING = "deployment.building"
    DEPLOYING = "deployment.deploying"
    SUCCESS = "deployment.success"
    FAILED = "deployment.failed"
    CRASHED = "deployment.crashed"
    SLEEPING = "deployment.sleeping"
    REMOVED = "deployment.removed"
    SKIPPED = "deployment.skipped"

    @classmethod
    def parse(cls, raw: str) -> Optional["RailwayEventType"]:
        """Return the matching member, or None for event types we don't know (pass-through)."""
        try:
            return cls(raw)
        except ValueError:
            return None


_KIND_BY_PROVIDER_TYPE: Dict[RailwayEventType, EventKind] = {
    RailwayEventType.INITIALIZE: EventKind.BUILD_START,
    RailwayEventType.QUEUED: EventKind.QUEUED,
    RailwayEventType.BUILDING: EventKind.BUILDING,
    RailwayEventType.DEPLOYING: EventKind.DEPLOYING,
    RailwayEventType.SUCCESS: EventKind.DEPLOYMENT_SUCCESS,
    RailwayEventType.FAILED: EventKind.DEPLOYMENT_FAILURE,
    RailwayEventType.CRASHED: EventKind.SERVICE_CRASH,
    RailwayEventType.SLEEPING: EventKind.SLEEPING,
    RailwayEventType.REMOVED: EventKind.REMOVED,
    RailwayEventType.SKIPPED: EventKind.SKIPPED,
}


class MappedEvent(NamedTuple):
    kind: str
    message: str


def event_type_of(payload: Any) -> str:
    raw = safe_get(payload, "type")
    s = str(raw).strip() if raw is not None else ""
    return s or UNKNOWN_EVENT


def environment_name_of(payload: Any) -> str:
    name = safe_get(safe_get(payload, "environment"), "name")
    s = str(name).strip() if name is not None else ""
    return s or DEFAULT_ENVIRONMENT


def normalize_event_type(event_type: str) -> str:
    """
    Provider event type -> internal event kind.
    Unknown provider types are returned unchanged so new Railway events still reach the dashboards.
    """
    provider_type = RailwayEventType.parse(event_type)
    if provider_type is None:
        return event_type
    return _KIND_BY_PROVIDER_TYPE[provider_type].value


def describe_event(event_type: str, environment: str, url: Optional[str] = None) -> str:
    """Human readable summary, chosen from the ORIGINAL provider event type."""
    provider_type = RailwayEventType.parse(event_type)

    if provider_type is RailwayEventType.INITIALIZE:
        return f"Deployment initializing in {environment}"
    if provider_type is RailwayEventType.QUEUED:
        return f"Deployment queued in {environment}"
    if provider_type is RailwayEventType.BUILDING:
        return f"Building deployment for {environment}"
    if provider_type is RailwayEventType.DEPLOYING:
        return f"Deploying to {environment}"
    if provider_type is RailwayEventType.SUCCESS:
        if url:
            return f"Successfully deployed to {environment} at {url}"
        return f"Successfully deployed to {environment}"
    if provider_type is RailwayEventType.FAILED:
        return f"Deployment failed in {environment}"
    if provider_type is RailwayEventType.CRASHED:
        return f"Service crashed in {environment}"
    if provider_type is RailwayEventType.SLEEPING:
        return f"Service is sleeping in {environment}"
    if provider_type is RailwayEventType.REMOVED:
        return f"Deployment removed from {environment}"
    if provider_type is RailwayEventType.SKIPPED:
        return f"Deployment skipped in {environment}"
    return f"{event_type} in {environment}"


def map_event(payload: Dict[str, Any]) -> MappedEvent:
    """Webhook payload -> (normalized event kind, message)."""
    event_type = event_type_of(payload)
    url = safe_get(safe_get(payload, "deployment"), "url") or None
    return MappedEvent(
        kind=normalize_event_type(event_type),
        message=describe_event(event_type, environment_name_of(payload), str(url) if url else None),
    )


def provider_metadata(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Raw provider fields kept alongside webhook notifications (`providerMetadata`)."""
    project = safe_get(payload, "project")
    deployment = safe_get(payload, "deployment")
    return {
        "eventType": event_type_of(payload),
        "projectId": safe_get(project, "id"),
        "deploymentId": safe_get(deployment, "id"),
        "environment": environment_name_of(payload),
        "status": safe_get(deployment, "status"),
        "url": safe_get(deployment, "url"),
    }
