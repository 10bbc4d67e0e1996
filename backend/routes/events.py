"""Event definitions, trigger/progress/resolve and memory choice endpoints."""

from fastapi import APIRouter, HTTPException

from ashbound.models import EVENT_KINDS

from backend import session

from .models import DefinitionBody, MemoryChoiceBody, ProgressBody, ResolveBody, TriggerBody

router = APIRouter()


def _check_kind(kind: str) -> None:
    if kind not in EVENT_KINDS:
        raise HTTPException(404, "Unknown event kind")


@router.get("/events/definitions")
async def list_definitions():
    """All registered definitions grouped by kind."""
    registry = session.get_world().engine.registry
    return {kind: [d.model_dump() for d in entries] for kind, entries in registry.all().items()}


@router.put("/events/definitions/{kind}/{type_key}")
async def put_definition(kind: str, type_key: str, body: DefinitionBody):
    """Create a definition, or update the given fields of an existing one."""
    _check_kind(kind)
    engine = session.get_world().engine
    existing = engine.registry.get(kind, type_key)
    data = existing.model_dump() if existing is not None else {}
    data.update(body.model_dump(exclude_none=True))
    definition = engine.register_definition(kind, type_key, data)
    if definition is None:
        raise HTTPException(422, "Invalid event definition")
    return definition


@router.post("/events/{kind}/trigger")
async def trigger_event(kind: str, body: TriggerBody):
    """Start an event from its definition."""
    _check_kind(kind)
    event = session.get_world().engine.trigger(kind, body.type, body.overrides)
    if event is None:
        raise HTTPException(404, "Event type not found")
    return event


@router.get("/events/active")
async def active_events(kind: str | None = None):
    """Active events, optionally filtered by kind."""
    if kind is not None:
        _check_kind(kind)
    return session.get_world().engine.active_events(kind)


@router.get("/events/resolved")
async def resolved_events(kind: str | None = None):
    """Resolved event history, optionally filtered by kind."""
    if kind is not None:
        _check_kind(kind)
    return session.get_world().engine.resolved_events(kind)


@router.post("/events/progress")
async def progress_events(body: ProgressBody):
    """Advance active events only (no decay). Returns the auto-resolved ones."""
    return {"resolved": session.get_world().engine.progress(body.elapsed)}


@router.get("/events/{kind}/{event_id}")
async def get_active_event(kind: str, event_id: int):
    _check_kind(kind)
    event = session.get_world().engine.get_active_event(kind, event_id)
    if event is None:
        raise HTTPException(404, "Active event not found")
    return event


@router.post("/events/{kind}/{event_id}/resolve")
async def resolve_event(kind: str, event_id: int, body: ResolveBody):
    """Finalise an active event with an optional resolution payload."""
    _check_kind(kind)
    event = session.get_world().engine.resolve(kind, event_id, body.resolution)
    if event is None:
        raise HTTPException(404, "Active event not found")
    return event


@router.post("/memory-choices")
async def record_memory_choice(body: MemoryChoiceBody):
    """Record a choice against a memory moment and apply its legacy effect."""
    return session.get_world().engine.record_memory_choice(
        body.moment_id, body.choice, prompt=body.prompt, context=body.context
    )


@router.get("/memory-moments")
async def list_memory_moments():
    return session.get_world().engine.get_memory_moments()
