"""Legacy ledger, score, simulation clock and saved world endpoints."""

from fastapi import APIRouter, HTTPException

from backend import session, storage

from .models import AdvanceBody, SaveWorldBody, ScoreBody

router = APIRouter()


@router.get("/ledger")
async def get_ledger():
    """Legends, schools, guilds, artifacts, memory moments and the refugee network."""
    return session.get_world().engine.ledger_snapshot()


@router.get("/score")
async def get_score():
    return session.get_world().score()


@router.post("/score")
async def score_with_thresholds(body: ScoreBody):
    """Score with per-call outcome thresholds merged over the configured ones."""
    return session.get_world().score(body.thresholds)


@router.get("/world")
async def get_world_state():
    """Clock state plus counts for the live world."""
    world = session.get_world()
    return {
        "clock": world.clock.to_dict(),
        "techs": len(world.graph),
        "active_events": len(world.engine.active_events()),
        "resolved_events": len(world.engine.resolved_events()),
    }


@router.post("/world/advance")
async def advance_world(body: AdvanceBody):
    """Advance the clock: event progress plus scheduled tech decay."""
    world = session.get_world()
    if body.time_scale is not None:
        world.clock.set_time_scale(body.time_scale)
    elapsed = world.advance(body.delta)
    return {"elapsed": elapsed, "clock": world.clock.to_dict()}


@router.post("/world/pause")
async def pause_world():
    world = session.get_world()
    world.clock.pause()
    return world.clock.to_dict()


@router.post("/world/resume")
async def resume_world():
    world = session.get_world()
    world.clock.resume()
    return world.clock.to_dict()


@router.post("/world/reset")
async def reset_world():
    """Discard the live world and start a new one from the current settings."""
    session.reset_world()
    return {"ok": True}


@router.get("/worlds")
async def list_worlds():
    return storage.list_worlds()


@router.post("/worlds")
async def save_world(body: SaveWorldBody):
    """Save the live world under a name. Overwrites an existing save with the same slug."""
    return {"slug": session.save_current(body.name)}


@router.post("/worlds/{slug}/load")
async def load_world(slug: str):
    """Replace the live world with a saved one."""
    if session.load_saved(slug) is None:
        raise HTTPException(404, "World not found")
    return {"ok": True}


@router.delete("/worlds/{slug}")
async def delete_world(slug: str):
    if not storage.delete_world(slug):
        raise HTTPException(404, "World not found")
    return {"ok": True}
