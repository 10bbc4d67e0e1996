"""Tech graph endpoints: nodes, links, decay, relearn."""

from fastapi import APIRouter, HTTPException

from ashbound.models import ResilienceScore
from ashbound.tech_graph import TechNode

from backend import session

from .models import CreateTech, LinkBody, RelearnBody

router = APIRouter()


def _get_node(tech_id: str) -> TechNode:
    node = session.get_world().graph.get_node(tech_id)
    if node is None:
        raise HTTPException(404, "Tech not found")
    return node


@router.get("/tech")
async def list_tech():
    """All tech nodes as saved-world records."""
    return session.get_world().graph.serialize()


@router.post("/tech")
async def create_tech(body: CreateTech):
    """Add a tech node. Resilience defaults to the configured resistances."""
    world = session.get_world()
    if body.id in world.graph:
        raise HTTPException(409, "Tech already exists")
    resilience = world.new_resilience()
    if body.resilience:
        resilience = ResilienceScore.model_validate({**resilience.model_dump(), **body.resilience})
    node = world.graph.add_node(TechNode(body.id, body.name, body.state, resilience))
    return node.to_dict()


@router.get("/tech/{tech_id}")
async def get_tech(tech_id: str):
    return _get_node(tech_id).to_dict()


@router.delete("/tech/{tech_id}")
async def delete_tech(tech_id: str):
    """Remove a tech node and disconnect its links."""
    if not session.get_world().graph.remove_node(tech_id):
        raise HTTPException(404, "Tech not found")
    return {"ok": True}


@router.get("/tech-links")
async def list_links():
    """Every link once: {a, b, metadata}."""
    return [
        {"a": link.a.id, "b": link.b.id, "metadata": link.metadata}
        for link in session.get_world().graph.links()
    ]


@router.post("/tech/{tech_id}/links")
async def link_tech(tech_id: str, body: LinkBody):
    """Link two techs. Re-linking a connected pair updates the existing link."""
    node = _get_node(tech_id)
    other = _get_node(body.target)
    link = session.get_world().graph.create_link(node, other, body.metadata)
    if link is None:
        raise HTTPException(422, "A tech cannot be linked to itself")
    return {"a": link.a.id, "b": link.b.id, "metadata": link.metadata}


@router.delete("/tech/{tech_id}/links/{target}")
async def unlink_tech(tech_id: str, target: str):
    link = _get_node(tech_id).link_to(_get_node(target))
    if link is None:
        raise HTTPException(404, "Link not found")
    link.disconnect()
    return {"ok": True}


@router.post("/tech/{tech_id}/decay")
async def decay_tech(tech_id: str):
    """Apply one decay tick to a single tech."""
    node = _get_node(tech_id)
    node.apply_decay()
    return node.to_dict()


@router.post("/tech/{tech_id}/relearn")
async def relearn_tech(tech_id: str, body: RelearnBody):
    node = _get_node(tech_id)
    node.relearn(body.steps)
    return node.to_dict()
