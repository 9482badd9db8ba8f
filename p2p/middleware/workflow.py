from fastapi import Request

from p2p.services.store import EntityStore
from p2p.services.workflow_service import WorkflowEngine


def get_store(request: Request) -> EntityStore:
    """FastAPI dependency: the entity store opened in the app lifespan."""
    return request.app.state.store


def get_engine(request: Request) -> WorkflowEngine:
    return request.app.state.engine
