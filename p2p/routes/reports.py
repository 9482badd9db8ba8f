from fastapi import APIRouter, Depends

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_engine
from p2p.schemas.report import StatusSummary
from p2p.services.identity import Identity
from p2p.services.workflow_service import WorkflowEngine

router = APIRouter()


@router.get("/summary", response_model=StatusSummary)
async def status_summary(
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.status_summary(identity)
