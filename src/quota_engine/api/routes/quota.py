"""Quota maintenance endpoints."""

from fastapi import APIRouter

from quota_engine.api.dependencies import Engine
from quota_engine.api.schemas import ReconcileRequest, ReconcileResponse

router = APIRouter(prefix="/quota", tags=["quota"])


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(engine: Engine, payload: ReconcileRequest | None = None) -> ReconcileResponse:
    """Recompute cached totals from the ledger and report drift."""
    employer_ids = payload.employer_ids if payload is not None else None
    result = await engine.reconcile(employer_ids)
    return ReconcileResponse(**result.to_dict())
