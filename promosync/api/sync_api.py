"""
Sync API Routes.

Operator endpoints for triggering synchronization runs, inspecting progress
and health, cancelling operations and resetting circuit breakers.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from promosync.exceptions import SyncConfigurationError
from promosync.sync.models import SyncEntityType, SyncResult
from promosync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


# ============================================================================
# Request/Response Models
# ============================================================================

class SyncRunRequest(BaseModel):
    """Request model for triggering a sync run."""
    entity_type: Optional[str] = Field(None, description="Sync only this entity type")
    session_id: Optional[str] = Field(None, description="Session shared by related triggers")
    end_session: bool = Field(
        True,
        description="Close the given session after the run; pass false to keep it open for later triggers",
    )


class SyncResultResponse(BaseModel):
    """Outcome of one entity type."""
    entity_type: str
    success: bool
    synced_count: int
    created_count: int
    updated_count: int
    error_count: int
    merged_count: int = 0
    error_message: Optional[str] = None
    messages: List[str] = Field(default_factory=list)
    attempts: int = 1
    circuit_open: bool = False
    duration_ms: float = 0.0


class SyncRunResponse(BaseModel):
    """Outcome of a full run."""
    session_id: str
    success: bool
    order: List[str]
    results: List[SyncResultResponse]
    skipped: List[str]
    configuration_error: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    total_synced: int
    started_at: str
    finished_at: Optional[str] = None
    integrity: Optional[Dict[str, Any]] = None


class OperationActionResponse(BaseModel):
    id: str
    status: str
    message: str


class IntegrityCheckResponse(BaseModel):
    """Outcome of a data integrity check."""
    valid: bool
    summary: str
    errors: List[str]
    warnings: List[str]
    statistics: Dict[str, Any]


class SessionResponse(BaseModel):
    session_id: str
    started_at: str
    last_activity_at: str
    synced_entities: List[str]


# ============================================================================
# Dependencies
# ============================================================================

def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Resolve the orchestrator attached to the application."""
    orchestrator = getattr(request.app.state, "sync_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync engine is not initialized")
    return orchestrator


def _entity_type_or_404(entity_type: str) -> SyncEntityType:
    resolved = SyncEntityType.from_key(entity_type)
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity type: {entity_type}")
    return resolved


def _result_response(result: SyncResult) -> SyncResultResponse:
    return SyncResultResponse(**result.to_dict())


# ============================================================================
# Runs
# ============================================================================

@router.post("/run", response_model=Union[SyncRunResponse, SyncResultResponse])
def run_sync(
    request: SyncRunRequest = SyncRunRequest(),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Run a synchronization.

    Without an entity type every entity is synchronized in dependency order
    and the full report is returned.
    """
    if request.entity_type:
        entity_type = _entity_type_or_404(request.entity_type)
        logger.info(f"Sync of {entity_type.value} requested via API")
        return _result_response(orchestrator.run_one(entity_type.value))

    logger.info(f"Full sync requested via API (session {request.session_id or 'new'})")
    try:
        report = orchestrator.run_all(request.session_id)
    finally:
        if request.session_id and request.end_session:
            orchestrator.end_session(request.session_id)
    return SyncRunResponse(**report.to_dict())


@router.post("/run/{entity_type}", response_model=SyncResultResponse)
def run_entity_sync(
    entity_type: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Synchronize a single entity type."""
    resolved = _entity_type_or_404(entity_type)
    logger.info(f"Sync of {resolved.value} requested via API")
    return _result_response(orchestrator.run_one(resolved.value))


@router.post("/records/{entity_type}/{external_id}", response_model=SyncResultResponse)
def sync_record(
    entity_type: str,
    external_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Re-synchronize one record by its source id."""
    resolved = _entity_type_or_404(entity_type)
    return _result_response(orchestrator.sync_record(resolved.value, external_id))


# ============================================================================
# Status
# ============================================================================

@router.get("/status")
async def get_sync_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Health summary, in-flight operations, circuit breakers and last sync times."""
    return orchestrator.get_status()


@router.get("/health")
async def get_sync_health(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Health probe; responds 503 while the sync engine is DOWN."""
    probe = orchestrator.check_health()
    status_code = 200 if probe.is_up else 503
    return JSONResponse(status_code=status_code, content=probe.to_dict())


@router.get("/integrity", response_model=IntegrityCheckResponse)
def check_integrity(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Check the local records for missing names, duplicates and dangling references."""
    try:
        result = orchestrator.integrity_check()
    except SyncConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return IntegrityCheckResponse(**result.to_dict())


# ============================================================================
# Sessions
# ============================================================================

@router.get("/sessions")
async def list_sessions(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """List open sync sessions."""
    sessions = [
        orchestrator.sessions.describe(session_id)
        for session_id in orchestrator.sessions.active_sessions()
    ]
    sessions = [session for session in sessions if session is not None]
    return {"sessions": sessions, "total": len(sessions)}


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    session = orchestrator.sessions.describe(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse(**session)


@router.post("/sessions/{session_id}/end", response_model=OperationActionResponse)
async def end_session(
    session_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Close a session; later runs under the same id synchronize everything again."""
    if not orchestrator.end_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    logger.info(f"Session {session_id} ended via API")
    return OperationActionResponse(
        id=session_id,
        status="ended",
        message="Session ended",
    )


# ============================================================================
# Operations
# ============================================================================

@router.get("/operations")
async def list_operations(
    active_only: bool = Query(False, description="Only operations still in progress"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """List tracked sync operations."""
    if active_only:
        operations = orchestrator.progress.get_active_operations()
    else:
        operations = orchestrator.progress.get_all_operations()
    return {
        "operations": [operation.to_dict() for operation in operations],
        "total": len(operations),
    }


@router.get("/operations/{operation_id}")
async def get_operation(
    operation_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Get one operation with its log."""
    operation = orchestrator.progress.get_operation(operation_id)
    if operation is None:
        raise HTTPException(status_code=404, detail="Operation not found")
    return operation.to_dict()


@router.post("/operations/{operation_id}/cancel", response_model=OperationActionResponse)
async def cancel_operation(
    operation_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Cancel an in-flight operation; remaining batches are not started."""
    operation = orchestrator.progress.get_operation(operation_id)
    if operation is None:
        raise HTTPException(status_code=404, detail="Operation not found")

    if not orchestrator.cancel_operation(operation_id):
        raise HTTPException(status_code=400, detail="Operation is not running")

    logger.info(f"Operation {operation_id} cancelled via API")
    return OperationActionResponse(
        id=operation_id,
        status="cancelled",
        message="Operation cancelled",
    )


# ============================================================================
# Circuit breakers
# ============================================================================

@router.post("/circuit-breakers/{entity_type}/reset", response_model=OperationActionResponse)
async def reset_circuit_breaker(
    entity_type: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Close the circuit breaker of one entity type."""
    resolved = _entity_type_or_404(entity_type)
    orchestrator.breakers.reset(resolved.value)
    logger.info(f"Circuit breaker for {resolved.value} reset via API")
    return OperationActionResponse(
        id=resolved.value,
        status="closed",
        message="Circuit breaker reset",
    )


__all__ = [
    "router",
    "get_orchestrator",
    "SyncRunRequest",
    "SyncResultResponse",
    "SyncRunResponse",
    "IntegrityCheckResponse",
    "SessionResponse",
]
