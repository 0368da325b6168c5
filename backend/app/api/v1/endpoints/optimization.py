"""
Driver Assignment Optimization Endpoints.

Run the optimizer over a date range, review the proposals, then apply or
discard them.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import require_dispatcher
from backend.app.core.redis_client import get_redis
from backend.app.db.session import get_db
from backend.app.schemas.optimization import ApplyResultResponse, OptimizationRequest, OptimizationRun
from backend.app.services.optimization import OptimizationService

router = APIRouter(prefix="/dispatcher/optimizations", tags=["Dispatcher - Optimization"])


@router.post("", response_model=OptimizationRun, status_code=status.HTTP_201_CREATED)
async def create_optimization(
    request: OptimizationRequest,
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Propose drivers and pickup times for unassigned pending/upcoming trips.

    Nothing is written to trips until the run is applied.
    """
    service = OptimizationService(db, redis)
    return await service.run(request.start_date, request.end_date, current_user)


@router.get("/{run_id}", response_model=OptimizationRun)
async def get_optimization(
    run_id: str = Path(...),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    return await OptimizationService(db, redis).get(run_id)


@router.post("/{run_id}/apply", response_model=ApplyResultResponse)
async def apply_optimization(
    run_id: str = Path(...),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Apply every proposal of a run, in order.

    Returns 200 even when only some proposals were applied; ``failed``,
    ``skipped`` and ``first_error`` say what was not.
    """
    result = await OptimizationService(db, redis).apply_run(run_id, current_user)
    return ApplyResultResponse(
        run_id=run_id,
        total=result.total,
        applied_count=result.applied_count,
        message=result.message,
        applied=result.applied,
        failed=result.failed,
        skipped=result.skipped,
        first_error=result.first_error,
    )


@router.delete("/{run_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_optimization(
    run_id: str = Path(...),
    current_user: dict = Depends(require_dispatcher),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    await OptimizationService(db, redis).discard(run_id)
