from typing import List, Optional
from fastapi import APIRouter, Depends, status
import structlog

from app.models.schemas import (
    MessageResponse, Result, ResultCreate, Run, RunComplete, RunCreate, RunDetail, RunSummary
)
from app.services.run_service import RunService
from app.core.dependencies import get_run_service

logger = structlog.get_logger()

router = APIRouter(prefix="/test-execution-runs", tags=["test-execution-runs"])


@router.get("/item/{item_id}", response_model=List[RunSummary])
async def list_runs_for_item(
    item_id: int,
    service: RunService = Depends(get_run_service)
):
    """Runs of an item with pass/fail/block/skip counts"""
    return await service.list_runs(item_id)


@router.get("/{run_id}", response_model=RunDetail)
async def get_run(
    run_id: int,
    service: RunService = Depends(get_run_service)
):
    """Get a run with all of its results"""
    return await service.get_run(run_id)


@router.post("/", response_model=Run, status_code=status.HTTP_201_CREATED)
async def create_run(
    request: RunCreate,
    service: RunService = Depends(get_run_service)
):
    """Start a new run, optionally as a rerun of the previous one"""
    logger.info("Creating run", item_id=request.item_id, rerun_type=request.rerun_type)
    return await service.create_run(request.item_id, request.executed_by, request.rerun_type)


@router.post("/{run_id}/results", response_model=Result)
async def save_result(
    run_id: int,
    request: ResultCreate,
    service: RunService = Depends(get_run_service)
):
    """Save or overwrite the outcome of one test case in a run"""
    return await service.save_result(
        run_id,
        request.testcase_id,
        request.result,
        notes=request.notes,
        step_results=request.step_results,
    )


@router.put("/{run_id}/complete", response_model=Run)
async def complete_run(
    run_id: int,
    request: Optional[RunComplete] = None,
    service: RunService = Depends(get_run_service)
):
    """Finalize a run and roll its status up to the item and suite"""
    return await service.complete_run(run_id, request.notes if request else None)


@router.delete("/{run_id}", response_model=MessageResponse)
async def delete_run(
    run_id: int,
    service: RunService = Depends(get_run_service)
):
    """Delete a run and its results"""
    await service.delete_run(run_id)
    return MessageResponse(message="Run deleted successfully")
