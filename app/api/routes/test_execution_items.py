from typing import List, Optional
from fastapi import APIRouter, Depends, status
import structlog

from app.core.exceptions import ConflictError
from app.models.schemas import (
    Item, ItemCreate, ItemDetail, ItemSummary, ItemUpdate, MessageResponse,
    StartAction, StartTestRequest, StartTestResponse, TestCase
)
from app.services.suite_service import SuiteService
from app.services.start_test_service import ResumeDiscardController
from app.core.dependencies import get_suite_service, get_start_test_controller

logger = structlog.get_logger()

router = APIRouter(prefix="/test-execution-items", tags=["test-execution-items"])


@router.get("/suite/{suite_id}", response_model=List[ItemSummary])
async def list_items_for_suite(
    suite_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Items of a suite with their run counts"""
    return await service.list_items(suite_id)


@router.get("/{item_id}", response_model=ItemDetail)
async def get_item(
    item_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Get an item with every run and its results"""
    return await service.get_item(item_id)


@router.get("/{item_id}/test-cases", response_model=List[TestCase])
async def get_item_test_cases(
    item_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Test cases linked to any of the item's requirements"""
    return await service.get_item_test_cases(item_id)


@router.post("/", response_model=Item, status_code=status.HTTP_201_CREATED)
async def create_item(
    request: ItemCreate,
    service: SuiteService = Depends(get_suite_service)
):
    return await service.create_item(request)


@router.put("/{item_id}", response_model=Item)
async def update_item(
    item_id: int,
    update_data: ItemUpdate,
    service: SuiteService = Depends(get_suite_service)
):
    return await service.update_item(item_id, update_data)


@router.delete("/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Delete an item together with its runs and results"""
    await service.delete_item(item_id)
    return MessageResponse(message="Item deleted successfully")


@router.post("/{item_id}/start", response_model=StartTestResponse)
async def start_test(
    item_id: int,
    request: Optional[StartTestRequest] = None,
    controller: ResumeDiscardController = Depends(get_start_test_controller)
):
    """Start testing an item.

    If a run is still in progress and no ``decision`` is given, responds with
    409 and the open run so the client can ask whether to resume or discard.
    """
    request = request or StartTestRequest()
    outcome = await controller.start_test(
        item_id,
        executed_by=request.executed_by,
        decision=request.decision,
        rerun_type=request.rerun_type,
    )
    if outcome.action == StartAction.DECISION_REQUIRED:
        raise ConflictError(
            "A run is already in progress for this item; choose resume or discard",
            details={"open_run": outcome.run.model_dump(mode="json")},
        )
    return StartTestResponse(
        open_run_found=outcome.open_run_found,
        action=outcome.action,
        run=outcome.run,
        discarded_run_id=outcome.discarded_run_id,
    )
