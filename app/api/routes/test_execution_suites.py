from typing import List
from fastapi import APIRouter, Depends, status
import structlog

from app.models.schemas import (
    MessageResponse, Suite, SuiteCreate, SuiteDetail, SuiteSummary, SuiteUpdate
)
from app.services.suite_service import SuiteService
from app.core.dependencies import get_suite_service

logger = structlog.get_logger()

router = APIRouter(prefix="/test-execution-suites", tags=["test-execution-suites"])


@router.get("/project/{project_id}", response_model=List[SuiteSummary])
async def list_suites_for_project(
    project_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Suites of a project, newest first, with item and run counts"""
    return await service.list_suites(project_id)


@router.get("/{suite_id}", response_model=SuiteDetail)
async def get_suite(
    suite_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Get a suite with its items and each item's latest run status"""
    return await service.get_suite(suite_id)


@router.post("/", response_model=Suite, status_code=status.HTTP_201_CREATED)
async def create_suite(
    request: SuiteCreate,
    service: SuiteService = Depends(get_suite_service)
):
    logger.info("Creating suite", project_id=request.project_id, name=request.name)
    return await service.create_suite(request)


@router.put("/{suite_id}", response_model=Suite)
async def update_suite(
    suite_id: int,
    update_data: SuiteUpdate,
    service: SuiteService = Depends(get_suite_service)
):
    return await service.update_suite(suite_id, update_data)


@router.delete("/{suite_id}", response_model=MessageResponse)
async def delete_suite(
    suite_id: int,
    service: SuiteService = Depends(get_suite_service)
):
    """Delete a suite together with its items, runs and results"""
    await service.delete_suite(suite_id)
    return MessageResponse(message="Suite deleted successfully")
