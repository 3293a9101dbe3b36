from pydantic import BaseModel, Field
from typing import List, Optional, Union
from datetime import datetime
from enum import Enum


class ExecutionStatus(str, Enum):
    """Derived status of an item or a suite"""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    PASS = "Pass"
    FAIL = "Fail"
    BLOCK = "Block"


class RunStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    PASS = "Pass"
    FAIL = "Fail"
    BLOCK = "Block"


class TestResult(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    BLOCK = "Block"
    SKIP = "Skip"


class RerunType(str, Enum):
    """Which outcomes of the previous run a rerun starts from"""
    ALL = "all"
    FAILED = "failed"


class StartDecision(str, Enum):
    RESUME = "resume"
    DISCARD = "discard"


class StartAction(str, Enum):
    CREATED = "created"
    RESUMED = "resumed"
    DISCARDED_AND_CREATED = "discarded_and_created"
    DECISION_REQUIRED = "decision_required"


# --- Test cases -------------------------------------------------------------

class TestCaseCreate(BaseModel):
    project_id: int = Field(..., description="Owning project")
    title: str = Field(..., description="Test case title")
    description: Optional[str] = Field(None, description="What the test case verifies")
    requirement_ids: List[str] = Field(default_factory=list, description="Requirements this test case covers")


class TestCase(TestCaseCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Suites -----------------------------------------------------------------

class SuiteCreate(BaseModel):
    # Optional here so a missing value is reported as a 400, not a 422
    project_id: Optional[int] = None
    name: Optional[str] = None
    purpose: Optional[str] = None
    description: Optional[str] = None


class SuiteUpdate(BaseModel):
    name: Optional[str] = None
    purpose: Optional[str] = None
    description: Optional[str] = None


class Suite(BaseModel):
    id: int
    project_id: int
    name: str
    purpose: Optional[str] = None
    description: Optional[str] = None
    status: ExecutionStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SuiteSummary(Suite):
    item_count: int = 0
    run_count: int = 0


# --- Items ------------------------------------------------------------------

class ItemCreate(BaseModel):
    suite_id: Optional[int] = None
    name: Optional[str] = None
    requirement_ids: Optional[List[str]] = None


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    requirement_ids: Optional[List[str]] = None


class Item(BaseModel):
    id: int
    suite_id: int
    name: str
    requirement_ids: List[str] = Field(default_factory=list)
    status: ExecutionStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ItemSummary(Item):
    run_count: int = 0
    latest_run_status: Optional[RunStatus] = None


class SuiteDetail(Suite):
    items: List[ItemSummary] = Field(default_factory=list)


# --- Runs and results -------------------------------------------------------

class StepResult(BaseModel):
    # The web client sends stepNumber
    step_number: int = Field(..., alias="stepNumber", description="Step sequence number")
    result: TestResult
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class ResultCreate(BaseModel):
    testcase_id: Optional[Union[int, str]] = None
    result: Optional[str] = None
    notes: Optional[str] = None
    step_results: Optional[List[StepResult]] = None


class Result(BaseModel):
    id: int
    run_id: int
    testcase_id: str
    result: TestResult
    notes: Optional[str] = None
    step_results: List[StepResult] = Field(default_factory=list)
    executed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RunCreate(BaseModel):
    item_id: Optional[int] = None
    executed_by: Optional[str] = None
    rerun_type: Optional[str] = Field(None, description="'all' or 'failed'")


class RunComplete(BaseModel):
    notes: Optional[str] = None


class Run(BaseModel):
    id: int
    item_id: int
    run_number: int
    executed_by: Optional[str] = None
    status: RunStatus
    notes: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RunSummary(Run):
    total_tests: int = 0
    pass_count: int = 0
    fail_count: int = 0
    block_count: int = 0
    skip_count: int = 0


class RunDetail(Run):
    results: List[Result] = Field(default_factory=list)


class ItemDetail(Item):
    runs: List[RunDetail] = Field(default_factory=list)


class StartTestRequest(BaseModel):
    executed_by: Optional[str] = None
    decision: Optional[StartDecision] = None
    rerun_type: Optional[str] = None


class StartTestResponse(BaseModel):
    open_run_found: bool
    action: StartAction
    run: Run
    discarded_run_id: Optional[int] = None


class MessageResponse(BaseModel):
    message: str
