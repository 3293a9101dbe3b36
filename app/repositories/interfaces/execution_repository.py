from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Dict, List, Optional, Tuple
from app.models.database import SuiteModel, ItemModel, RunModel, ResultModel
from app.models.schemas import ExecutionStatus, RunStatus, TestResult


class IExecutionRepository(ABC):
    """Interface for suite/item/run/result persistence.

    Write methods only flush; the caller decides where the transaction ends
    by wrapping them in ``transaction()``.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Commit on success, roll back and re-raise on any error"""
        pass

    @abstractmethod
    async def save(self, *rows: Any) -> None:
        """Stage changed rows and flush them so later queries see them"""
        pass

    # Suites

    @abstractmethod
    async def add_suite(self, project_id: int, name: str, purpose: Optional[str], description: Optional[str]) -> SuiteModel:
        pass

    @abstractmethod
    async def get_suite(self, suite_id: int) -> Optional[SuiteModel]:
        pass

    @abstractmethod
    async def list_suites(self, project_id: int) -> List[Tuple[SuiteModel, int, int]]:
        """Suites of a project with (item_count, run_count)"""
        pass

    @abstractmethod
    async def delete_suite(self, suite: SuiteModel) -> None:
        pass

    # Items

    @abstractmethod
    async def add_item(self, suite_id: int, name: str, requirement_ids: List[str]) -> ItemModel:
        pass

    @abstractmethod
    async def get_item(self, item_id: int, for_update: bool = False) -> Optional[ItemModel]:
        pass

    @abstractmethod
    async def list_items(self, suite_id: int) -> List[Tuple[ItemModel, int, Optional[RunStatus]]]:
        """Items of a suite with (run_count, latest_run_status)"""
        pass

    @abstractmethod
    async def item_statuses(self, suite_id: int) -> List[ExecutionStatus]:
        pass

    @abstractmethod
    async def delete_item(self, item: ItemModel) -> None:
        pass

    # Runs

    @abstractmethod
    async def add_run(self, item_id: int, run_number: int, executed_by: Optional[str]) -> RunModel:
        pass

    @abstractmethod
    async def get_run(self, run_id: int) -> Optional[RunModel]:
        pass

    @abstractmethod
    async def get_previous_run(self, item_id: int, run_number: int) -> Optional[RunModel]:
        """Latest surviving run numbered below ``run_number``"""
        pass

    @abstractmethod
    async def find_open_run(self, item_id: int) -> Optional[RunModel]:
        pass

    @abstractmethod
    async def max_run_number(self, item_id: int) -> int:
        pass

    @abstractmethod
    async def run_statuses(self, item_id: int) -> List[Tuple[int, RunStatus]]:
        """(run_number, status) for every run of the item"""
        pass

    @abstractmethod
    async def list_runs(self, item_id: int) -> List[Tuple[RunModel, Dict[str, int]]]:
        """Runs ordered by run_number with per-result counts"""
        pass

    @abstractmethod
    async def delete_run(self, run: RunModel) -> None:
        pass

    # Results

    @abstractmethod
    async def list_results(self, run_id: int) -> List[ResultModel]:
        pass

    @abstractmethod
    async def get_result(self, run_id: int, testcase_id: str) -> Optional[ResultModel]:
        pass

    @abstractmethod
    async def add_result(
        self,
        run_id: int,
        testcase_id: str,
        result: TestResult,
        notes: Optional[str] = None,
        step_results: Optional[List[Dict[str, Any]]] = None,
    ) -> ResultModel:
        pass
