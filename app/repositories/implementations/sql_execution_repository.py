from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.repositories.interfaces.execution_repository import IExecutionRepository
from app.models.database import SuiteModel, ItemModel, RunModel, ResultModel
from app.models.schemas import ExecutionStatus, RunStatus, TestResult


def _count_of(outcome: TestResult):
    return func.coalesce(func.sum(case((ResultModel.result == outcome, 1), else_=0)), 0)


class SQLExecutionRepository(IExecutionRepository):
    """SQLAlchemy implementation of suite/item/run/result persistence"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    async def save(self, *rows: Any) -> None:
        for row in rows:
            self.db.add(row)
        self.db.flush()

    # Suites

    async def add_suite(self, project_id: int, name: str, purpose: Optional[str], description: Optional[str]) -> SuiteModel:
        suite = SuiteModel(project_id=project_id, name=name, purpose=purpose, description=description)
        self.db.add(suite)
        self.db.flush()
        return suite

    async def get_suite(self, suite_id: int) -> Optional[SuiteModel]:
        return self.db.query(SuiteModel).filter(SuiteModel.id == suite_id).first()

    async def list_suites(self, project_id: int) -> List[Tuple[SuiteModel, int, int]]:
        rows = (
            self.db.query(
                SuiteModel,
                func.count(func.distinct(ItemModel.id)),
                func.count(func.distinct(RunModel.id)),
            )
            .outerjoin(ItemModel, ItemModel.suite_id == SuiteModel.id)
            .outerjoin(RunModel, RunModel.item_id == ItemModel.id)
            .filter(SuiteModel.project_id == project_id)
            .group_by(SuiteModel.id)
            .order_by(SuiteModel.created_at.desc(), SuiteModel.id.desc())
            .all()
        )
        return [(suite, item_count or 0, run_count or 0) for suite, item_count, run_count in rows]

    async def delete_suite(self, suite: SuiteModel) -> None:
        self.db.delete(suite)
        self.db.flush()

    # Items

    async def add_item(self, suite_id: int, name: str, requirement_ids: List[str]) -> ItemModel:
        item = ItemModel(suite_id=suite_id, name=name, requirement_ids=list(requirement_ids))
        self.db.add(item)
        self.db.flush()
        return item

    async def get_item(self, item_id: int, for_update: bool = False) -> Optional[ItemModel]:
        query = self.db.query(ItemModel).filter(ItemModel.id == item_id)
        if for_update:
            # Serializes run creation per item on backends with row locks
            query = query.with_for_update()
        return query.first()

    async def list_items(self, suite_id: int) -> List[Tuple[ItemModel, int, Optional[RunStatus]]]:
        latest_status = (
            select(RunModel.status)
            .where(RunModel.item_id == ItemModel.id)
            .order_by(RunModel.run_number.desc())
            .limit(1)
            .correlate(ItemModel)
            .scalar_subquery()
        )
        run_count = (
            select(func.count(RunModel.id))
            .where(RunModel.item_id == ItemModel.id)
            .correlate(ItemModel)
            .scalar_subquery()
        )
        rows = (
            self.db.query(ItemModel, run_count, latest_status)
            .filter(ItemModel.suite_id == suite_id)
            .order_by(ItemModel.created_at, ItemModel.id)
            .all()
        )
        return [(item, count or 0, status) for item, count, status in rows]

    async def item_statuses(self, suite_id: int) -> List[ExecutionStatus]:
        rows = self.db.query(ItemModel.status).filter(ItemModel.suite_id == suite_id).all()
        return [status for (status,) in rows]

    async def delete_item(self, item: ItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    # Runs

    async def add_run(self, item_id: int, run_number: int, executed_by: Optional[str]) -> RunModel:
        run = RunModel(
            item_id=item_id,
            run_number=run_number,
            executed_by=executed_by,
            status=RunStatus.IN_PROGRESS,
            started_at=datetime.now(timezone.utc),
        )
        self.db.add(run)
        self.db.flush()
        return run

    async def get_run(self, run_id: int) -> Optional[RunModel]:
        return self.db.query(RunModel).filter(RunModel.id == run_id).first()

    async def get_previous_run(self, item_id: int, run_number: int) -> Optional[RunModel]:
        return (
            self.db.query(RunModel)
            .filter(RunModel.item_id == item_id, RunModel.run_number < run_number)
            .order_by(RunModel.run_number.desc())
            .first()
        )

    async def find_open_run(self, item_id: int) -> Optional[RunModel]:
        return (
            self.db.query(RunModel)
            .filter(RunModel.item_id == item_id, RunModel.status == RunStatus.IN_PROGRESS)
            .order_by(RunModel.run_number.desc())
            .first()
        )

    async def max_run_number(self, item_id: int) -> int:
        value = (
            self.db.query(func.coalesce(func.max(RunModel.run_number), 0))
            .filter(RunModel.item_id == item_id)
            .scalar()
        )
        return int(value or 0)

    async def run_statuses(self, item_id: int) -> List[Tuple[int, RunStatus]]:
        rows = (
            self.db.query(RunModel.run_number, RunModel.status)
            .filter(RunModel.item_id == item_id)
            .all()
        )
        return [(number, status) for number, status in rows]

    async def list_runs(self, item_id: int) -> List[Tuple[RunModel, Dict[str, int]]]:
        rows = (
            self.db.query(
                RunModel,
                func.count(ResultModel.id),
                _count_of(TestResult.PASS),
                _count_of(TestResult.FAIL),
                _count_of(TestResult.BLOCK),
                _count_of(TestResult.SKIP),
            )
            .outerjoin(ResultModel, ResultModel.run_id == RunModel.id)
            .filter(RunModel.item_id == item_id)
            .group_by(RunModel.id)
            .order_by(RunModel.run_number)
            .all()
        )
        summaries = []
        for run, total, passed, failed, blocked, skipped in rows:
            summaries.append((run, {
                "total_tests": int(total or 0),
                "pass_count": int(passed or 0),
                "fail_count": int(failed or 0),
                "block_count": int(blocked or 0),
                "skip_count": int(skipped or 0),
            }))
        return summaries

    async def delete_run(self, run: RunModel) -> None:
        self.db.delete(run)
        # Flush before any replacement open run is inserted for the same item.
        self.db.flush()

    # Results

    async def list_results(self, run_id: int) -> List[ResultModel]:
        return (
            self.db.query(ResultModel)
            .filter(ResultModel.run_id == run_id)
            .order_by(ResultModel.executed_at, ResultModel.id)
            .all()
        )

    async def get_result(self, run_id: int, testcase_id: str) -> Optional[ResultModel]:
        return (
            self.db.query(ResultModel)
            .filter(ResultModel.run_id == run_id, ResultModel.testcase_id == testcase_id)
            .first()
        )

    async def add_result(
        self,
        run_id: int,
        testcase_id: str,
        result: TestResult,
        notes: Optional[str] = None,
        step_results: Optional[List[Dict[str, Any]]] = None,
    ) -> ResultModel:
        row = ResultModel(
            run_id=run_id,
            testcase_id=testcase_id,
            result=result,
            notes=notes,
            step_results=list(step_results or []),
            executed_at=datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.flush()
        return row
