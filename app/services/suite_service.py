from typing import List
from sqlalchemy.exc import SQLAlchemyError
import structlog

from app.core.exceptions import NotFoundError, TransactionError, ValidationError
from app.models.database import ItemModel, SuiteModel
from app.models.schemas import (
    Item,
    ItemCreate,
    ItemDetail,
    ItemSummary,
    ItemUpdate,
    Result,
    Run,
    RunDetail,
    Suite,
    SuiteCreate,
    SuiteDetail,
    SuiteSummary,
    SuiteUpdate,
    TestCase,
)
from app.repositories.interfaces.execution_repository import IExecutionRepository
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.services.status_service import StatusAggregator

logger = structlog.get_logger()


class SuiteService:
    """Suite and item management; statuses are never taken from the client"""

    def __init__(
        self,
        repository: IExecutionRepository,
        test_case_repository: ITestCaseRepository,
        status_aggregator: StatusAggregator,
    ):
        self.repository = repository
        self.test_case_repository = test_case_repository
        self.status_aggregator = status_aggregator

    async def _suite_or_404(self, suite_id: int) -> SuiteModel:
        suite = await self.repository.get_suite(suite_id)
        if suite is None:
            raise NotFoundError("Suite not found", details={"suite_id": suite_id})
        return suite

    async def _item_or_404(self, item_id: int) -> ItemModel:
        item = await self.repository.get_item(item_id)
        if item is None:
            raise NotFoundError("Item not found", details={"item_id": item_id})
        return item

    # Suites

    async def create_suite(self, data: SuiteCreate) -> Suite:
        if data.project_id is None or not data.name:
            raise ValidationError("project_id and name are required")
        with self.repository.transaction():
            suite = await self.repository.add_suite(data.project_id, data.name, data.purpose, data.description)
            created = Suite.model_validate(suite)
        logger.info("Suite created", suite_id=created.id, project_id=created.project_id)
        return created

    async def list_suites(self, project_id: int) -> List[SuiteSummary]:
        return [
            SuiteSummary(**Suite.model_validate(suite).model_dump(), item_count=item_count, run_count=run_count)
            for suite, item_count, run_count in await self.repository.list_suites(project_id)
        ]

    async def get_suite(self, suite_id: int) -> SuiteDetail:
        suite = await self._suite_or_404(suite_id)
        items = [
            ItemSummary(**Item.model_validate(item).model_dump(), run_count=run_count, latest_run_status=latest)
            for item, run_count, latest in await self.repository.list_items(suite_id)
        ]
        return SuiteDetail(**Suite.model_validate(suite).model_dump(), items=items)

    async def update_suite(self, suite_id: int, data: SuiteUpdate) -> Suite:
        with self.repository.transaction():
            suite = await self._suite_or_404(suite_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                if field == "name" and not value:
                    raise ValidationError("name cannot be empty")
                setattr(suite, field, value)
            await self.repository.save(suite)
            updated = Suite.model_validate(suite)
        return updated

    async def delete_suite(self, suite_id: int) -> None:
        try:
            with self.repository.transaction():
                suite = await self._suite_or_404(suite_id)
                await self.repository.delete_suite(suite)
        except SQLAlchemyError as e:
            logger.error("Failed to delete suite", suite_id=suite_id, error=str(e))
            raise TransactionError("Failed to delete suite", details={"suite_id": suite_id}) from e
        logger.info("Suite deleted", suite_id=suite_id)

    # Items

    async def create_item(self, data: ItemCreate) -> Item:
        if data.suite_id is None or not data.name or data.requirement_ids is None:
            raise ValidationError("suite_id, name and requirement_ids are required")
        with self.repository.transaction():
            if await self.repository.get_suite(data.suite_id) is None:
                raise ValidationError("suite_id does not reference an existing suite", details={"suite_id": data.suite_id})
            item = await self.repository.add_item(data.suite_id, data.name, data.requirement_ids)
            await self.status_aggregator.recompute_suite_status(data.suite_id)
            created = Item.model_validate(item)
        logger.info("Item created", item_id=created.id, suite_id=created.suite_id)
        return created

    async def list_items(self, suite_id: int) -> List[ItemSummary]:
        await self._suite_or_404(suite_id)
        return [
            ItemSummary(**Item.model_validate(item).model_dump(), run_count=run_count, latest_run_status=latest)
            for item, run_count, latest in await self.repository.list_items(suite_id)
        ]

    async def get_item(self, item_id: int) -> ItemDetail:
        item = await self._item_or_404(item_id)
        runs = []
        for run, _ in await self.repository.list_runs(item_id):
            results = await self.repository.list_results(run.id)
            runs.append(RunDetail(
                **Run.model_validate(run).model_dump(),
                results=[Result.model_validate(r) for r in results],
            ))
        return ItemDetail(**Item.model_validate(item).model_dump(), runs=runs)

    async def update_item(self, item_id: int, data: ItemUpdate) -> Item:
        with self.repository.transaction():
            item = await self._item_or_404(item_id)
            update_data = data.model_dump(exclude_unset=True)
            if "name" in update_data and not update_data["name"]:
                raise ValidationError("name cannot be empty")
            if "requirement_ids" in update_data and update_data["requirement_ids"] is None:
                raise ValidationError("requirement_ids cannot be null")
            for field, value in update_data.items():
                setattr(item, field, list(value) if field == "requirement_ids" else value)
            await self.repository.save(item)
            updated = Item.model_validate(item)
        return updated

    async def delete_item(self, item_id: int) -> None:
        try:
            with self.repository.transaction():
                item = await self._item_or_404(item_id)
                suite_id = item.suite_id
                await self.repository.delete_item(item)
                await self.status_aggregator.recompute_suite_status(suite_id)
        except SQLAlchemyError as e:
            logger.error("Failed to delete item", item_id=item_id, error=str(e))
            raise TransactionError("Failed to delete item", details={"item_id": item_id}) from e
        logger.info("Item deleted", item_id=item_id, suite_id=suite_id)

    async def get_item_test_cases(self, item_id: int) -> List[TestCase]:
        """Test cases covering any of the item's requirements, within the suite's project"""
        item = await self._item_or_404(item_id)
        suite = await self._suite_or_404(item.suite_id)
        return await self.test_case_repository.search_by_requirements(item.requirement_ids or [], project_id=suite.project_id)
