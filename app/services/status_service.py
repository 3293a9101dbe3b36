import structlog

from app.core.exceptions import NotFoundError
from app.models.schemas import ExecutionStatus
from app.repositories.interfaces.execution_repository import IExecutionRepository
from app.services.execution_rules import compute_suite_status, latest_run_status

logger = structlog.get_logger()


class StatusAggregator:
    """Keeps the cached item and suite status columns in line with their runs.

    The stored statuses are a materialized view: every write that can change a
    run's status, or the set of runs/items, must call ``refresh_item`` (or
    ``recompute_suite_status`` when only the item set changed) inside the
    same transaction.
    """

    def __init__(self, repository: IExecutionRepository):
        self.repository = repository

    async def recompute_item_status(self, item_id: int) -> ExecutionStatus:
        """Set the item's status to that of its latest run"""
        item = await self.repository.get_item(item_id)
        if item is None:
            raise NotFoundError("Item not found", details={"item_id": item_id})

        status = latest_run_status(await self.repository.run_statuses(item_id))
        if item.status != status:
            logger.info("Item status changed", item_id=item_id, old=ExecutionStatus(item.status).value, new=status.value)
            item.status = status
            await self.repository.save(item)
        return status

    async def recompute_suite_status(self, suite_id: int) -> ExecutionStatus:
        """Roll the statuses of every item up into the suite"""
        suite = await self.repository.get_suite(suite_id)
        if suite is None:
            raise NotFoundError("Suite not found", details={"suite_id": suite_id})

        status = compute_suite_status(await self.repository.item_statuses(suite_id))
        if suite.status != status:
            logger.info("Suite status changed", suite_id=suite_id, old=ExecutionStatus(suite.status).value, new=status.value)
            suite.status = status
            await self.repository.save(suite)
        return status

    async def refresh_item(self, item_id: int) -> ExecutionStatus:
        item_status = await self.recompute_item_status(item_id)
        item = await self.repository.get_item(item_id)
        await self.recompute_suite_status(item.suite_id)
        return item_status
