from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import structlog

from app.core.exceptions import ConflictError, NotFoundError, TransactionError, ValidationError
from app.models.database import ItemModel, RunModel
from app.models.schemas import (
    RerunType,
    Result,
    Run,
    RunDetail,
    RunStatus,
    RunSummary,
    StepResult,
)
from app.repositories.interfaces.execution_repository import IExecutionRepository
from app.services.execution_rules import (
    carry_over_results,
    compute_run_status,
    parse_rerun_type,
    parse_test_result,
)
from app.services.status_service import StatusAggregator

logger = structlog.get_logger()


def _step_payload(step_results: Optional[Sequence[Union[StepResult, Dict[str, Any]]]]) -> List[Dict[str, Any]]:
    payload = []
    for step in step_results or []:
        if not isinstance(step, StepResult):
            step = StepResult.model_validate(step)
        payload.append(step.model_dump(mode="json"))
    return payload


class RunService:
    """Creates, records and finalizes test runs for execution items"""

    def __init__(
        self,
        repository: IExecutionRepository,
        status_aggregator: StatusAggregator,
        max_create_attempts: int = 3,
    ):
        self.repository = repository
        self.status_aggregator = status_aggregator
        self.max_create_attempts = max(1, max_create_attempts)

    async def create_run(
        self,
        item_id: Optional[int],
        executed_by: Optional[str] = None,
        rerun_type: Optional[Union[str, RerunType]] = None,
        discard_run_id: Optional[int] = None,
    ) -> Run:
        """Start the next numbered run for an item.

        Reading the highest run_number, inserting the run and copying results
        forward happen in one transaction. If another request took the same
        run_number first, the unique constraint rejects the insert and the
        whole sequence is retried against fresh state.

        ``discard_run_id`` deletes that open run (and its results) inside the
        same transaction before the new run is numbered.
        """
        if item_id is None:
            raise ValidationError("item_id is required")
        rerun = rerun_type if isinstance(rerun_type, RerunType) else parse_rerun_type(rerun_type)

        for attempt in range(1, self.max_create_attempts + 1):
            try:
                with self.repository.transaction():
                    item = await self.repository.get_item(item_id, for_update=True)
                    if item is None:
                        raise ValidationError("item_id does not reference an existing item", details={"item_id": item_id})
                    if discard_run_id is not None:
                        await self._discard_open_run(item, discard_run_id)
                    run = await self._insert_run(item, executed_by, rerun)
                    created = Run.model_validate(run)
                logger.info(
                    "Run created",
                    item_id=item_id,
                    run_id=created.id,
                    run_number=created.run_number,
                    rerun_type=rerun.value if rerun else None,
                )
                return created
            except IntegrityError as e:
                logger.warning(
                    "Run number conflict, retrying",
                    item_id=item_id,
                    attempt=attempt,
                    error=str(e.orig),
                )
            except SQLAlchemyError as e:
                logger.error("Failed to create run", item_id=item_id, error=str(e))
                raise TransactionError("Failed to create run", details={"item_id": item_id}) from e

        raise TransactionError(
            "Could not assign a run number",
            details={"item_id": item_id, "attempts": self.max_create_attempts},
        )

    async def _discard_open_run(self, item: ItemModel, run_id: int) -> None:
        run = await self.repository.get_run(run_id)
        if run is None or run.item_id != item.id:
            raise NotFoundError("Run not found", details={"run_id": run_id, "item_id": item.id})
        if run.status != RunStatus.IN_PROGRESS:
            raise ConflictError("Only an in-progress run can be discarded", details={"run_id": run_id})
        logger.info("Discarding open run", item_id=item.id, run_id=run_id, run_number=run.run_number)
        await self.repository.delete_run(run)

    async def _insert_run(self, item: ItemModel, executed_by: Optional[str], rerun: Optional[RerunType]) -> RunModel:
        open_run = await self.repository.find_open_run(item.id)
        if open_run is not None:
            raise ConflictError(
                "Item already has a run in progress; resume or discard it first",
                details={"item_id": item.id, "open_run_id": open_run.id, "run_number": open_run.run_number},
            )

        highest = max(await self.repository.max_run_number(item.id), item.last_run_number or 0)
        run_number = highest + 1
        run = await self.repository.add_run(item.id, run_number, executed_by)
        item.last_run_number = run_number
        await self.repository.save(item)

        if run_number > 1 and rerun is not None:
            # Discarded runs leave gaps, so this is the latest run that still exists
            previous = await self.repository.get_previous_run(item.id, run_number)
            if previous is not None:
                carried = carry_over_results(await self.repository.list_results(previous.id), rerun)
                for row in carried:
                    await self.repository.add_result(run.id, row.testcase_id, row.result, row.notes)
                logger.info(
                    "Results carried over",
                    item_id=item.id,
                    from_run=previous.run_number,
                    to_run=run_number,
                    count=len(carried),
                )

        await self.status_aggregator.refresh_item(item.id)
        return run

    async def save_result(
        self,
        run_id: int,
        testcase_id: Optional[Union[int, str]],
        result: Optional[str],
        notes: Optional[str] = None,
        step_results: Optional[Sequence[Union[StepResult, Dict[str, Any]]]] = None,
    ) -> Result:
        """Record one test case outcome; a second save for the pair updates it"""
        if testcase_id is None or testcase_id == "" or not result:
            raise ValidationError("testcase_id and result are required")
        outcome = parse_test_result(result)
        testcase_key = str(testcase_id)
        steps = _step_payload(step_results)

        # A concurrent insert of the same pair loses the unique check once;
        # the second pass then finds the row and updates it.
        for attempt in range(2):
            try:
                with self.repository.transaction():
                    run = await self.repository.get_run(run_id)
                    if run is None:
                        raise NotFoundError("Run not found", details={"run_id": run_id})
                    if run.status != RunStatus.IN_PROGRESS:
                        raise ConflictError("Run is already completed", details={"run_id": run_id})

                    row = await self.repository.get_result(run_id, testcase_key)
                    if row is None:
                        row = await self.repository.add_result(run_id, testcase_key, outcome, notes, steps)
                    else:
                        row.result = outcome
                        row.notes = notes
                        row.step_results = steps
                        row.executed_at = datetime.now(timezone.utc)
                        await self.repository.save(row)
                    saved = Result.model_validate(row)
                logger.info("Result saved", run_id=run_id, testcase_id=testcase_key, result=outcome.value)
                return saved
            except IntegrityError as e:
                if attempt:
                    raise TransactionError("Failed to save result", details={"run_id": run_id}) from e
                logger.warning("Concurrent result insert, retrying", run_id=run_id, testcase_id=testcase_key)
            except SQLAlchemyError as e:
                logger.error("Failed to save result", run_id=run_id, error=str(e))
                raise TransactionError("Failed to save result", details={"run_id": run_id}) from e

    async def complete_run(self, run_id: int, notes: Optional[str] = None) -> Run:
        """Finalize a run from its results and roll the status up"""
        try:
            with self.repository.transaction():
                run = await self.repository.get_run(run_id)
                if run is None:
                    raise NotFoundError("Run not found", details={"run_id": run_id})
                if run.status != RunStatus.IN_PROGRESS:
                    raise ConflictError(
                        "Run is already completed",
                        details={"run_id": run_id, "status": RunStatus(run.status).value},
                    )

                results = await self.repository.list_results(run_id)
                status = compute_run_status(r.result for r in results)
                run.status = status
                run.notes = notes
                run.completed_at = datetime.now(timezone.utc)
                await self.repository.save(run)

                await self.status_aggregator.refresh_item(run.item_id)
                completed = Run.model_validate(run)
        except SQLAlchemyError as e:
            logger.error("Failed to complete run", run_id=run_id, error=str(e))
            raise TransactionError("Failed to complete run", details={"run_id": run_id}) from e

        logger.info(
            "Run completed",
            run_id=run_id,
            item_id=completed.item_id,
            status=completed.status.value,
            result_count=len(results),
        )
        return completed

    async def delete_run(self, run_id: int) -> None:
        """Delete a run with its results and refresh the cached statuses"""
        try:
            with self.repository.transaction():
                run = await self.repository.get_run(run_id)
                if run is None:
                    raise NotFoundError("Run not found", details={"run_id": run_id})
                item_id = run.item_id
                await self.repository.delete_run(run)
                await self.status_aggregator.refresh_item(item_id)
        except SQLAlchemyError as e:
            logger.error("Failed to delete run", run_id=run_id, error=str(e))
            raise TransactionError("Failed to delete run", details={"run_id": run_id}) from e
        logger.info("Run deleted", run_id=run_id, item_id=item_id)

    async def get_run(self, run_id: int) -> RunDetail:
        run = await self.repository.get_run(run_id)
        if run is None:
            raise NotFoundError("Run not found", details={"run_id": run_id})
        results = await self.repository.list_results(run_id)
        return RunDetail(
            **Run.model_validate(run).model_dump(),
            results=[Result.model_validate(r) for r in results],
        )

    async def get_open_run(self, item_id: int) -> Optional[Run]:
        run = await self.repository.find_open_run(item_id)
        return Run.model_validate(run) if run is not None else None

    async def list_runs(self, item_id: int) -> List[RunSummary]:
        if await self.repository.get_item(item_id) is None:
            raise NotFoundError("Item not found", details={"item_id": item_id})
        return [
            RunSummary(**Run.model_validate(run).model_dump(), **counts)
            for run, counts in await self.repository.list_runs(item_id)
        ]
