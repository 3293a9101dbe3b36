from dataclasses import dataclass
from typing import Optional, Union
import structlog

from app.core.exceptions import ConflictError, NotFoundError
from app.models.schemas import RerunType, Run, StartAction, StartDecision
from app.repositories.interfaces.execution_repository import IExecutionRepository
from app.services.run_service import RunService

logger = structlog.get_logger()


@dataclass
class StartTestOutcome:
    open_run_found: bool
    action: StartAction
    run: Run
    discarded_run_id: Optional[int] = None


class ResumeDiscardController:
    """Decides what "start test" means for an item.

    With no open run a new run is created. With an open run the caller must
    choose: ``resume`` keeps writing to it, ``discard`` deletes it and starts
    over. Without a choice nothing is written and the open run is reported.
    """

    def __init__(self, repository: IExecutionRepository, run_service: RunService):
        self.repository = repository
        self.run_service = run_service

    async def start_test(
        self,
        item_id: int,
        executed_by: Optional[str] = None,
        decision: Optional[StartDecision] = None,
        rerun_type: Optional[Union[str, RerunType]] = None,
    ) -> StartTestOutcome:
        if await self.repository.get_item(item_id) is None:
            raise NotFoundError("Item not found", details={"item_id": item_id})

        open_run = await self.run_service.get_open_run(item_id)
        if open_run is None:
            try:
                run = await self.run_service.create_run(item_id, executed_by, rerun_type or RerunType.ALL)
                return StartTestOutcome(open_run_found=False, action=StartAction.CREATED, run=run)
            except ConflictError:
                # Another request opened a run in the meantime
                open_run = await self.run_service.get_open_run(item_id)
                if open_run is None:
                    raise
                logger.info("Run opened concurrently, decision required", item_id=item_id, run_id=open_run.id)
                return StartTestOutcome(open_run_found=True, action=StartAction.DECISION_REQUIRED, run=open_run)

        if decision is None:
            logger.info("Open run found, decision required", item_id=item_id, run_id=open_run.id)
            return StartTestOutcome(open_run_found=True, action=StartAction.DECISION_REQUIRED, run=open_run)

        if decision == StartDecision.RESUME:
            logger.info("Resuming open run", item_id=item_id, run_id=open_run.id, run_number=open_run.run_number)
            return StartTestOutcome(open_run_found=True, action=StartAction.RESUMED, run=open_run)

        run = await self.run_service.create_run(
            item_id,
            executed_by,
            rerun_type or RerunType.ALL,
            discard_run_id=open_run.id,
        )
        return StartTestOutcome(
            open_run_found=True,
            action=StartAction.DISCARDED_AND_CREATED,
            run=run,
            discarded_run_id=open_run.id,
        )
