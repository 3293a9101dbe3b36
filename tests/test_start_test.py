import pytest

from app.core.exceptions import NotFoundError
from app.models.database import ResultModel, RunModel
from app.models.schemas import StartAction, StartDecision


@pytest.mark.asyncio
async def test_start_without_open_run_creates_first_run(controller, item):
    outcome = await controller.start_test(item.id, executed_by="alice")

    assert outcome.open_run_found is False
    assert outcome.action == StartAction.CREATED
    assert outcome.run.run_number == 1
    assert outcome.run.status == "In Progress"


@pytest.mark.asyncio
async def test_start_with_open_run_requires_decision(controller, item, db_session):
    first = await controller.start_test(item.id, executed_by="alice")

    outcome = await controller.start_test(item.id, executed_by="bob")

    assert outcome.open_run_found is True
    assert outcome.action == StartAction.DECISION_REQUIRED
    assert outcome.run.id == first.run.id
    assert db_session.query(RunModel).filter(RunModel.item_id == item.id).count() == 1


@pytest.mark.asyncio
async def test_resume_keeps_the_open_run(controller, run_service, item, db_session):
    first = await controller.start_test(item.id, executed_by="alice")
    await run_service.save_result(first.run.id, "TC-1", "Pass")

    outcome = await controller.start_test(item.id, decision=StartDecision.RESUME)

    assert outcome.action == StartAction.RESUMED
    assert outcome.run.id == first.run.id
    assert db_session.query(RunModel).filter(RunModel.item_id == item.id).count() == 1
    assert db_session.query(ResultModel).filter(ResultModel.run_id == first.run.id).count() == 1


@pytest.mark.asyncio
async def test_discard_replaces_open_run(controller, run_service, item, db_session):
    first = await controller.start_test(item.id, executed_by="alice")
    await run_service.save_result(first.run.id, "TC-1", "Pass")
    await run_service.save_result(first.run.id, "TC-2", "Fail")

    outcome = await controller.start_test(item.id, executed_by="alice", decision=StartDecision.DISCARD)

    assert outcome.action == StartAction.DISCARDED_AND_CREATED
    assert outcome.discarded_run_id == first.run.id
    assert outcome.run.run_number == first.run.run_number + 1
    assert db_session.query(RunModel).filter(RunModel.id == first.run.id).count() == 0
    assert db_session.query(ResultModel).filter(ResultModel.run_id == first.run.id).count() == 0
    assert db_session.query(ResultModel).filter(ResultModel.run_id == outcome.run.id).count() == 0


@pytest.mark.asyncio
async def test_start_after_completed_run_uses_rerun_type(controller, run_service, item):
    first = await controller.start_test(item.id, executed_by="alice")
    await run_service.save_result(first.run.id, "TC-1", "Pass")
    await run_service.save_result(first.run.id, "TC-2", "Block")
    await run_service.complete_run(first.run.id)

    outcome = await controller.start_test(item.id, executed_by="alice", rerun_type="failed")
    detail = await run_service.get_run(outcome.run.id)

    assert outcome.action == StartAction.CREATED
    assert outcome.run.run_number == 2
    assert [r.testcase_id for r in detail.results] == ["TC-1"]


@pytest.mark.asyncio
async def test_start_unknown_item(controller):
    with pytest.raises(NotFoundError):
        await controller.start_test(31337)


@pytest.mark.asyncio
async def test_stale_run_id_after_discard_is_gone(controller, run_service, item, db_session):
    first = await controller.start_test(item.id, executed_by="alice")
    await run_service.save_result(first.run.id, "TC-1", "Pass")
    await run_service.save_result(first.run.id, "TC-2", "Fail")

    outcome = await controller.start_test(item.id, executed_by="bob", decision=StartDecision.DISCARD)

    assert outcome.run.id != first.run.id
    with pytest.raises(NotFoundError):
        await run_service.save_result(first.run.id, "TC-9", "Fail")
    with pytest.raises(NotFoundError):
        await run_service.get_run(first.run.id)
    assert db_session.query(ResultModel).filter(ResultModel.run_id == outcome.run.id).count() == 0


@pytest.mark.asyncio
async def test_run_opened_concurrently_requires_decision(controller, run_service, item, db_session, monkeypatch):
    opened = await run_service.create_run(item.id, "alice")
    real_get_open_run = run_service.get_open_run
    calls = []

    async def miss_first_lookup(item_id):
        # The first check runs before the other request's run is visible
        calls.append(item_id)
        if len(calls) == 1:
            return None
        return await real_get_open_run(item_id)

    monkeypatch.setattr(run_service, "get_open_run", miss_first_lookup)

    outcome = await controller.start_test(item.id, executed_by="bob")

    assert outcome.action == StartAction.DECISION_REQUIRED
    assert outcome.open_run_found is True
    assert outcome.run.id == opened.id
    assert db_session.query(RunModel).filter(RunModel.item_id == item.id).count() == 1
