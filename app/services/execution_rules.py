"""Status precedence and rerun carry-over rules.

Everything here works on plain values so it can be exercised without a
database. The services feed it rows and persist whatever it returns.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from app.core.exceptions import ValidationError
from app.models.schemas import ExecutionStatus, RerunType, RunStatus, TestResult


# Outcomes a "failed" rerun keeps; everything else must be re-tested.
CARRIED_OVER_RESULTS = frozenset({TestResult.PASS, TestResult.SKIP})


@dataclass(frozen=True)
class CarriedResult:
    testcase_id: str
    result: TestResult
    notes: Optional[str] = None


def parse_rerun_type(value: Optional[str]) -> Optional[RerunType]:
    """Turn the raw request value into a RerunType, None when absent"""
    if value is None or value == "":
        return None
    try:
        return RerunType(value)
    except ValueError:
        raise ValidationError(
            f"Unsupported rerun_type '{value}'",
            details={"allowed": [r.value for r in RerunType]},
        )


def parse_test_result(value: Optional[str]) -> TestResult:
    if not value:
        raise ValidationError("result is required")
    try:
        return TestResult(value)
    except ValueError:
        raise ValidationError(
            f"Unsupported result '{value}'",
            details={"allowed": [r.value for r in TestResult]},
        )


def carry_over_results(previous: Iterable[CarriedResult], rerun_type: Optional[RerunType]) -> List[CarriedResult]:
    """Results a new run starts with, given the previous run's results.

    ``FAILED`` keeps the Pass/Skip outcomes so only Fail/Block cases are
    re-tested. ``ALL`` (or no rerun type) starts from an empty run.
    """
    if rerun_type is not RerunType.FAILED:
        return []
    return [
        CarriedResult(testcase_id=r.testcase_id, result=TestResult(r.result), notes=r.notes)
        for r in previous
        if TestResult(r.result) in CARRIED_OVER_RESULTS
    ]


def compute_run_status(results: Iterable[TestResult]) -> RunStatus:
    """Fail beats Block beats Pass; Skip does not count"""
    seen = {TestResult(r) for r in results}
    if TestResult.FAIL in seen:
        return RunStatus.FAIL
    if TestResult.BLOCK in seen:
        return RunStatus.BLOCK
    return RunStatus.PASS


def latest_run_status(run_statuses: Sequence[tuple]) -> ExecutionStatus:
    """Status of the run with the highest run_number.

    ``run_statuses`` holds ``(run_number, status)`` pairs in any order.
    """
    if not run_statuses:
        return ExecutionStatus.NOT_STARTED
    _, status = max(run_statuses, key=lambda pair: pair[0])
    return ExecutionStatus(status)


def compute_suite_status(item_statuses: Iterable[ExecutionStatus]) -> ExecutionStatus:
    statuses = [ExecutionStatus(s) for s in item_statuses]
    if not statuses or all(s == ExecutionStatus.NOT_STARTED for s in statuses):
        return ExecutionStatus.NOT_STARTED
    if ExecutionStatus.FAIL in statuses:
        return ExecutionStatus.FAIL
    if ExecutionStatus.BLOCK in statuses:
        return ExecutionStatus.BLOCK
    if ExecutionStatus.IN_PROGRESS in statuses:
        return ExecutionStatus.IN_PROGRESS
    return ExecutionStatus.PASS


def select_item_test_cases(requirement_ids: Iterable[str], test_cases: Iterable) -> list:
    """Test cases linked to at least one of the item's requirements"""
    wanted = {str(r) for r in requirement_ids or []}
    return [
        tc for tc in test_cases
        if wanted.intersection(str(r) for r in (tc.requirement_ids or []))
    ]
