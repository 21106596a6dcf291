import asyncio

import pytest

from console.batch import BatchFailure, BatchOperationCoordinator, BatchResult
from shared.errors import EntityBusyError


def test_scenario_c_batch_result_separates_outcomes():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1", "a2", "a3"])

    coordinator.settle("a1", "approved")
    coordinator.settle("a2", "failed", "reason X")
    coordinator.settle("a3", "approved")

    assert coordinator.all_settled == BatchResult(
        succeeded=["a1", "a3"],
        failed=[BatchFailure(id="a2", reason="reason X")],
    )


def test_start_marks_every_id_processing_before_any_settles():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1", "a2"])

    assert coordinator.processing == {"a1", "a2"}
    assert coordinator.is_processing("a1")


def test_all_settled_only_after_every_member_settles():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1", "a2", "a3"])

    coordinator.settle("a1", "approved")
    assert coordinator.all_settled is None
    coordinator.settle("a2", "approved")
    assert coordinator.all_settled is None
    coordinator.settle("a3", "failed", "boom")

    result = coordinator.all_settled
    assert result is not None
    assert result.total == 3
    assert len(result.succeeded) + len(result.failed) == 3


def test_untracked_start_leaves_batch_result_alone():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1", "a2"])
    single = coordinator.start(["a3"], track_latest=False)

    coordinator.settle("a3", "approved")
    coordinator.settle("a2", "approved")

    assert single.result == BatchResult(succeeded=["a3"])
    assert coordinator.all_settled is None
    assert coordinator.is_processing("a1")

    coordinator.settle("a1", "failed", "nope")

    assert coordinator.all_settled == BatchResult(
        succeeded=["a2"],
        failed=[BatchFailure(id="a1", reason="nope")],
    )


def test_settle_releases_id_regardless_of_outcome():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1", "a2"])

    coordinator.settle("a1", "failed", "nope")
    coordinator.settle("a2", "approved")

    assert coordinator.processing == set()


def test_start_deduplicates_ids_in_order():
    coordinator = BatchOperationCoordinator()
    batch = coordinator.start(["a2", "a1", "a2"])

    assert batch.ids == ("a2", "a1")


def test_overlapping_start_is_rejected_without_marking_anything():
    coordinator = BatchOperationCoordinator()
    coordinator.start(["a1"])

    with pytest.raises(EntityBusyError) as exc_info:
        coordinator.start(["a2", "a1"])

    assert exc_info.value.entity_ids == ("a1",)
    assert not coordinator.is_processing("a2")


def test_settle_unknown_id_raises():
    coordinator = BatchOperationCoordinator()

    with pytest.raises(KeyError):
        coordinator.settle("ghost", "approved")


def test_empty_batch_is_settled_immediately():
    coordinator = BatchOperationCoordinator()
    coordinator.start([])

    assert coordinator.all_settled == BatchResult()


def test_summary_reports_counts_and_reasons():
    result = BatchResult(
        succeeded=["a1", "a2", "a3", "a4"],
        failed=[BatchFailure(id="a5", reason="Approval already approved")],
    )

    assert result.summary("approved") == "approved 4 of 5, 1 failed: Approval already approved"
    assert BatchResult(succeeded=["a1"]).summary("approved") == "approved 1 of 1"


@pytest.mark.asyncio
async def test_wait_resolves_when_last_member_settles():
    coordinator = BatchOperationCoordinator()
    batch = coordinator.start(["a1", "a2"])
    waiter = asyncio.ensure_future(batch.wait())

    coordinator.settle("a1", "approved")
    await asyncio.sleep(0)
    assert not waiter.done()

    coordinator.settle("a2", "approved")
    result = await asyncio.wait_for(waiter, timeout=1)

    assert result.succeeded == ["a1", "a2"]
