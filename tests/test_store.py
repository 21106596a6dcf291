import asyncio

import pytest

from console.batch import BatchFailure, BatchResult
from console.notifications import NoticeLevel
from console.session import DashboardView
from fakes import FakeGateway, settle_tasks
from shared.errors import EntityBusyError, RejectedError, TransientNetworkError


def statuses(store):
    return {e["id"]: e["status"] for e in store.current_list()}


@pytest.mark.asyncio
async def test_refresh_loads_snapshot(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)

    assert await store.refresh() is True

    assert store.loaded
    assert [e["id"] for e in store.current_list()] == ["v1", "v2", "v3"]


@pytest.mark.asyncio
async def test_scenario_a_patch_visible_while_mutation_in_flight(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.gates["v1"] = asyncio.Event()

    task = asyncio.ensure_future(store.run_mutation("v1", {"status": "maintenance"}))
    await settle_tasks()

    assert statuses(store)["v1"] == "maintenance"
    assert store.is_pending("v1")
    assert store.is_processing("v1")

    vehicles_gateway.gates["v1"].set()
    result = await task
    await settle_tasks()

    assert result.ok
    assert not store.is_processing("v1")
    assert statuses(store)["v1"] == "maintenance"
    await store.close()


@pytest.mark.asyncio
async def test_scenario_b_failed_mutation_rolls_back_and_surfaces_reason(make_store, vehicles_gateway, notifications):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.failures["v1"] = RejectedError("Invalid vehicle status", status_code=400)

    result = await store.run_mutation("v1", {"status": "scrapped"})

    assert not result.ok
    assert result.reason == "Invalid vehicle status"
    assert statuses(store)["v1"] == "active"
    assert not store.is_pending("v1")
    assert not store.is_processing("v1")
    notice = notifications.recent(1)[0]
    assert notice.level == NoticeLevel.ERROR
    assert "Invalid vehicle status" in notice.message


@pytest.mark.asyncio
async def test_failed_mutation_does_not_remove_newer_patch(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.gates["v1"] = asyncio.Event()
    vehicles_gateway.failures["v1"] = TransientNetworkError("Network error: timed out")

    task = asyncio.ensure_future(store.run_mutation("v1", {"status": "maintenance"}))
    await settle_tasks()
    store.patches.apply("v1", {"status": "offline"})
    vehicles_gateway.gates["v1"].set()
    result = await task

    assert not result.ok
    assert statuses(store)["v1"] == "offline"


@pytest.mark.asyncio
async def test_mutation_on_processing_id_is_rejected(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.gates["v1"] = asyncio.Event()
    task = asyncio.ensure_future(store.run_mutation("v1", {"status": "maintenance"}))
    await settle_tasks()

    with pytest.raises(EntityBusyError):
        await store.run_mutation("v1", {"status": "offline"})
    with pytest.raises(EntityBusyError):
        await store.run_batch(["v2", "v1"], {"status": "offline"})

    assert not store.is_processing("v2")
    assert store.patches.get("v2") is None
    vehicles_gateway.gates["v1"].set()
    await task
    await store.close()


@pytest.mark.asyncio
async def test_patch_survives_refresh_already_in_flight(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.snapshot_gate = asyncio.Event()
    refresh = asyncio.ensure_future(store.refresh())
    await settle_tasks()

    result = await store.run_mutation("v1", {"status": "maintenance"})
    assert result.ok
    vehicles_gateway.snapshot_gate.set()
    assert await refresh is True

    # The snapshot was taken before the write landed; the patch still wins.
    assert statuses(store)["v1"] == "maintenance"
    assert vehicles_gateway.snapshot_calls == 2

    vehicles_gateway.snapshot_gate = None
    await store.refresh()
    assert statuses(store)["v1"] == "maintenance"
    assert not store.is_pending("v1")


@pytest.mark.asyncio
async def test_refresh_after_mutation_reconciles_patch(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()

    await store.run_mutation("v2", {"status": "offline"})
    await settle_tasks()

    assert vehicles_gateway.snapshot_calls == 2
    assert not store.is_pending("v2")
    assert statuses(store)["v2"] == "offline"


@pytest.mark.asyncio
async def test_confirmed_patch_expires_when_server_never_catches_up(make_store, vehicles_gateway, clock):
    store = make_store(vehicles_gateway, patch_ttl=60, refresh_after_mutation=False)
    await store.refresh()
    vehicles_gateway.apply_writes = False

    await store.run_mutation("v1", {"status": "offline"})
    await store.refresh()
    assert statuses(store)["v1"] == "offline"

    clock.advance(61)
    await store.refresh()
    assert statuses(store)["v1"] == "active"


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_snapshot(make_store, vehicles_gateway, notifications):
    store = make_store(vehicles_gateway)
    await store.refresh()
    store.patches.apply("v3", {"status": "active"})
    vehicles_gateway.snapshot_error = TransientNetworkError("HTTP 503: unavailable", status_code=503)

    assert await store.refresh() is False

    assert len(store.current_list()) == 3
    assert statuses(store)["v3"] == "active"
    assert notifications.recent(1)[0].level == NoticeLevel.ERROR


@pytest.mark.asyncio
async def test_batch_member_failure_does_not_abort_siblings(make_store, approvals_gateway, notifications):
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()
    approvals_gateway.failures["a2"] = RejectedError("Approval already rejected", status_code=400)

    result = await store.run_batch(["a1", "a2", "a3"], {"status": "approved"})

    assert result == BatchResult(
        succeeded=["a1", "a3"],
        failed=[BatchFailure(id="a2", reason="Approval already rejected")],
    )
    assert len(approvals_gateway.mutate_calls) == 3
    assert statuses(store) == {"a1": "approved", "a2": "pending", "a3": "approved"}
    assert store.coordinator.processing == set()
    notice = notifications.recent(1)[0]
    assert notice.level == NoticeLevel.WARNING
    assert notice.message == "approved 2 of 3, 1 failed: Approval already rejected"


@pytest.mark.asyncio
async def test_batch_marks_all_processing_before_calls_finish(make_store, approvals_gateway):
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()
    gate = asyncio.Event()
    for approval_id in ("a1", "a2"):
        approvals_gateway.gates[approval_id] = gate

    task = asyncio.ensure_future(store.run_batch(["a1", "a2"], {"status": "approved"}))
    await settle_tasks()
    assert store.is_processing("a1") and store.is_processing("a2")

    gate.set()
    await task
    assert not store.is_processing("a1")


@pytest.mark.asyncio
async def test_batch_refreshes_once_when_any_member_succeeded(make_store, approvals_gateway):
    store = make_store(approvals_gateway)
    await store.refresh()
    approvals_gateway.failures["a3"] = RejectedError("nope", status_code=409)

    await store.run_batch(["a1", "a2", "a3"], {"status": "approved"})
    await settle_tasks()

    assert approvals_gateway.snapshot_calls == 2


@pytest.mark.asyncio
async def test_batch_with_every_member_failing_skips_refresh(make_store, approvals_gateway, notifications):
    store = make_store(approvals_gateway)
    await store.refresh()
    for approval_id in ("a1", "a2"):
        approvals_gateway.failures[approval_id] = TransientNetworkError("Network error: down")

    result = await store.run_batch(["a1", "a2"], {"status": "approved"})
    await settle_tasks()

    assert result.succeeded == []
    assert approvals_gateway.snapshot_calls == 1
    assert notifications.recent(1)[0].level == NoticeLevel.ERROR


@pytest.mark.asyncio
async def test_bulk_result_is_settled_per_item(make_store, approvals_gateway):
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()
    approvals_gateway.bulk_result = BatchResult(
        succeeded=["a1"],
        failed=[BatchFailure(id="a2", reason="Approval already approved")],
    )

    result = await store.run_batch(["a1", "a2", "a3"], {"status": "approved"})

    assert approvals_gateway.mutate_calls == []
    assert result.succeeded == ["a1"]
    assert result.failed == [
        BatchFailure(id="a2", reason="Approval already approved"),
        BatchFailure(id="a3", reason="No result returned for this item"),
    ]
    assert statuses(store) == {"a1": "approved", "a2": "pending", "a3": "pending"}


@pytest.mark.asyncio
async def test_bulk_call_failure_fails_every_member(make_store, approvals_gateway):
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()
    approvals_gateway.bulk_error = TransientNetworkError("HTTP 502: bad gateway", status_code=502)

    result = await store.run_batch(["a1", "a2"], {"status": "approved"})

    assert [f.id for f in result.failed] == ["a1", "a2"]
    assert not store.is_pending("a1")
    assert store.coordinator.processing == set()


@pytest.mark.asyncio
async def test_scenario_d_created_entity_until_snapshot_contains_it(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway, refresh_after_mutation=False)
    vehicles_gateway.server_ids = False
    await store.refresh()

    result = await store.create({"status": "active", "type": "EV"}, entity_id="new-1")
    assert result.ok

    await store.refresh()
    ids = [e["id"] for e in store.current_list()]
    assert ids == ["v1", "v2", "v3", "new-1"]

    vehicles_gateway.server["new-1"] = {"id": "new-1", "status": "active", "type": "EV"}
    await store.refresh()
    ids = [e["id"] for e in store.current_list()]
    assert ids == ["v1", "v2", "v3", "new-1"]
    assert not store.patches.is_created("new-1")


@pytest.mark.asyncio
async def test_create_is_rekeyed_to_server_id(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway, refresh_after_mutation=False)
    await store.refresh()
    vehicles_gateway.gates["create"] = asyncio.Event()

    task = asyncio.ensure_future(store.create({"status": "active", "type": "EV"}))
    await settle_tasks()
    local_id = store.current_list()[-1]["id"]
    assert local_id.startswith("local-")
    assert store.is_processing(local_id)

    vehicles_gateway.gates["create"].set()
    result = await task

    assert result.entity_id == "srv-1"
    assert store.current_list()[-1]["id"] == "srv-1"
    assert not store.is_processing(local_id)


@pytest.mark.asyncio
async def test_failed_create_removes_local_entity(make_store, vehicles_gateway, notifications):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.failures["create"] = RejectedError("Vehicle 'VH-001' already exists", status_code=409)

    result = await store.create({"vehicle_id": "VH-001"})

    assert not result.ok
    assert len(store.current_list()) == 3
    assert "already exists" in notifications.recent(1)[0].message


@pytest.mark.asyncio
async def test_successful_mutation_invalidates_detail(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway, refresh_after_mutation=False)
    await store.refresh()

    detail = await store.select_detail("v1")
    assert store.selected_detail("v1") == detail

    await store.run_mutation("v1", {"status": "offline"})
    assert store.selected_detail("v1") is None

    await store.select_detail("v1")
    assert vehicles_gateway.detail_calls == ["v1", "v1"]


@pytest.mark.asyncio
async def test_failed_detail_load_returns_none(make_store, vehicles_gateway, notifications):
    store = make_store(vehicles_gateway)
    vehicles_gateway.failures["v9"] = RejectedError("Vehicle not found", status_code=404)

    assert await store.select_detail("v9") is None
    assert "Vehicle not found" in notifications.recent(1)[0].message


@pytest.mark.asyncio
async def test_cancelled_mutation_rolls_back_and_releases_id(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    await store.refresh()
    vehicles_gateway.gates["v1"] = asyncio.Event()

    task = asyncio.ensure_future(store.run_mutation("v1", {"status": "offline"}))
    await settle_tasks()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert not store.is_processing("v1")
    assert statuses(store)["v1"] == "active"


@pytest.mark.asyncio
async def test_views_share_one_store(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway, refresh_after_mutation=False)
    fleet_screen = DashboardView(store, name="fleet")
    dashboard_tile = DashboardView(store, name="home")
    await fleet_screen.refresh()

    await fleet_screen.run_mutation("v2", {"status": "maintenance"})

    assert {e["id"]: e["status"] for e in dashboard_tile.current_list()}["v2"] == "maintenance"
    assert store.view_count == 2


@pytest.mark.asyncio
async def test_closed_view_drops_result_but_store_applies_it(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway, refresh_after_mutation=False)
    view = DashboardView(store)
    other = DashboardView(store)
    changes = []
    view.on_change = changes.append
    await view.refresh()
    vehicles_gateway.gates["v1"] = asyncio.Event()

    task = asyncio.ensure_future(view.run_mutation("v1", {"status": "offline"}))
    await settle_tasks()
    view.close()
    changes.clear()
    vehicles_gateway.gates["v1"].set()

    assert await task is None
    assert view.last_result is None
    assert changes == []
    assert vehicles_gateway.mutate_calls == [("v1", {"status": "offline"})]
    assert {e["id"]: e["status"] for e in other.current_list()}["v1"] == "offline"
    assert store.view_count == 1


@pytest.mark.asyncio
async def test_store_polls_while_any_view_visible(make_store, vehicles_gateway):
    store = make_store(vehicles_gateway)
    first = DashboardView(store)
    second = DashboardView(store)

    first.show()
    await settle_tasks()
    assert store.scheduler.visible
    assert vehicles_gateway.snapshot_calls == 1

    second.show()
    first.hide()
    assert store.scheduler.visible

    second.close()
    assert not store.scheduler.visible
    await store.close()


@pytest.mark.asyncio
async def test_listeners_notified_on_patch_and_settle(make_store):
    gateway = FakeGateway([{"id": "x1", "status": "open"}])
    store = make_store(gateway, refresh_after_mutation=False)
    await store.refresh()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(statuses(s)["x1"]))

    await store.run_mutation("x1", {"status": "closed"})
    unsubscribe()
    await store.run_mutation("x1", {"status": "open"})

    assert seen == ["closed", "closed"]


@pytest.mark.asyncio
async def test_action_parameters_are_sent_but_never_patched(make_store, approvals_gateway):
    approvals_gateway.action_params = ("notes",)
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()

    result = await store.run_mutation("a1", {"status": "approved", "notes": "ok"})

    assert result.ok
    assert approvals_gateway.mutate_calls == [("a1", {"status": "approved", "notes": "ok"})]
    assert store.patches.get("a1") == {"status": "approved"}
    assert "notes" not in store.get("a1")

    await store.refresh()
    assert not store.is_pending("a1")

    approvals_gateway.server["a1"]["status"] = "rejected"
    await store.refresh()
    assert statuses(store)["a1"] == "rejected"


@pytest.mark.asyncio
async def test_mutation_with_only_action_parameters_leaves_list_alone(make_store, approvals_gateway):
    approvals_gateway.action_params = ("notes",)
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()

    result = await store.run_mutation("a1", {"notes": "ping"})

    assert result.ok
    assert not store.is_pending("a1")
    assert store.get("a1") == {"id": "a1", "status": "pending"}


@pytest.mark.asyncio
async def test_batch_patches_exclude_action_parameters(make_store, approvals_gateway):
    approvals_gateway.action_params = ("notes",)
    approvals_gateway.failures["a2"] = RejectedError("Approval already rejected", status_code=400)
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()

    result = await store.run_batch(["a1", "a2"], {"status": "approved", "notes": "month end"})

    assert result.succeeded == ["a1"]
    assert store.patches.as_dict() == {"a1": {"status": "approved"}}
    assert statuses(store) == {"a1": "approved", "a2": "pending", "a3": "pending"}


@pytest.mark.asyncio
async def test_single_mutation_does_not_replace_batch_result(make_store, approvals_gateway):
    store = make_store(approvals_gateway, refresh_after_mutation=False)
    await store.refresh()
    approvals_gateway.gates["a1"] = asyncio.Event()

    task = asyncio.ensure_future(store.run_batch(["a1", "a2"], {"status": "approved"}))
    await settle_tasks()

    single = await store.run_mutation("a3", {"status": "approved"})

    assert single.ok
    assert store.is_processing("a1")
    assert store.coordinator.all_settled is None

    approvals_gateway.gates["a1"].set()
    await task

    assert store.coordinator.all_settled == BatchResult(succeeded=["a1", "a2"], failed=[])


@pytest.mark.asyncio
async def test_report_failure_notifies_and_notify_changed_reaches_listeners(make_store, vehicles_gateway, notifications):
    store = make_store(vehicles_gateway)
    seen = []
    store.subscribe(seen.append)

    store.report_failure(TransientNetworkError("Network error: timed out"), "Sync of v1 failed")
    store.notify_changed()

    assert notifications.recent(1)[0].message == "Sync of v1 failed: Network error: timed out"
    assert notifications.recent(1)[0].level == NoticeLevel.ERROR
    assert seen == [store]
