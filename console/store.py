"""
Resource Store

Everything the console knows about one resource type (vehicles, approvals,
chats, ...) for the lifetime of a session: the last server snapshot, the
pending patches, the detail cache, the processing set and the refresh
scheduler. Every view of the resource reads the same store, so a mutation
made from one screen shows up on all of them.

Control flow of a mutation:
  optimistic patch -> listeners re-render -> remote call ->
  success: patch confirmed, detail invalidated, refresh requested
  failure: the exact patch applied is rolled back, error surfaced

Only the remote calls suspend; patching and merging are synchronous.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from console.batch import OUTCOME_FAILED, BatchOperationCoordinator, BatchResult
from console.detail_cache import DetailCache
from console.merge import merge
from console.notifications import NotificationCenter
from console.patches import PendingPatch, PendingPatchStore
from console.resources.base import ResourceGateway
from console.scheduler import RefreshScheduler
from shared.errors import ConsoleError, failure_reason

logger = logging.getLogger(__name__)

Listener = Callable[["ResourceStore"], None]


@dataclass
class MutationResult:
    entity_id: str
    ok: bool
    reason: Optional[str] = None
    entity: Optional[Dict[str, Any]] = None


class ResourceStore:
    def __init__(
        self,
        gateway: ResourceGateway,
        notifications: Optional[NotificationCenter] = None,
        refresh_interval: float = 0,
        patch_ttl: float = 300.0,
        detail_max_age: Optional[float] = None,
        refresh_after_mutation: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = gateway.name
        self.gateway = gateway
        self.id_field = gateway.id_field
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self.patch_ttl = patch_ttl
        self.refresh_after_mutation = refresh_after_mutation

        self.snapshot: List[Dict[str, Any]] = []
        self.loaded = False
        self.patches = PendingPatchStore(id_field=self.id_field, clock=clock)
        self.details = DetailCache(max_age=detail_max_age, clock=clock)
        self.coordinator = BatchOperationCoordinator()
        self.scheduler = RefreshScheduler(
            self.name,
            self._fetch_snapshot,
            interval_seconds=refresh_interval,
            on_error=self._on_refresh_error,
        )

        self._listeners: List[Listener] = []
        self._views: Set[Any] = set()
        self._visible_views: Set[Any] = set()

    # -- reads ----------------------------------------------------------------

    def current_list(self) -> List[Dict[str, Any]]:
        return merge(self.snapshot, self.patches, self.patches.created_entities(), id_field=self.id_field)

    def get(self, entity_id: str) -> Optional[Dict[str, Any]]:
        for entity in self.current_list():
            if entity.get(self.id_field) == entity_id:
                return entity
        return None

    def is_pending(self, entity_id: str) -> bool:
        return self.patches.is_pending(entity_id)

    def is_processing(self, entity_id: str) -> bool:
        return self.coordinator.is_processing(entity_id)

    def selected_detail(self, entity_id: str) -> Optional[Any]:
        entry = self.details.get(entity_id)
        return entry.detail if entry is not None else None

    async def select_detail(self, entity_id: str) -> Optional[Any]:
        """Load (or reuse) the detail for ``entity_id``; None if the fetch failed."""
        try:
            return await self.details.fetch_and_cache(entity_id, self.gateway.fetch_detail)
        except Exception as exc:
            self.report_failure(exc, f"Failed to load {entity_id}")
            return None

    # -- refresh --------------------------------------------------------------

    async def refresh(self) -> bool:
        return await self.scheduler.refresh()

    async def _fetch_snapshot(self) -> None:
        fresh = await self.gateway.fetch_snapshot()
        self.apply_snapshot(fresh)

    def apply_snapshot(self, fresh: Iterable[Mapping[str, Any]]) -> None:
        """Replace the snapshot and let pending patches catch up with it."""
        self.snapshot = [dict(entity) for entity in fresh]
        self.loaded = True
        snapshot_ids = set()
        dropped = 0
        for entity in self.snapshot:
            snapshot_ids.add(entity.get(self.id_field))
            if self.patches.reconcile_against(entity):
                dropped += 1
        landed = self.patches.prune_created(snapshot_ids)
        expired = self.patches.expire(self.patch_ttl)
        logger.debug(
            f"[{self.name}] snapshot of {len(self.snapshot)}: {dropped} patch(es) caught up, "
            f"{len(landed)} creation(s) landed, {len(expired)} expired"
        )
        self.notify_changed()

    def _on_refresh_error(self, exc: BaseException) -> None:
        self.report_failure(exc, f"Failed to load {self.name}")

    def _refresh_soon(self) -> None:
        if self.refresh_after_mutation:
            self.scheduler.request_refresh()

    # -- mutations ------------------------------------------------------------

    async def run_mutation(self, entity_id: str, fields: Mapping[str, Any]) -> MutationResult:
        """
        Optimistically apply ``fields`` to one entity and write them to the server.

        Raises:
            EntityBusyError: a mutation for ``entity_id`` is already in flight
        """
        self.coordinator.start([entity_id], track_latest=False)
        patch = self._apply_patch(entity_id, fields)
        self.notify_changed()

        try:
            entity = await self.gateway.mutate(entity_id, dict(fields))
        except BaseException as exc:
            reason = self._fail_member(entity_id, patch, exc)
            if not isinstance(exc, Exception):
                raise
            self.notifications.error(f"Update of {entity_id} failed: {reason}", self.name)
            self.notify_changed()
            return MutationResult(entity_id=entity_id, ok=False, reason=reason)

        verb = self.gateway.describe(fields)
        self._succeed_member(entity_id, patch, verb)
        self.notifications.success(f"{entity_id} {verb}", self.name)
        self.notify_changed()
        self._refresh_soon()
        return MutationResult(entity_id=entity_id, ok=True, entity=entity)

    async def run_batch(self, entity_ids: Iterable[str], fields: Mapping[str, Any]) -> BatchResult:
        """
        Apply one change to many entities; each member succeeds or fails on its own.

        Raises:
            EntityBusyError: any of the ids already has a mutation in flight
                (nothing is started in that case)
        """
        batch = self.coordinator.start(entity_ids)
        if not batch.ids:
            return BatchResult()
        patches = {entity_id: self._apply_patch(entity_id, fields) for entity_id in batch.ids}
        self.notify_changed()
        verb = self.gateway.describe(fields)

        try:
            bulk = await self.gateway.mutate_many(list(batch.ids), dict(fields))
        except BaseException as exc:
            for entity_id in batch.pending:
                self._fail_member(entity_id, patches[entity_id], exc)
            if not isinstance(exc, Exception):
                raise
        else:
            if bulk is None:
                await asyncio.gather(*(
                    self._batch_member(entity_id, fields, patches[entity_id], verb)
                    for entity_id in batch.ids
                ))
            else:
                self._settle_from_bulk(batch.ids, bulk, patches, verb)

        result = batch.result
        if result.failed and not result.succeeded:
            self.notifications.error(result.summary(verb), self.name)
        elif result.failed:
            self.notifications.warning(result.summary(verb), self.name)
        else:
            self.notifications.success(result.summary(verb), self.name)
        self.notify_changed()
        if result.any_succeeded:
            self._refresh_soon()
        return result

    def _apply_patch(self, entity_id: str, fields: Mapping[str, Any]) -> Optional[PendingPatch]:
        # Action parameters go to the server but never into the patch; the
        # snapshot does not echo them, so a patch holding one could not catch up.
        entity_fields = self.gateway.entity_fields(fields)
        if not entity_fields:
            return None
        return self.patches.apply(entity_id, entity_fields)

    async def _batch_member(
        self, entity_id: str, fields: Mapping[str, Any], patch: Optional[PendingPatch], verb: str
    ) -> None:
        try:
            await self.gateway.mutate(entity_id, dict(fields))
        except BaseException as exc:
            self._fail_member(entity_id, patch, exc)
            if not isinstance(exc, Exception):
                raise
            return
        self._succeed_member(entity_id, patch, verb)

    def _settle_from_bulk(
        self, ids, bulk: BatchResult, patches: Dict[str, Optional[PendingPatch]], verb: str
    ) -> None:
        failed = {failure.id: failure.reason for failure in bulk.failed}
        succeeded = set(bulk.succeeded)
        for entity_id in ids:
            if entity_id in succeeded:
                self._succeed_member(entity_id, patches[entity_id], verb)
            else:
                reason = failed.get(entity_id, "No result returned for this item")
                if patches[entity_id] is not None:
                    self.patches.rollback(entity_id, patches[entity_id])
                self.coordinator.settle(entity_id, OUTCOME_FAILED, reason)

    def _succeed_member(self, entity_id: str, patch: Optional[PendingPatch], verb: str) -> None:
        if patch is not None:
            self.patches.confirm(entity_id, patch)
        self.details.invalidate(entity_id)
        self.coordinator.settle(entity_id, verb)

    def _fail_member(self, entity_id: str, patch: Optional[PendingPatch], exc: BaseException) -> str:
        reason = failure_reason(exc) if isinstance(exc, Exception) else "Cancelled"
        self._log_unexpected(exc)
        if patch is not None:
            self.patches.rollback(entity_id, patch)
        self.coordinator.settle(entity_id, OUTCOME_FAILED, reason)
        return reason

    async def create(self, fields: Mapping[str, Any], entity_id: Optional[str] = None) -> MutationResult:
        """
        Optimistically add a new entity and create it on the server.

        Without an explicit id the entity gets a client-generated one; if the
        server assigns its own id the local entity is re-keyed to it.
        """
        local_id = entity_id or fields.get(self.id_field) or f"local-{uuid.uuid4().hex[:12]}"
        entity = {**fields, self.id_field: local_id}
        self.coordinator.start([local_id], track_latest=False)
        self.patches.add_created(entity)
        self.notify_changed()

        try:
            created = await self.gateway.create(dict(entity))
        except BaseException as exc:
            self.patches.remove_created(local_id)
            reason = self._fail_member(local_id, None, exc)
            if not isinstance(exc, Exception):
                raise
            self.notifications.error(f"Create failed: {reason}", self.name)
            self.notify_changed()
            return MutationResult(entity_id=local_id, ok=False, reason=reason)

        server_id = created.get(self.id_field) or local_id
        if self.patches.is_created(local_id):
            self.patches.rekey_created(local_id, {**entity, **created, self.id_field: server_id})
        self.coordinator.settle(local_id, "created")
        self.notifications.success(f"{server_id} created", self.name)
        self.notify_changed()
        self._refresh_soon()
        return MutationResult(entity_id=server_id, ok=True, entity=created)

    # -- views & listeners ----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify_changed(self) -> None:
        """Tell subscribers the rendered list or a cached detail changed."""
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning(f"[{self.name}] listener failed: {e}")

    def attach_view(self, view: Any) -> None:
        self._views.add(view)

    def detach_view(self, view: Any) -> None:
        self._views.discard(view)
        self.set_view_visible(view, False)

    def set_view_visible(self, view: Any, visible: bool) -> None:
        if visible:
            self._visible_views.add(view)
        else:
            self._visible_views.discard(view)
        self.scheduler.set_visible(bool(self._visible_views))

    @property
    def view_count(self) -> int:
        return len(self._views)

    async def close(self, cancel_inflight: bool = False) -> None:
        self._visible_views.clear()
        await self.scheduler.close(cancel_inflight=cancel_inflight)
        self._listeners.clear()

    def report_failure(self, exc: BaseException, message: str) -> None:
        """Log an unexpected error and raise an operator notice "<message>: <reason>"."""
        self._log_unexpected(exc)
        self.notifications.error(f"{message}: {failure_reason(exc)}", self.name)

    def _log_unexpected(self, exc: BaseException) -> None:
        if isinstance(exc, Exception) and not isinstance(exc, ConsoleError):
            logger.warning(f"[{self.name}] unexpected error: {exc}", exc_info=exc)
