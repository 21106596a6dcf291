"""
Pending Patch Store

Field-level overrides produced by optimistic mutations, keyed by entity id
and laid over the last server snapshot when the list is rendered.

Two kinds of patch live here:
- update patches: a partial set of fields for an entity the server knows about.
  At most one per id; a newer patch replaces the older one wholesale.
- create patches: the full field set of an entity created locally that the
  server snapshot does not contain yet. Kept in creation order.

An update patch disappears when its mutation fails (rollback), when a fresh
snapshot already shows every patched field (reconcile_against), or when it
has been confirmed by the server for longer than the patch TTL (expire).
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)


class PatchOrigin(str, enum.Enum):
    UPDATE = "update"
    CREATE = "create"


@dataclass
class PendingPatch:
    entity_id: str
    fields: Dict[str, Any]
    created_at: float
    origin: PatchOrigin = PatchOrigin.UPDATE
    confirmed_at: Optional[float] = None  # set once the server accepted the mutation
    replaced: Optional["PendingPatch"] = field(default=None, repr=False)

    @property
    def confirmed(self) -> bool:
        return self.confirmed_at is not None


class PendingPatchStore:
    def __init__(self, id_field: str = "id", clock: Callable[[], float] = time.monotonic):
        self.id_field = id_field
        self._clock = clock
        self._updates: Dict[str, PendingPatch] = {}
        self._creates: Dict[str, PendingPatch] = {}

    # -- update patches ---------------------------------------------------

    def apply(self, entity_id: str, fields: Mapping[str, Any]) -> PendingPatch:
        """Record or replace the update patch for ``entity_id``. No I/O."""
        fields = dict(fields)
        fields.pop(self.id_field, None)
        current = self._updates.get(entity_id)
        if current is not None and current.fields == fields and not current.confirmed:
            return current
        replaced = current if current is not None and current.confirmed else None
        patch = PendingPatch(entity_id=entity_id, fields=fields, created_at=self._clock(), replaced=replaced)
        self._updates[entity_id] = patch
        return patch

    def rollback(self, entity_id: str, patch: Optional[PendingPatch] = None) -> Optional[PendingPatch]:
        """
        Remove the update patch for ``entity_id``.

        When ``patch`` is given the removal only happens if it is still the
        current patch, so a failed older mutation cannot wipe a newer one.
        A confirmed patch that the removed one had replaced is put back.
        """
        current = self._updates.get(entity_id)
        if current is None:
            return None
        if patch is not None and current is not patch:
            logger.debug(f"Rollback for {entity_id} skipped: patch was superseded")
            return None
        removed = self._updates.pop(entity_id)
        if removed.replaced is not None:
            self._updates[entity_id] = removed.replaced
        return removed

    def confirm(self, entity_id: str, patch: Optional[PendingPatch] = None) -> bool:
        current = self._updates.get(entity_id)
        if current is None or (patch is not None and current is not patch):
            return False
        current.confirmed_at = self._clock()
        current.replaced = None
        return True

    def get(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Fields of the update patch for ``entity_id``, or None."""
        patch = self._updates.get(entity_id)
        return dict(patch.fields) if patch is not None else None

    def get_patch(self, entity_id: str) -> Optional[PendingPatch]:
        return self._updates.get(entity_id)

    def reconcile_against(self, fresh_entity: Mapping[str, Any]) -> bool:
        """
        Drop the update patch for a freshly fetched entity if the server has caught up.

        The patch has caught up when every patched field is present in the
        fresh entity with an equal value. A field the server does not return
        keeps the patch alive. Returns True when the patch was dropped.
        """
        entity_id = fresh_entity.get(self.id_field)
        patch = self._updates.get(entity_id)
        if patch is None:
            return False
        for name, value in patch.fields.items():
            if name not in fresh_entity or fresh_entity[name] != value:
                return False
        del self._updates[entity_id]
        logger.debug(f"Patch for {entity_id} reconciled with server snapshot")
        return True

    def expire(self, ttl_seconds: float) -> List[str]:
        """Drop confirmed update patches confirmed more than ``ttl_seconds`` ago."""
        now = self._clock()
        expired = [
            entity_id for entity_id, patch in self._updates.items()
            if patch.confirmed and now - patch.confirmed_at >= ttl_seconds
        ]
        for entity_id in expired:
            del self._updates[entity_id]
        if expired:
            logger.debug(f"Expired confirmed patches: {expired}")
        return expired

    # -- create patches ---------------------------------------------------

    def add_created(self, entity: Mapping[str, Any]) -> PendingPatch:
        entity_id = entity[self.id_field]
        patch = PendingPatch(
            entity_id=entity_id,
            fields=dict(entity),
            created_at=self._clock(),
            origin=PatchOrigin.CREATE,
        )
        self._creates[entity_id] = patch
        return patch

    def remove_created(self, entity_id: str) -> Optional[PendingPatch]:
        return self._creates.pop(entity_id, None)

    def rekey_created(self, old_id: str, entity: Mapping[str, Any]) -> PendingPatch:
        """Replace a locally created entity with the server's version, keeping its position."""
        new_id = entity[self.id_field]
        rebuilt: Dict[str, PendingPatch] = {}
        for entity_id, patch in self._creates.items():
            if entity_id == old_id:
                patch = PendingPatch(
                    entity_id=new_id,
                    fields=dict(entity),
                    created_at=patch.created_at,
                    origin=PatchOrigin.CREATE,
                    confirmed_at=self._clock(),
                )
                entity_id = new_id
            rebuilt[entity_id] = patch
        self._creates = rebuilt
        if old_id != new_id and old_id in self._updates:
            moved = self._updates.pop(old_id)
            moved.entity_id = new_id
            self._updates[new_id] = moved
        return self._creates[new_id]

    def is_created(self, entity_id: str) -> bool:
        return entity_id in self._creates

    def created_entities(self) -> List[Dict[str, Any]]:
        return [dict(patch.fields) for patch in self._creates.values()]

    def prune_created(self, snapshot_ids) -> List[str]:
        """Forget locally created entities the server snapshot now contains."""
        landed = [entity_id for entity_id in self._creates if entity_id in snapshot_ids]
        for entity_id in landed:
            del self._creates[entity_id]
        return landed

    # -- introspection ----------------------------------------------------

    def is_pending(self, entity_id: str) -> bool:
        return entity_id in self._updates or entity_id in self._creates

    def ids(self) -> Iterator[str]:
        return iter(list(self._updates))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._updates

    def __len__(self) -> int:
        return len(self._updates)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {entity_id: dict(patch.fields) for entity_id, patch in self._updates.items()}
