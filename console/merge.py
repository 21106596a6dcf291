"""
Reconciliation Merge

Pure function producing the list the operator sees from the last server
snapshot, the pending patches and the locally created entities.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol


class PatchSource(Protocol):
    def get(self, entity_id: str) -> Optional[Mapping[str, Any]]: ...


def overlay(entity: Mapping[str, Any], fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Patch fields win; every field the patch does not touch comes from ``entity``."""
    merged = dict(entity)
    if fields:
        merged.update(fields)
    return merged


def merge(
    snapshot: Iterable[Mapping[str, Any]],
    patches: PatchSource,
    locally_created: Iterable[Mapping[str, Any]] = (),
    id_field: str = "id",
) -> List[Dict[str, Any]]:
    """
    Overlay pending patches on the snapshot and append local creations.

    Snapshot order is preserved. Locally created entities follow in creation
    order, except those whose id the snapshot already contains: for those the
    snapshot is authoritative. ``patches`` is anything with ``get(id)``, such
    as a PendingPatchStore or a plain dict of id -> fields.
    """
    result = []
    seen = set()
    for entity in snapshot:
        entity_id = entity.get(id_field)
        seen.add(entity_id)
        result.append(overlay(entity, patches.get(entity_id)))

    for entity in locally_created:
        entity_id = entity.get(id_field)
        if entity_id in seen:
            continue
        seen.add(entity_id)
        result.append(overlay(entity, patches.get(entity_id)))

    return result
