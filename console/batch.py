"""
Batch Operation Coordinator

Bookkeeping for mutations that are in flight: which ids are processing (the
UI disables their controls) and, for a batch, which members succeeded or
failed. The coordinator never retries or aborts anything; every member's
remote call is independent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from shared.errors import EntityBusyError

logger = logging.getLogger(__name__)

OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class BatchFailure:
    id: str
    reason: str


@dataclass
class BatchResult:
    succeeded: List[str] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def any_succeeded(self) -> bool:
        return bool(self.succeeded)

    def summary(self, verb: str = "processed") -> str:
        """Operator-facing tally, e.g. "approved 4 of 5, 1 failed: reason X"."""
        text = f"{verb} {len(self.succeeded)} of {self.total}"
        if self.failed:
            reasons = sorted({failure.reason for failure in self.failed})
            text += f", {len(self.failed)} failed: {'; '.join(reasons)}"
        return text


class Batch:
    """One start() call: the ids it covers and their outcomes as they settle."""

    def __init__(self, ids: Tuple[str, ...]):
        self.ids = ids
        self._outcomes: Dict[str, Tuple[str, Optional[str]]] = {}
        self._done = asyncio.Event()
        if not ids:
            self._done.set()

    def _record(self, entity_id: str, outcome: str, reason: Optional[str]) -> None:
        if entity_id not in self.ids:
            raise KeyError(f"{entity_id} is not part of this batch")
        if entity_id in self._outcomes:
            raise ValueError(f"{entity_id} already settled")
        self._outcomes[entity_id] = (outcome, reason)
        if len(self._outcomes) == len(self.ids):
            self._done.set()

    @property
    def pending(self) -> List[str]:
        return [entity_id for entity_id in self.ids if entity_id not in self._outcomes]

    @property
    def done(self) -> bool:
        return len(self._outcomes) == len(self.ids)

    @property
    def result(self) -> Optional[BatchResult]:
        """The BatchResult, or None while any member is unsettled."""
        if not self.done:
            return None
        result = BatchResult()
        for entity_id in self.ids:
            outcome, reason = self._outcomes[entity_id]
            if outcome == OUTCOME_FAILED:
                result.failed.append(BatchFailure(id=entity_id, reason=reason or "Unknown error"))
            else:
                result.succeeded.append(entity_id)
        return result

    async def wait(self) -> BatchResult:
        await self._done.wait()
        return self.result


class BatchOperationCoordinator:
    def __init__(self):
        self._processing: Dict[str, Batch] = {}
        self._latest: Optional[Batch] = None

    @property
    def processing(self) -> Set[str]:
        return set(self._processing)

    def is_processing(self, entity_id: str) -> bool:
        return entity_id in self._processing

    def start(self, ids: Iterable[str], track_latest: bool = True) -> Batch:
        """
        Mark every id as processing before any network call begins.

        Ids are de-duplicated in order. All-or-nothing: if any id already
        belongs to an unsettled operation, nothing is marked.
        Single-entity writes pass ``track_latest=False`` so they never take
        the place of the batch that all_settled reports on.
        """
        unique = tuple(dict.fromkeys(ids))
        busy = [entity_id for entity_id in unique if entity_id in self._processing]
        if busy:
            raise EntityBusyError(busy)
        batch = Batch(unique)
        for entity_id in unique:
            self._processing[entity_id] = batch
        if track_latest:
            self._latest = batch
        logger.debug(f"Batch started for {len(unique)} id(s)")
        return batch

    def settle(self, entity_id: str, outcome: str, reason: Optional[str] = None) -> None:
        """
        Record the outcome of one member and release it from the processing set.

        ``outcome`` is "failed" for a failure; any other label (e.g. "approved")
        counts as success.
        """
        batch = self._processing.get(entity_id)
        if batch is None:
            raise KeyError(f"{entity_id} is not processing")
        batch._record(entity_id, outcome, reason)
        del self._processing[entity_id]
        if batch.done:
            logger.debug(f"Batch settled: {batch.result.summary()}")

    @property
    def all_settled(self) -> Optional[BatchResult]:
        """Result of the most recent tracked start(), or None until every member settled."""
        if self._latest is None:
            return None
        return self._latest.result
