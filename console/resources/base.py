"""
Resource gateway base.

A gateway is the thin I/O wrapper for one dashboard list: it knows the
endpoints and the wire format, and hands plain snake_case dicts to the
reconciliation core. Wire payloads are camelCase; pydantic models with a
camelCase alias generator validate and normalize them.
"""

import abc
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from console.batch import BatchResult
from shared.api_client import ApiClient
from shared.errors import UnsupportedOperation

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for API payload models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_entity(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def to_wire(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """snake_case patch fields -> camelCase request body."""
    return {to_camel(name): value for name, value in fields.items()}


class ResourceGateway(abc.ABC):
    """
    External collaborator interface for one resource type.

    Subclasses implement fetch_snapshot and whichever of the remaining
    operations the backend supports; the defaults raise UnsupportedOperation.
    """

    name: str = ""
    id_field: str = "id"
    # Request-only parameters (notes, reasons) that ride along with a mutation
    # but are not fields of the entity the server returns.
    action_params: Tuple[str, ...] = ()

    def __init__(self, client: ApiClient):
        self.client = client

    @abc.abstractmethod
    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        """Full (or filtered) list of entities as the server currently sees it."""

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        raise UnsupportedOperation(f"{self.name} has no detail view")

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        raise UnsupportedOperation(f"{self.name} is read-only")

    async def mutate_many(self, entity_ids: List[str], fields: Mapping[str, Any]) -> Optional[BatchResult]:
        """
        Apply one change to many ids in a single call.

        Returning None tells the caller to issue independent mutate() calls.
        """
        return None

    async def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        raise UnsupportedOperation(f"{self.name} does not support create")

    def entity_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """The part of a mutation that changes the entity itself; this is what gets patched."""
        return {name: value for name, value in fields.items() if name not in self.action_params}

    def describe(self, fields: Mapping[str, Any]) -> str:
        """Past-tense verb for operator notices about a mutation with ``fields``."""
        return "updated"

    @staticmethod
    def parse_list(model, items: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
        entities = []
        for item in items or []:
            if not isinstance(item, dict):
                logger.debug(f"Skipping non-object list item: {item!r}")
                continue
            entities.append(model.model_validate(item).to_entity())
        return entities
