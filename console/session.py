"""
Dashboard session and views.

A DashboardSession owns one ResourceStore per resource type, the API client
and the notification center for as long as the operator's session lasts.
Nothing is module-global; whoever needs a store is handed the session.

A DashboardView is one screen consuming one store. Showing and hiding views
drives the store's refresh scheduler. Closing a view never aborts network
calls other views may be sharing; results that arrive for a closed view are
applied to the shared store but not delivered to the view.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from console.batch import BatchResult
from console.notifications import NotificationCenter
from console.resources import build_default_gateways
from console.resources.base import ResourceGateway
from console.store import MutationResult, ResourceStore
from shared.api_client import ApiClient
from shared.config import ConsoleConfig, validate_config

logger = logging.getLogger(__name__)


class DashboardView:
    def __init__(self, store: ResourceStore, name: Optional[str] = None):
        self.store = store
        self.name = name or store.name
        self.closed = False
        self.visible = False
        self.on_change: Optional[Callable[["DashboardView"], None]] = None
        self.last_result: Any = None
        self._unsubscribe = store.subscribe(self._store_changed)
        store.attach_view(self)

    def _store_changed(self, store: ResourceStore) -> None:
        if self.closed or self.on_change is None:
            return
        self.on_change(self)

    def show(self) -> None:
        if self.closed:
            return
        self.visible = True
        self.store.set_view_visible(self, True)

    def hide(self) -> None:
        self.visible = False
        self.store.set_view_visible(self, False)

    def current_list(self):
        return self.store.current_list()

    def is_pending(self, entity_id: str) -> bool:
        return self.store.is_pending(entity_id)

    def is_processing(self, entity_id: str) -> bool:
        return self.store.is_processing(entity_id)

    def selected_detail(self, entity_id: str) -> Optional[Any]:
        return self.store.selected_detail(entity_id)

    async def select_detail(self, entity_id: str) -> Optional[Any]:
        return self._deliver(await self.store.select_detail(entity_id))

    async def refresh(self) -> Optional[bool]:
        return self._deliver(await self.store.refresh())

    async def run_mutation(self, entity_id: str, fields: Mapping[str, Any]) -> Optional[MutationResult]:
        return self._deliver(await self.store.run_mutation(entity_id, fields))

    async def run_batch(self, entity_ids: Iterable[str], fields: Mapping[str, Any]) -> Optional[BatchResult]:
        return self._deliver(await self.store.run_batch(entity_ids, fields))

    async def create(self, fields: Mapping[str, Any], entity_id: Optional[str] = None) -> Optional[MutationResult]:
        return self._deliver(await self.store.create(fields, entity_id=entity_id))

    def _deliver(self, result):
        if self.closed:
            logger.debug(f"View {self.name} closed; dropping result")
            return None
        self.last_result = result
        return result

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.visible = False
        self._unsubscribe()
        self.store.detach_view(self)
        logger.debug(f"View {self.name} closed")


class DashboardSession:
    """
    Usage:
        async with DashboardSession.from_config(ConsoleConfig.from_env()) as session:
            view = session.open_view("approvals")
            await view.refresh()
            result = await view.run_batch(["a1", "a2"], {"status": "approved"})
    """

    def __init__(
        self,
        client: Optional[ApiClient] = None,
        config: Optional[ConsoleConfig] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self.config = config or ConsoleConfig()
        self.client = client
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self._stores: Dict[str, ResourceStore] = {}
        self._closed = False

    @classmethod
    def from_config(cls, config: Optional[ConsoleConfig] = None, http_session: Optional[Any] = None) -> "DashboardSession":
        """Session wired to the dashboard API with every built-in resource registered."""
        config = config or ConsoleConfig.from_env()
        validate_config(config)
        client = ApiClient(config.api_base_url, timeout=config.api_timeout, session=http_session)
        session = cls(client=client, config=config)
        for gateway in build_default_gateways(client):
            session.register(gateway)
        return session

    def register(self, gateway: ResourceGateway, **options) -> ResourceStore:
        if gateway.name in self._stores:
            raise ValueError(f"Resource {gateway.name} already registered")
        options.setdefault("refresh_interval", self.config.refresh_interval(gateway.name))
        options.setdefault("patch_ttl", self.config.patch_ttl_seconds)
        store = ResourceStore(gateway, notifications=self.notifications, **options)
        self._stores[gateway.name] = store
        logger.info(f"Registered resource {gateway.name} (refresh every {options['refresh_interval']}s)")
        return store

    def store(self, name: str) -> ResourceStore:
        try:
            return self._stores[name]
        except KeyError:
            raise KeyError(f"Unknown resource: {name}") from None

    @property
    def resources(self):
        return list(self._stores)

    def open_view(self, name: str, visible: bool = True, view_name: Optional[str] = None) -> DashboardView:
        if self._closed:
            raise RuntimeError("Session is closed")
        view = DashboardView(self.store(name), name=view_name)
        if visible:
            view.show()
        return view

    async def close(self) -> None:
        """End of session: stop polling, let in-flight refreshes finish, release HTTP."""
        if self._closed:
            return
        self._closed = True
        for store in self._stores.values():
            await store.close()
        if self.client is not None:
            self.client.close()
        logger.info("Dashboard session closed")

    async def __aenter__(self) -> "DashboardSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
