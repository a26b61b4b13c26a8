"""
Wiring for one back-office instance: session, API client, notifier and the
per-screen controllers/services that share them.
"""
import logging
from functools import lru_cache
from typing import Dict, Optional

import httpx

from propdesk.clients.api_client import ApiClient
from propdesk.config import get_settings
from propdesk.models import EntityKind
from propdesk.services.auth_service import Session, SessionStore
from propdesk.services.dashboard_service import DashboardService
from propdesk.services.export_service import ExportService
from propdesk.services.list_controller import LIST_DEFINITIONS, ListQueryController
from propdesk.services.notifications import Notifier
from propdesk.services.records_service import RecordsService

logger = logging.getLogger(__name__)


class BackOffice:
    def __init__(
        self,
        session: Optional[Session] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.session = session or Session(SessionStore())
        self.api = ApiClient(self.session, base_url=base_url, transport=transport)
        self.debounce_seconds = debounce_seconds
        self._build()
        # Records are discarded when the session goes away
        self.session.on_clear(self.reset)

    def controller(self, kind: EntityKind) -> ListQueryController:
        return self.lists[kind]

    def _build(self) -> None:
        self.notifier = Notifier()
        self.dashboard = DashboardService(self.api, self.notifier)
        self.records = RecordsService(self.api, self.notifier)
        self.exports = ExportService(self.api, self.notifier)
        self.lists: Dict[EntityKind, ListQueryController] = {
            kind: ListQueryController(definition, self.api, self.notifier, self.debounce_seconds)
            for kind, definition in LIST_DEFINITIONS.items()
        }

    def reset(self) -> None:
        """
        Drop every screen's state. Armed search timers are cancelled, and
        requests still in flight report into the discarded notifier.
        """
        for controller in self.lists.values():
            controller.cancel_pending()
        self.notifier.drain()
        self._build()
        logger.info("[SESSION] Back-office state discarded")


@lru_cache()
def get_backoffice() -> BackOffice:
    backoffice = BackOffice()
    backoffice.session.load()
    logger.info(f"[SESSION] Back-office ready (api={get_settings().api_base_url})")
    return backoffice
