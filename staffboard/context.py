import logging
from typing import Optional

import httpx

from staffboard.config.settings import Settings
from staffboard.engine.lifetimes import ViewRegistry
from staffboard.gateway.client import DataGateway
from staffboard.storage.session_store import SessionStore
from staffboard.storage.state_store import StateStore, build_state_store

logger = logging.getLogger(__name__)


class AppContext:
    """Everything one dashboard process shares, built once and injected into routes."""

    def __init__(self, settings: Settings, state: StateStore, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.state = state
        self.sessions = SessionStore(state)
        self.gateway = DataGateway(
            settings.api_base_url,
            token_provider=self.sessions.get_token,
            timeout_seconds=settings.request_timeout_seconds,
            transport=transport,
        )
        self.views = ViewRegistry()

    @classmethod
    def build(
        cls,
        settings: Settings,
        state: Optional[StateStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AppContext":
        return cls(settings, state or build_state_store(settings), transport=transport)

    def init(self) -> None:
        session = self.sessions.init()
        logger.info(f"Backend: {self.settings.api_base_url}")
        logger.info(f"Session restored: {session.is_active}")

    async def teardown(self) -> None:
        self.views.cancel_all()
        await self.gateway.aclose()
        self.sessions.teardown()
