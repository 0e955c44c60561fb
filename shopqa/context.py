"""Harness context: one explicit object per test run.

Holds the configuration, both API clients, the session manager and the
fixture services. Each test worker builds its own context, so nothing is
shared between processes. Contexts that pass the same ``session_store``
share the cached admin credential.

Example:
    >>> async with create_context() as ctx:
    ...     await EnvironmentResetController(ctx).reset_environment()
    ...     product = await create_product_fixture(ctx.fixtures, {"name": "Shirt"})
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from shopqa.client import ApiClient, StoreApiClient, admin_client, store_client
from shopqa.config import HarnessConfig, load_config
from shopqa.fixtures.loaders import FixtureLoader
from shopqa.fixtures.service import FixtureService
from shopqa.fixtures.storefront import StorefrontFixtures
from shopqa.session import SessionManager, SessionStore

logger = logging.getLogger(__name__)

LocaleListener = Callable[[str], Any]


class HarnessContext:
    """Everything a test needs to talk to the shop, built once per run."""

    def __init__(
        self,
        config: HarnessConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        session_store: SessionStore | None = None,
    ) -> None:
        self.config = config or HarnessConfig()
        self.admin: ApiClient = admin_client(self.config, transport)
        self.store: StoreApiClient = store_client(self.config, transport)
        self.session = SessionManager(self.admin, self.config, store=session_store)
        self.fixtures = FixtureService(
            self.admin,
            self.session,
            loader=FixtureLoader(self.config.fixtures_path),
            config=self.config,
        )
        self.storefront = StorefrontFixtures(self.fixtures, self.store)
        self.locale = self.config.locale
        self._locale_listeners: list[LocaleListener] = []

    def on_locale_change(self, listener: LocaleListener) -> None:
        """Register a callback run whenever the locale is (re)set."""
        self._locale_listeners.append(listener)

    def set_locale(self, locale: str) -> None:
        self.locale = locale
        for listener in self._locale_listeners:
            listener(locale)

    async def aclose(self) -> None:
        await self.admin.aclose()
        await self.store.aclose()

    async def __aenter__(self) -> HarnessContext:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_context(
    config_path: str | Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **overrides: Any,
) -> HarnessContext:
    """Load configuration and build a context."""
    config = load_config(config_path, **overrides)
    logger.debug(f"Harness context for {config.base_url}")
    return HarnessContext(config, transport=transport)
