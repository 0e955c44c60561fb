"""pytest plugin exposing the harness to end-to-end test suites.

Registered through the ``pytest11`` entry point. Fixtures:

- ``shopqa_config``: session-scoped ``HarnessConfig`` (``--shopqa-config``)
- ``shopqa_session_store``: session-scoped admin credential cache
- ``shopqa_context``: a ``HarnessContext`` per test, closed afterwards; its
  clients are per test but the admin token is reused for the whole run
- ``fixture_service``: the context's ``FixtureService``
- ``reset_environment``: runs an environment reset and returns its report

With ``--shopqa-reset`` every test that uses ``shopqa_context`` starts
from a freshly reset environment.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from shopqa.config import HarnessConfig, load_config
from shopqa.context import HarnessContext
from shopqa.fixtures.service import FixtureService
from shopqa.reset import EnvironmentResetController, ResetReport
from shopqa.session import SessionStore


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("shopqa")
    group.addoption(
        "--shopqa-config",
        action="store",
        default=None,
        help="Path to a shopqa YAML config file",
    )
    group.addoption(
        "--shopqa-reset",
        action="store_true",
        default=False,
        help="Reset the shop environment before each test using shopqa_context",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "shopqa_reset: reset the shop environment before this test")


@pytest.fixture(scope="session")
def shopqa_config(pytestconfig: pytest.Config) -> HarnessConfig:
    return load_config(pytestconfig.getoption("--shopqa-config"))


@pytest.fixture(scope="session")
def shopqa_session_store() -> SessionStore:
    return SessionStore()


@pytest_asyncio.fixture
async def shopqa_context(
    request: pytest.FixtureRequest,
    shopqa_config: HarnessConfig,
    shopqa_session_store: SessionStore,
) -> AsyncIterator[HarnessContext]:
    context = HarnessContext(shopqa_config, session_store=shopqa_session_store)
    wants_reset = request.config.getoption("--shopqa-reset") or request.node.get_closest_marker(
        "shopqa_reset"
    )
    if wants_reset:
        await EnvironmentResetController(context).reset_environment()
    try:
        yield context
    finally:
        await context.aclose()


@pytest.fixture
def fixture_service(shopqa_context: HarnessContext) -> FixtureService:
    return shopqa_context.fixtures


@pytest.fixture
def reset_environment(shopqa_context: HarnessContext) -> Any:
    async def _reset() -> ResetReport:
        return await EnvironmentResetController(shopqa_context).reset_environment()

    return _reset
