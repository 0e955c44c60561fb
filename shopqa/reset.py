"""Environment reset run before every test.

Three fixed steps, always all of them and always in this order:

1. restore the baseline database (cleanup server or local console command)
2. clear the application cache (best effort)
3. reset the locale to the configured baseline

A failing step is logged and recorded in the returned report; later steps
still run and nothing is raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from shopqa.errors import ResetError
from shopqa.observability.logging import log_context

if TYPE_CHECKING:
    from shopqa.context import HarnessContext

logger = logging.getLogger(__name__)

CLEANUP_SUCCESS = "success"


class BaselineRestorer(ABC):
    """Restores the shop's database to the baseline seed data."""

    @abstractmethod
    async def restore(self) -> None:
        """Restore the baseline; raise ResetError on failure."""


class CleanupServerRestorer(BaselineRestorer):
    """Asks the local cleanup server to run the restore script."""

    def __init__(
        self,
        url: str,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def restore(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url)
        except httpx.RequestError as e:
            raise ResetError(f"Cleanup server unreachable at {self.url}", cause=e) from e

        body = response.text.strip()
        if body != CLEANUP_SUCCESS:
            raise ResetError(f"Cleanup server reported failure: {body[:500]}", url=self.url)


class LocalCommandRestorer(BaselineRestorer):
    """Runs the restore command on the machine the tests run on."""

    def __init__(self, command: list[str]) -> None:
        self.command = command

    async def restore(self) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ResetError(f"Could not start {' '.join(self.command)}", cause=e) from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise ResetError(
                f"{' '.join(self.command)} exited with code {process.returncode}",
                stdout=stdout.decode(errors="replace"),
                stderr=stderr.decode(errors="replace"),
            )


@dataclass
class ResetStepResult:
    name: str
    success: bool
    error: str | None = None
    duration_ms: float = 0.0


@dataclass
class ResetReport:
    steps: list[ResetStepResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(step.success for step in self.steps)

    def step(self, name: str) -> ResetStepResult | None:
        return next((s for s in self.steps if s.name == name), None)


class EnvironmentResetController:
    """Puts the shop back into its baseline state before a test."""

    def __init__(self, context: HarnessContext, restorer: BaselineRestorer | None = None) -> None:
        self.context = context
        self.restorer = restorer or default_restorer(context)

    async def reset_environment(self) -> ResetReport:
        report = ResetReport()
        with log_context(operation="reset_environment"):
            logger.info("Cleaning, please wait a little bit.")
            report.steps.append(await self._run("restore_baseline", self.restorer.restore))
            report.steps.append(await self._run("clear_cache", self._clear_cache))
            report.steps.append(await self._run("reset_locale", self._reset_locale))

        if report.success:
            logger.info("Environment reset complete")
        else:
            failed = ", ".join(s.name for s in report.steps if not s.success)
            logger.warning(f"Environment reset finished with failed steps: {failed}")
        return report

    async def _run(self, name: str, step: Callable[[], Awaitable[None]]) -> ResetStepResult:
        start = time.perf_counter()
        try:
            await step()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(f"Reset step '{name}' failed: {e}")
            return ResetStepResult(name, success=False, error=str(e), duration_ms=duration_ms)
        return ResetStepResult(name, success=True, duration_ms=(time.perf_counter() - start) * 1000)

    async def _clear_cache(self) -> None:
        if not await self.context.fixtures.clear_cache():
            raise ResetError("Cache could not be cleared")

    async def _reset_locale(self) -> None:
        self.context.set_locale(self.context.config.locale)


def default_restorer(context: HarnessContext) -> BaselineRestorer:
    """Local console command when running locally, else the cleanup server."""
    config = context.config
    if config.local_usage:
        return LocalCommandRestorer(config.restore_command)
    return CleanupServerRestorer(config.cleanup_endpoint)


async def reset_environment(context: HarnessContext) -> ResetReport:
    """Run a full environment reset with the configured restorer."""
    return await EnvironmentResetController(context).reset_environment()
