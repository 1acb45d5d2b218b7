"""
Stats Poller
Fetches ``/api/stats`` on a fixed cadence and feeds the Rate Sampler.

Usage:
    client = StatsClient("http://localhost:3000")
    poller = StatsPoller(client, sampler, interval=1.0)
    poller.start()          # inside a running event loop
    ...
    await poller.close()     # stops, waits for an in-flight fetch, closes the client
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import requests

from idswatch.contracts.stats import StatsSnapshot
from idswatch.core.sampler import RateSampler
from idswatch.errors import StatsFetchError

log = logging.getLogger(__name__)


class StatsClient:
    """Blocking client for the backend statistics endpoint."""

    STATS_PATH = "/api/stats"

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        session: requests.Session | None = None,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_stats(self) -> StatsSnapshot:
        """GET the stats envelope and return the wrapped snapshot.

        Raises:
            StatsFetchError: on transport, HTTP or payload errors.
        """
        url = f"{self.base_url}{self.STATS_PATH}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            payload: Any = resp.json()
        except requests.exceptions.RequestException as exc:
            raise StatsFetchError(f"GET {url} failed: {exc}") from exc
        except ValueError as exc:
            raise StatsFetchError(f"GET {url} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise StatsFetchError("stats payload is not an object")
        # The API wraps data in {success, data, error}; accept a bare object too.
        if "success" in payload:
            if not payload.get("success") or payload.get("data") is None:
                raise StatsFetchError(f"server reported failure: {payload.get('error')}")
            payload = payload["data"]
        return StatsSnapshot.from_dict(payload)

    def close(self) -> None:
        self.session.close()


class StatsPoller:
    """Periodic poll task; failures are logged and the loop keeps going."""

    def __init__(self, client: StatsClient, sampler: RateSampler, interval: float = 1.0):
        self.client = client
        self.sampler = sampler
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Future | None = None
        self.polls = 0
        self.errors = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.info("Stats poller started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("Stats poller stopped after %d polls (%d errors)", self.polls, self.errors)

    async def close(self) -> None:
        """Stop polling, wait for an in-flight fetch, then close the client."""
        await self.stop()
        inflight, self._inflight = self._inflight, None
        if inflight is not None:
            with contextlib.suppress(Exception):
                await inflight
        self.client.close()

    async def poll_once(self) -> bool:
        """Fetch one snapshot into the sampler; returns False on failure."""
        self.polls += 1
        try:
            # Shielded: cancelling the poll must not abandon the worker thread.
            self._inflight = asyncio.ensure_future(asyncio.to_thread(self.client.fetch_stats))
            snapshot = await asyncio.shield(self._inflight)
        except StatsFetchError as exc:
            self.errors += 1
            log.warning("Stats poll failed: %s", exc)
            return False
        self.sampler.add_sample(snapshot)
        return True

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)
