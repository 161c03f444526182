"""Application bootstrap for gwgraph.

Startup order: config -> logging -> graph store (initial snapshot)
              -> snapshot refresher -> REST

Shutdown stops components in reverse order. Each stop error is caught and
logged on its own so one failure does not block the rest.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from gwgraph.config import load_config
from gwgraph.graph.store import GraphStore, load_snapshot
from gwgraph.models.config import GwGraphConfig
from gwgraph.models.issues import GraphError
from gwgraph.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class GwGraphApp:
    """Application root. Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already
    stopped) is safe.
    """

    def __init__(self) -> None:
        self.config: GwGraphConfig | None = None
        self.store: GraphStore | None = None
        self._rest_server: object | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("gwgraph starting", version=_gwgraph_version())

        # --- 3. Graph store ----------------------------------------------
        self._start_store()

        # --- 4. Snapshot refresher ---------------------------------------
        self._start_refresher()

        # --- 5. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("gwgraph started", port=self.config.api.port)

    def _start_store(self) -> None:
        """Create the store and publish the initial snapshot, if configured."""
        assert self._log is not None
        assert self.config is not None
        self.store = GraphStore()
        if not self.config.snapshot.path:
            self._log.warning("no snapshot path configured; serving without a graph")
            return
        try:
            self.refresh()
        except GraphError as exc:
            raise _ComponentError("store", exc) from exc

    def refresh(self) -> None:
        """Load the snapshot file and publish a freshly built graph."""
        assert self.config is not None
        assert self.store is not None
        snapshot = load_snapshot(self.config.snapshot.path, self.config.snapshot.backend_kinds)
        self.store.publish(snapshot)

    def _start_refresher(self) -> None:
        """Reload the snapshot periodically; a failed reload keeps the old graph."""
        assert self._log is not None
        assert self.config is not None
        interval = self.config.snapshot.refresh_seconds
        if interval <= 0 or not self.config.snapshot.path:
            return

        async def _refresher() -> None:
            while True:
                await asyncio.sleep(interval)
                await self._refresh_once()

        task = asyncio.create_task(_refresher(), name="snapshot-refresher")
        self._background_tasks.append(task)
        self._log.info("snapshot refresher started", interval_seconds=interval)

    async def _refresh_once(self) -> None:
        """Run one reload off the event loop; failures are logged, never raised."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.refresh)
        except Exception as exc:
            if self._log:
                self._log.warning("snapshot_refresh_failed", error=str(exc), error_type=type(exc).__name__)

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from gwgraph.api import build_app

            fastapi_app = build_app(store=self.store, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("gwgraph shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=_SHUTDOWN_GRACE_SECONDS,
                )
            except TimeoutError:
                log.warning("background tasks did not stop in time", timeout=_SHUTDOWN_GRACE_SECONDS)
        self._background_tasks.clear()
        self._rest_server = None
        self.store = None

        log.info("gwgraph stopped")


def _gwgraph_version() -> str:
    from gwgraph import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = GwGraphApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
