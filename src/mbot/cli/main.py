# src/mbot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- the job scheduler tick loop,
- the HTTP API (uvicorn), unless disabled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

import uvicorn

from ..api.app import create_app
from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..core.state import AppState
from ..errors import MbotError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> None:
    settings = state.settings
    scheduler = state.scheduler
    runner = asyncio.create_task(scheduler.run(), name="mbot-scheduler")

    try:
        if settings.api_enabled:
            config = uvicorn.Config(
                create_app(state),
                host=settings.api_host,
                port=settings.api_port,
                log_config=None,
                access_log=False,
            )
            # uvicorn installs its own SIGINT/SIGTERM handling and returns on shutdown.
            await uvicorn.Server(config).serve()
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                # Some platforms (Windows) do not support loop signal handlers.
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, scheduler.stop)
            logger.info("API disabled. Running scheduler only. Press Ctrl+C to stop.")
            await runner
    finally:
        scheduler.stop()
        await runner
        if not await scheduler.wait_idle(timeout=10.0):
            logger.warning("Some job actions were still running at shutdown.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s scheduler...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except MbotError:
        logger.exception("Startup failed.")
        raise SystemExit(1) from None

    if state.watcher is not None:
        state.watcher.start()

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
