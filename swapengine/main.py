"""
Entry point wiring all components.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from aiohttp import web

from swapengine.api.server import create_app
from swapengine.app import build_engine
from swapengine.config.config import Settings
from swapengine.infra.logging_cfg import build_logger, log_event

log = build_logger(
    "swapengine",
    level=os.getenv("SWAP_LOG_LEVEL", "INFO"),
    file_path=os.getenv("SWAP_LOG_FILE", "swapengine.log") or None,
)


async def main() -> None:
    try:
        cfg = Settings.load()
    except ValueError as exc:
        log_event(log, "config_invalid", logging.ERROR, err=str(exc))
        sys.exit(1)

    engine = build_engine(cfg)
    app = create_app(engine)
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, cfg.host, cfg.port)
    await site.start()
    log_event(log, "startup", host=cfg.host, port=cfg.port, engine=cfg.engine_version)

    await engine.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    try:
        await stop_event.wait()
        log.info("Shutdown signal received, cleaning up...")
    finally:
        await engine.stop()
        await runner.cleanup()
        log.info("Shutdown complete")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nSwap engine stopped by user")
    sys.exit(0)


if __name__ == "__main__":
    run()
