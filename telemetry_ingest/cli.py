"""CLI entry point: runs the ingestion runtime headless (no HTTP)."""

from __future__ import annotations

import argparse
import logging
import signal
import threading

from common.config import get_settings
from common.db import get_engine, init_schema

from .monitoring.system_health import broadcast_heartbeat
from .runtime import get_runtime, start_runtime, stop_runtime

logger = logging.getLogger(__name__)


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Telemetry ingestion and automation engine")
    p.add_argument("--create-schema", action="store_true", help="create missing tables before starting")
    p.add_argument("--log-level", default=None, help="overrides LOG_LEVEL (default INFO)")
    p.add_argument(
        "--heartbeat-seconds",
        type=float,
        default=0.0,
        help="broadcast a heartbeat to recently seen devices every N seconds (0 = off)",
    )
    return p.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    if args.create_schema:
        init_schema(get_engine())

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    if not start_runtime(settings):
        logger.warning("Broker not reachable yet; retrying in background")

    wait_seconds = args.heartbeat_seconds if args.heartbeat_seconds > 0 else None
    try:
        while not stop.wait(wait_seconds):
            runtime = get_runtime()
            try:
                with runtime.session_factory() as db:
                    broadcast_heartbeat(db, runtime.publisher)
            except Exception as e:
                logger.error("Heartbeat broadcast failed: %s", e)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        stop_runtime()


if __name__ == "__main__":
    main()
