"""Command-line entry point for the GPS capture service.

Runs the capture service behind the status server by default, or on its own
with ``--headless``. Settings come from ``GPS_*`` environment variables or a
``.env`` file; see :mod:`gpscapture.config`.

Exit codes: 0 on a clean shutdown, 1 on invalid configuration or when no GPS
receiver could be connected.
"""

import argparse
import asyncio
import logging
import signal
import sys

import uvicorn

from gpscapture.config import ConfigurationError, Settings, load_settings
from gpscapture.logging_setup import configure_logging
from gpscapture.service import CaptureService
from server.main import create_app

logger = logging.getLogger("gpscapture")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Capture GPS fixes and dispatch them to sinks.")
    parser.add_argument("--headless", action="store_true", help="run without the status server")
    parser.add_argument("--port-name", help="serial port; disables auto-detection")
    parser.add_argument("--log-level", help="override GPS_LOG_LEVEL")
    return parser.parse_args(argv)


async def _run_headless(settings: Settings) -> int:
    service = CaptureService(settings)
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows: Ctrl+C arrives as KeyboardInterrupt instead.
            pass

    await service.start()
    waiters = [
        loop.create_task(stop_requested.wait()),
        loop.create_task(service.wait_stopped()),
    ]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()
        logger.info("Shutting down")
        await service.stop()
    return 1 if service.fatal_error is not None else 0


def _run_server(settings: Settings) -> int:
    server: uvicorn.Server | None = None

    def _exit_server() -> None:
        if server is not None:
            server.should_exit = True

    application = create_app(settings, on_fatal=_exit_server)
    server = uvicorn.Server(
        uvicorn.Config(
            application,
            host=settings.status_host,
            port=settings.status_port,
            log_config=None,
        )
    )
    server.run()
    service: CaptureService | None = getattr(application.state, "service", None)
    if service is not None and service.fatal_error is not None:
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    overrides = {}
    if args.port_name:
        overrides.update(port_name=args.port_name, auto_detect_port=False)
    if args.log_level:
        overrides["log_level"] = args.log_level

    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        configure_logging()
        logger.critical("%s", e)
        return 1

    configure_logging(settings.log_level, settings.log_format)
    logger.info(
        "Starting GPS capture for device %s (sinks: %s)",
        settings.device_id,
        ", ".join(sorted(map(str, settings.sinks))),
    )
    if args.headless:
        try:
            return asyncio.run(_run_headless(settings))
        except KeyboardInterrupt:
            return 0
    return _run_server(settings)


if __name__ == "__main__":
    sys.exit(main())
