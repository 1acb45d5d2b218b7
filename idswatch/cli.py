"""CLI entry-point for the idswatch alert client.

Usage examples
--------------
# Follow the local IDS with defaults:
python -m idswatch

# Custom endpoints, only Critical notifications, stop after 10 minutes:
python -m idswatch --ws-url ws://ids:3000/ws/alerts --api-url http://ids:3000 \
    --min-severity critical --duration 600

# Export the buffer on exit:
python -m idswatch --export out/alerts.csv --export-format csv
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from dataclasses import replace

from idswatch import __version__
from idswatch.core.export import ExportOptions, export_alerts
from idswatch.errors import ConfigError
from idswatch.session import MonitorSession
from idswatch.shared.logger import setup_logging
from idswatch.shared.settings import ClientConfig, load_config, min_severity_arg, validate_config

log = logging.getLogger(__name__)


def _positive_seconds(value: str) -> float:
    seconds = float(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="idswatch",
        description="Realtime IDS alert client — follow, annotate, notify, export",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--config",
        default=None,
        help="YAML config file (see config/client.yaml). Default: built-in defaults",
    )
    p.add_argument("--ws-url", default=None, help="Alert channel URL (overrides config).")
    p.add_argument("--api-url", default=None, help="REST API base URL (overrides config).")
    p.add_argument(
        "--storage-dir",
        default=None,
        help="Directory for persisted state. Use '' for in-memory only.",
    )
    p.add_argument(
        "--min-severity",
        type=min_severity_arg,
        default=None,
        help="Enable notifications at or above this severity (low|medium|high|critical).",
    )
    p.add_argument(
        "--duration",
        type=_positive_seconds,
        default=None,
        help="Stop after N seconds. Default: run until interrupted.",
    )
    p.add_argument("--export", default=None, help="Export alerts/history to this path on exit.")
    p.add_argument(
        "--export-format",
        default="json",
        choices=["json", "csv"],
        help="Export format. Default: json",
    )
    p.add_argument(
        "--no-poll",
        action="store_true",
        default=False,
        help="Do not poll /api/stats (no bandwidth history).",
    )
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: from config (INFO)",
    )
    return p


def apply_overrides(cfg: ClientConfig, args: argparse.Namespace) -> ClientConfig:
    """Fold command-line flags into the loaded config."""
    if args.ws_url:
        cfg = replace(cfg, channel=replace(cfg.channel, url=args.ws_url))
    if args.api_url:
        cfg = replace(cfg, api=replace(cfg.api, base_url=args.api_url))
    if args.storage_dir is not None:
        cfg = replace(cfg, storage=replace(cfg.storage, directory=args.storage_dir))
    if args.log_level:
        cfg = replace(cfg, log_level=args.log_level)
    validate_config(cfg)
    return cfg


async def run(session: MonitorSession, args: argparse.Namespace) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    if args.min_severity is not None:
        session.notifications.set_min_severity(args.min_severity)
        session.notifications.set_enabled(True)
        await session.notifications.request_permission()
    warning = session.notifications.permission_warning
    if warning:
        log.warning(warning)

    await session.start()
    try:
        if args.duration is not None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=args.duration)
        else:
            await stop.wait()
    finally:
        await session.shutdown()

    status = session.status()
    log.info(
        "Received %d alerts (%d decode errors), %d buffered",
        status["connection"]["alerts_received"],
        status["connection"]["decode_errors"],
        status["alerts_buffered"],
    )

    if args.export:
        export_alerts(
            session.buffer.snapshot(),
            session.sampler.samples(),
            ExportOptions(format=args.export_format),
            args.export,
            annotations=session.annotations,
        )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = apply_overrides(load_config(args.config), args)
    except (ConfigError, FileNotFoundError) as exc:
        setup_logging("INFO")
        log.error("Configuration error: %s", exc)
        return 2
    setup_logging(cfg.log_level)

    session = MonitorSession(cfg, poll_stats=not args.no_poll)
    asyncio.run(run(session, args))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
