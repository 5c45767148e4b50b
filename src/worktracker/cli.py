"""Command-line interface for worktracker.

Provides the main entry point for recording a work session, serving the
HTTP control endpoint, and inspecting recorded sessions.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="worktracker",
        description="Passive screen activity tracker",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/worktracker.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Record a session until Ctrl+C or --minutes")
    run_parser.add_argument(
        "--minutes", type=float, default=None,
        help="Stop after this many minutes (default: run until interrupted)",
    )
    run_parser.add_argument(
        "--interval-ms", type=int, default=None,
        help="Override the capture interval",
    )

    subparsers.add_parser("serve", help="Start the HTTP control endpoint")

    timeline_parser = subparsers.add_parser("timeline", help="Print a session's timeline")
    timeline_parser.add_argument("session_id", help="Session to aggregate")

    sessions_parser = subparsers.add_parser("sessions", help="List recent sessions")
    sessions_parser.add_argument("--limit", type=int, default=10)

    subparsers.add_parser("capture-test", help="Grab one display frame and save it")

    return parser.parse_args(argv)


def build_service(settings, interval_ms: int | None = None):
    """Assemble a TrackerService from settings."""
    from worktracker.capture.stream import StreamCapture
    from worktracker.service import TrackerService
    from worktracker.storage.images import LocalImageStore
    from worktracker.storage.memory import InMemoryStorage
    from worktracker.storage.sqlite import SQLiteStorage

    cap = settings.capture
    if cap.source == "display":
        from worktracker.capture.display import DisplayCapture
        source = DisplayCapture(
            monitor=cap.monitor,
            max_width=cap.max_width,
            max_height=cap.max_height,
            image_format=cap.image_format,
            jpeg_quality=cap.jpeg_quality,
        )
    else:
        source = StreamCapture(frame_timeout=cap.frame_timeout)

    if settings.storage.backend == "sqlite":
        storage = SQLiteStorage(settings.storage.database)
    else:
        storage = InMemoryStorage()

    classifier = None
    if settings.classifier.provider == "openai":
        api_key, base_url = settings.classifier_credentials()
        if api_key:
            from worktracker.classifier.openai import OpenAIClassifier
            classifier = OpenAIClassifier(
                api_key=api_key,
                model=settings.classifier.model,
                base_url=base_url,
                max_tokens=settings.classifier.max_tokens,
            )
        else:
            logger.warning("No API key configured, samples will not be classified")

    return TrackerService(
        storage=storage,
        source=source,
        images=LocalImageStore(settings.storage.screenshots_dir),
        classifier=classifier,
        owner=settings.owner,
        interval_ms=interval_ms or cap.interval_ms,
        bucket_minutes=settings.timeline.bucket_minutes,
        max_samples=cap.max_samples_per_session,
    )


def _print_timeline(timeline) -> None:
    if not timeline:
        print("No samples recorded.")
        return
    for bucket in timeline:
        print(f"{bucket.label}  {bucket.dominant_activity.value:<14} "
              f"{bucket.dominant_app or '-':<24} {len(bucket.samples):>5} samples")


def _print_breakdown(shares) -> None:
    for share in shares:
        print(f"  {share.activity_type.value:<14} {share.duration_minutes:>8.1f} min "
              f"{share.percentage:>5.1f}%")


async def _run_session(settings, args) -> None:
    """Record one session, then print its timeline."""
    service = build_service(settings, interval_ms=args.interval_ms)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    async def print_events() -> None:
        async for event in service.events.stream():
            if event.event_type == "sample_captured":
                print(f"[{event.timestamp.strftime('%H:%M:%S')}] captured {Path(event.locator).name}")
            elif event.event_type == "state_changed":
                print(f"Session {event.status.value}")
                if event.status.value != "active":
                    stop.set()
            else:
                print(f"  {event.source} error: {event.message}")

    printer = asyncio.create_task(print_events())
    await asyncio.sleep(0)
    try:
        await service.open()
        session = await service.start_session()
        print(f"Session {session.id} started, Ctrl+C to stop")
        timeout = args.minutes * 60 if args.minutes else None
        try:
            await asyncio.wait_for(stop.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        if service.state.status is not None and service.state.status.value != "completed":
            session = await service.end_session()
        print(f"\nSamples: {session.sample_count}")
        _print_timeline(await service.timeline(session.id))
        _print_breakdown(await service.breakdown(session.id))
    finally:
        printer.cancel()
        await service.close()


async def _show_timeline(settings, session_id: str) -> None:
    service = build_service(settings)
    try:
        session = await service.storage.get_session(session_id)
        if session is None:
            print(f"Session {session_id} not found", file=sys.stderr)
            return
        print(f"Session {session.id} ({session.status.value}), "
              f"{session.sample_count} samples, {session.duration_minutes():.1f} min")
        _print_timeline(await service.timeline(session_id))
        _print_breakdown(await service.breakdown(session_id))
    finally:
        await service.storage.close()


async def _list_sessions(settings, limit: int) -> None:
    service = build_service(settings)
    try:
        for session in await service.list_sessions(limit=limit):
            print(f"{session.id}  {session.started_at:%Y-%m-%d %H:%M}  "
                  f"{session.status.value:<9} {session.sample_count:>6} samples")
    finally:
        await service.storage.close()


async def _capture_test(settings) -> None:
    """Capture a single display frame and save it to a file."""
    from worktracker.capture.display import DisplayCapture
    from worktracker.utils.imaging import mime_type_for

    cap = settings.capture
    source = DisplayCapture(
        monitor=cap.monitor,
        max_width=cap.max_width,
        max_height=cap.max_height,
        image_format=cap.image_format,
        jpeg_quality=cap.jpeg_quality,
    )
    source.acquire("capture-test")
    try:
        frame = await source.capture_frame()
    finally:
        source.release()
    suffix = ".jpg" if mime_type_for(cap.image_format) == "image/jpeg" else ".png"
    outfile = Path(f"capture_test{suffix}")
    outfile.write_bytes(frame.data)
    print(f"Saved frame to {outfile} ({len(frame.data)} bytes)")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the worktracker CLI."""
    args = parse_args(argv)

    from worktracker.config.settings import load_settings
    from worktracker.utils.logging import setup_logging

    settings = load_settings(args.config)
    setup_logging(settings.logging, verbose=args.verbose)

    if args.command == "run":
        asyncio.run(_run_session(settings, args))
    elif args.command == "serve":
        from worktracker.endpoint.server import serve
        service = build_service(settings)
        serve(service, host=settings.server.host, port=settings.server.port)
    elif args.command == "timeline":
        asyncio.run(_show_timeline(settings, args.session_id))
    elif args.command == "sessions":
        asyncio.run(_list_sessions(settings, args.limit))
    elif args.command == "capture-test":
        asyncio.run(_capture_test(settings))
    else:
        parse_args(["--help"])


if __name__ == "__main__":
    main()
