"""Command-line interface for game library dedupe."""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import sys
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from .clients.igdb_client import AuthenticationError
from .pipelines.dedupe_pipeline import run_dedupe
from .pipelines.enrich_pipeline import EnrichmentCancelled
from .settings import load_settings
from .utils import ProjectPaths


def setup_logging(log_file: Path) -> None:
    """Configure logging to both console and file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logging.info(f"Logging to file: {log_file}")


def _default_log_file(logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    candidate = logs_dir / f"log-{stamp}-dedupe.log"
    if not candidate.exists():
        return candidate
    return logs_dir / f"log-{stamp}-dedupe-{os.getpid()}.log"


def _setup_logging_from_args(paths: ProjectPaths, log_file: Path | None, debug: bool) -> None:
    setup_logging(log_file or _default_log_file(paths.data_logs))
    if debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hide duplicate games across GOG, Epic and Amazon libraries in Heroic"
    )
    parser.add_argument(
        "--config", type=Path, help="Settings YAML (default: data/config.yaml)"
    )
    parser.add_argument(
        "--cache", type=Path, help="IGDB release-date cache (default: data/cache/igdb_cache.json)"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=None,
        help="Only report what would be hidden (overrides settings)",
    )
    mode.add_argument(
        "--live",
        dest="dry_run",
        action="store_false",
        help="Write hidden games to Heroic's config.json (overrides settings)",
    )
    parser.add_argument(
        "--refresh-cache",
        action="store_true",
        help="Clear cached IGDB metadata before enriching",
    )
    parser.add_argument(
        "--igdb",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use IGDB release dates when credentials are configured (default: true)",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a CSV listing every duplicate group (default: off)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Log file path (default: data/logs/log-<timestamp>-dedupe.log)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging (default: INFO)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    project_root = Path(__file__).resolve().parent.parent
    paths = ProjectPaths.from_root(project_root)
    paths.ensure()
    _setup_logging_from_args(paths, args.log_file, args.debug)

    config_path = args.config or paths.data_config
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"[ERROR] {e}")
        return 1
    if args.dry_run is not None:
        settings = replace(settings, dry_run=bool(args.dry_run))

    problems = settings.validate()
    for problem in problems:
        logging.error(f"[ERROR] {problem}")
    if problems:
        return 1

    logging.info(f"Mode: {'[TEST] DRY RUN (Safe Mode)' if settings.dry_run else '[LIVE] (Write Mode)'}")
    logging.info(f"Priority: {' > '.join(s.label for s in settings.priority)}")
    if not settings.dry_run:
        logging.warning("Close Heroic before writing; it overwrites config.json on exit.")

    cancel = threading.Event()
    try:
        result = run_dedupe(
            settings,
            cache_path=args.cache or (paths.data_cache / "igdb_cache.json"),
            refresh_cache=bool(args.refresh_cache),
            use_igdb=bool(args.igdb),
            report_path=args.report,
            cancel_event=cancel,
        )
    except KeyboardInterrupt:
        cancel.set()
        logging.error("Interrupted.")
        return 1
    except (AuthenticationError, EnrichmentCancelled, OSError, ValueError) as e:
        logging.critical(f"CRITICAL ERROR: {e}")
        return 1

    logging.info(
        f"✔ Dedupe completed: groups={len(result.groups)} hidden={len(result.hidden)} "
        f"added={result.added} (dry_run={str(settings.dry_run).lower()})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
