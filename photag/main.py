from __future__ import annotations

import argparse
import signal
import sys

from PySide6.QtCore import QCoreApplication
from loguru import logger

from photag.app.orchestrator import Orchestrator
from photag.app.tick_driver import TickDriver
from photag.core.errors import StoreError
from photag.infrastructure.logging import find_latest_log_file, get_log_directory, init_logging
from photag.infrastructure.settings import DEFAULT_SETTINGS_PATH, JsonSettings


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="photag",
        description="Keep photo derivatives and catalog metadata in sync with an import manifest.",
    )
    parser.add_argument("-i", "--input", required=True, help="Import manifest JSON file")
    parser.add_argument("-o", "--original", required=True, help="Folder holding original images")
    parser.add_argument("-w", "--work", required=True, help="Work directory for outputs")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_PATH), help="settings.json")
    parser.add_argument("--log-dir", default=None, help="Log directory (default: <work>/logs)")
    parser.add_argument(
        "--once", action="store_true", help="Run the startup pass, save and exit"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = JsonSettings(args.settings)
    log_dir = args.log_dir or settings.get("log_dir") or get_log_directory(args.work)
    init_logging(log_dir)
    logger.info("Logging to {}", find_latest_log_file(log_dir) or log_dir)

    orchestrator = Orchestrator(args.input, args.original, args.work, settings=settings)
    try:
        result = orchestrator.start()
    except StoreError as ex:
        logger.error("Startup failed: {}", ex)
        return 1
    logger.info(
        "Startup: {} photos, {} regenerated, {} failed",
        len(orchestrator.catalog.photos),
        len(result.regenerated),
        len(result.failed),
    )
    if args.once:
        return 0 if not result.failed else 2

    app = QCoreApplication(sys.argv[:1])
    driver = TickDriver(orchestrator, settings.get_int("schedule.tick_interval_ms", 1000))
    driver.start()

    def _shutdown(*_: object) -> None:
        driver.stop()
        app.quit()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    code = app.exec()
    try:
        orchestrator.save_now()
    except StoreError as ex:
        logger.error("Final save failed: {}", ex)
        return 1
    return code


if __name__ == "__main__":
    raise SystemExit(main())
