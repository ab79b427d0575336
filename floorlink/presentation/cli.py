"""
Command-line interface for link administration.

Runs the reconciler (and a store listing) against the configured document
storage, printing either a colored table or the raw JSON report.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from floorlink import __version__
from floorlink.config import settings
from floorlink.config.logging_config import configure_logging, get_logger
from floorlink.data.factory import build_repositories, connect_repositories, disconnect_repositories
from floorlink.services.link_manager import LinkManager
from floorlink.services.reconciler import AuditReport, Reconciler, RepairReport
from floorlink.utils.error_handling import AppError
from floorlink.utils.logging_utils import new_run_id

logger = get_logger(__name__)


class ReportPrinter:
    """
    Renders reconciler reports and store listings for a terminal.
    """

    def __init__(self, color_output: bool = True, stream=None):
        """
        Initialize the printer.

        Args:
            color_output: Whether to use colored output when the terminal supports it
            stream: Output stream, stdout by default
        """
        self.stream = stream or sys.stdout
        self.color_output = color_output and self._supports_color()

        if self.color_output:
            self.RESET = "\033[0m"
            self.BOLD = "\033[1m"
            self.RED = "\033[31m"
            self.GREEN = "\033[32m"
            self.YELLOW = "\033[33m"
            self.GRAY = "\033[90m"
        else:
            self.RESET = ""
            self.BOLD = ""
            self.RED = ""
            self.GREEN = ""
            self.YELLOW = ""
            self.GRAY = ""

        self.status_colors = {
            "ok": self.GREEN,
            "fixed": self.GREEN,
            "cleared": self.GREEN,
            "skipped": self.GRAY,
            "missing_link": self.YELLOW,
            "orphan_link": self.YELLOW,
            "error": self.RED,
        }

    def _supports_color(self) -> bool:
        """
        Check if the output stream supports colored output.

        Returns:
            True if color is supported
        """
        # Check for NO_COLOR environment variable (https://no-color.org/)
        if os.environ.get("NO_COLOR"):
            return False

        plat = sys.platform
        supported_platform = plat != 'win32' or 'ANSICON' in os.environ

        is_a_tty = hasattr(self.stream, 'isatty') and self.stream.isatty()

        return supported_platform and is_a_tty

    def _write(self, line: str = "") -> None:
        print(line, file=self.stream)

    def _status(self, status: str) -> str:
        return f"{self.status_colors.get(status, '')}{status:<13}{self.RESET}"

    def _rows(self, entries: List[Dict[str, Any]]) -> None:
        for entry in entries:
            reason = entry.get("error") or ""
            message = entry.get("message") or ""
            detail = f"{reason}: {message}" if reason and message else reason or message
            self._write(
                f"  {self._status(entry['status'])} store={entry.get('store_id')} "
                f"map={entry.get('map_id', '-')} feature={entry.get('feature_id', '-')}"
                f"{'  ' + self.GRAY + detail + self.RESET if detail else ''}"
            )

    def print_audit(self, report: AuditReport) -> None:
        data = report.to_dict()
        self._write(f"{self.BOLD}Link audit{self.RESET}")
        self._rows(data["report"])
        if data["orphan_links"]:
            self._write(f"{self.BOLD}Orphan feature links{self.RESET}")
            self._rows(data["orphan_links"])
        self._write(
            f"total={data['total']} ok={data['ok']} needs_fix={data['needs_fix']} "
            f"errors={data['errors']} orphans={data['orphans']}"
        )

    def print_repair(self, report: RepairReport) -> None:
        data = report.to_dict()
        self._write(f"{self.BOLD}Link repair{self.RESET}")
        self._rows(data["results"])
        if data["orphan_links"]:
            self._write(f"{self.BOLD}Orphan feature links{self.RESET}")
            self._rows(data["orphan_links"])
        self._write(
            f"total={data['total']} fixed={data['fixed']} skipped={data['skipped']} "
            f"errors={data['errors']} cleared={data['cleared']}"
        )

    def print_stores(self, stores: Sequence[Any]) -> None:
        for store in stores:
            self._write(
                f"  {store.id}  {store.name:<30} {store.category.value:<12} "
                f"map={store.map_id} feature={store.feature_id} owner={store.owner_id}"
            )
        self._write(f"{len(stores)} stores")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="floorlink", description="Map/store link administration")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--data-dir", help="Directory holding maps.json and stores.json")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set logging level")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON report")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    audit = subparsers.add_parser("audit", help="Report store/feature link status without writing")
    audit.add_argument("--owner", help="Only audit this owner's stores and maps")

    repair = subparsers.add_parser("repair", help="Restore missing links and clear orphan links")
    repair.add_argument("--owner", help="Only repair this owner's stores and maps")
    repair.add_argument("--keep-orphans", action="store_true",
                        help="Do not clear feature storeIds that no store references back")

    stores = subparsers.add_parser("stores", help="List stores")
    stores.add_argument("--owner", help="Only this owner's stores")
    stores.add_argument("--map", dest="map_id", help="Only stores linked into this map")
    stores.add_argument("--query", help="Substring of the name or description")

    return parser


async def run(args: argparse.Namespace, printer: ReportPrinter) -> int:
    """Execute one CLI command. Returns the process exit code."""
    map_repository, store_repository = build_repositories(settings)
    await connect_repositories(map_repository, store_repository)

    try:
        if args.command == "audit":
            reconciler = Reconciler(map_repository, store_repository)
            report = await reconciler.audit(owner_id=args.owner)
            _emit(args, printer, report)
            return 0 if report.is_consistent else 1

        if args.command == "repair":
            clear_orphans = settings.reconciler.clear_orphans and not args.keep_orphans
            reconciler = Reconciler(map_repository, store_repository, clear_orphans=clear_orphans)
            report = await reconciler.repair(owner_id=args.owner)
            _emit(args, printer, report)
            return 0 if report.errors == 0 else 1

        link_manager = LinkManager(map_repository, store_repository)
        stores = await link_manager.list_stores(owner_id=args.owner, map_id=args.map_id, query=args.query)
        if args.json:
            print(json.dumps([s.to_dict() for s in stores], indent=2), file=printer.stream)
        else:
            printer.print_stores(stores)
        return 0
    finally:
        await disconnect_repositories(map_repository, store_repository)


def _emit(args: argparse.Namespace, printer: ReportPrinter, report: Any) -> None:
    if args.json:
        print(json.dumps(report.to_dict(), indent=2), file=printer.stream)
    elif isinstance(report, AuditReport):
        printer.print_audit(report)
    else:
        printer.print_repair(report)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    if args.data_dir:
        settings.storage.data_dir = Path(args.data_dir)
    settings.ensure_directories()

    run_id = new_run_id()
    level = args.log_level or ("DEBUG" if settings.debug_mode else None)
    configure_logging(settings.logging, run_id=run_id, level=level)
    logger.debug(f"Starting run {run_id}: {args.command}")

    printer = ReportPrinter(color_output=not args.no_color)
    try:
        return asyncio.run(run(args, printer))
    except AppError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 2
