"""Command line interface for reporting on and exporting the lead pipeline."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import CONFIG_ENV_VAR, ConfigurationError, load_settings
from .daterange import DateRange
from .exporters import export_leads, export_report
from .factory import build_service, build_staff_directory
from .metrics import compute_metrics, filter_leads
from .ui.logic import lead_row, report_lines


def _range_argument(text: str) -> DateRange:
    try:
        return DateRange.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description="Sales pipeline dashboard: reports, exports and desktop UI")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    common.add_argument(
        "--config",
        default=None,
        help="Path to the dashboard configuration file (YAML or JSON); defaults to $CRM_DASHBOARD_CONFIG",
    )

    period = argparse.ArgumentParser(add_help=False)
    period.add_argument(
        "--range",
        dest="date_range",
        type=_range_argument,
        default=DateRange.this_month(),
        help="Period to report on: last7days, thisMonth, all or custom:YYYY-MM-DD..YYYY-MM-DD",
    )
    period.add_argument("--search", default="", help="Only list or export leads whose name or email contains this text")

    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", parents=[common, period], help="Print the period metrics")
    report.add_argument("--leads", action="store_true", help="Also list the leads matching the period and search")

    export = subparsers.add_parser("export", parents=[common, period], help="Write leads or the period report to a file")
    export.add_argument("output", help="Destination file (.csv, .tsv, .xlsx)")
    export.add_argument(
        "--report",
        action="store_true",
        help="Export the period metrics instead of the lead list",
    )

    subparsers.add_parser("ui", parents=[common], help="Launch the desktop dashboard")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _load_leads(config: Dict[str, Any]):
    with build_service(config) as service:
        result = service.fetch_all().result()
        if not result.ok:
            raise RuntimeError(f"{result.notice.message} {result.notice.detail}".strip())
        return service.leads


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    if args.command == "ui":
        if args.config:
            os.environ[CONFIG_ENV_VAR] = str(args.config)
        from .ui.app import main as launch_ui

        launch_ui()
        return 0

    try:
        config = load_settings(args.config)
        staff = build_staff_directory(config)
        leads = _load_leads(config)
    except (ConfigurationError, FileNotFoundError) as exc:
        logging.error("%s", exc)
        return 2
    except RuntimeError as exc:
        logging.error("%s", exc)
        return 1

    selected = filter_leads(leads, args.date_range, args.search)
    metrics = compute_metrics(leads, args.date_range, staff=staff)

    if args.command == "report":
        print("\n".join(report_lines(metrics)))
        if args.leads:
            print()
            for lead in selected:
                print(" | ".join(lead_row(lead)))
        return 0

    output_path = Path(args.output)
    try:
        if args.report:
            export_report(metrics, output_path)
        else:
            export_leads(selected, output_path)
    except ValueError as exc:
        logging.error("%s", exc)
        return 2
    logging.info("Exported %s to %s", "report" if args.report else f"{len(selected)} leads", output_path.resolve())
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
