"""Command-line entry point: serve the API or inspect a collection file."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from complaint_workflow.config import Settings, get_settings
from complaint_workflow.models import ComplaintWorkflowError
from complaint_workflow.status import ALLOWED_TRANSITIONS, Status
from complaint_workflow.storage import JsonFileItemStore
from complaint_workflow.views import export_csv

logger = logging.getLogger("complaint_workflow.cli")


def configure_logging(level: str = "INFO") -> None:
    """Install a basic stderr handler on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from complaint_workflow.api import create_app

    overrides = {}
    if args.data_file is not None:
        overrides["data_file"] = args.data_file
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if overrides:
        settings = settings.model_copy(update=overrides)

    app = create_app(settings)
    logger.info(
        "API listening on http://%s:%d (data file %s)",
        settings.host, settings.port, settings.data_file,
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def _export(args: argparse.Namespace, settings: Settings) -> int:
    path = args.data_file if args.data_file is not None else settings.data_file
    items = JsonFileItemStore(path).load_all()
    sys.stdout.write(export_csv(items))
    return 0


def _statuses(args: argparse.Namespace, settings: Settings) -> int:
    for status in Status:
        targets = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[status])) or "(terminal)"
        print(f"{status.value:<24} {status.label:<24} -> {targets}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="complaint-workflow",
        description="Complaint work item workflow tracker",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind host")
    serve.add_argument("--port", type=int, default=None, help="Bind port")
    serve.add_argument("--data-file", type=Path, default=None, help="JSON collection file")
    serve.set_defaults(handler=_serve)

    export = sub.add_parser("export-csv", help="Write the collection as CSV to stdout")
    export.add_argument("--data-file", type=Path, default=None, help="JSON collection file")
    export.set_defaults(handler=_export)

    statuses = sub.add_parser("statuses", help="List statuses and their allowed next statuses")
    statuses.set_defaults(handler=_statuses)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for a library error)
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return args.handler(args, settings)
    except ComplaintWorkflowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
