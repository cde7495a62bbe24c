from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from .api import materialize_scene
from .config.settings import load_settings
from .errors import BridgeError
from .loader import load_scene_document
from .recording import RecordingSceneClient

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED_OBJECTS = 1
EXIT_USAGE = 2


class _JoinPathAction(argparse.Action):
    """Join successive CLI tokens into a single path string (handles spaces gracefully)."""

    def __call__(self, parser, namespace, values, option_string=None):
        joined = " ".join(values).strip()
        setattr(namespace, self.dest, joined or None)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the CLI arguments for the tabletop importer."""

    parser = argparse.ArgumentParser(description="Convert a tabletop scene document into a 3D world")
    parser.add_argument(
        "--input",
        dest="input_path",
        nargs="+",
        action=_JoinPathAction,
        required=True,
        help="Udonarium save archive (.zip) or a YAML/JSON scene document",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        nargs="+",
        action=_JoinPathAction,
        default=None,
        help="Settings file (YAML or JSON)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Record every remote call instead of sending it",
    )
    parser.add_argument(
        "--output",
        dest="output_path",
        nargs="+",
        action=_JoinPathAction,
        default=None,
        help="Write the recorded calls, summary and resolved image assets of a dry run to this JSON file",
    )
    parser.add_argument("--host", default=None, help="Remote host (default: settings or $RESONITELINK_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Remote port (default: settings or $RESONITELINK_PORT)")
    parser.add_argument("--no-probe", action="store_true", help="Skip image dimension/alpha probing")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    with tempfile.TemporaryDirectory(prefix="udonbridge-") as work_dir:
        return _run(args, Path(work_dir))


def _run(args: argparse.Namespace, work_dir: Path) -> int:
    try:
        settings = load_settings(args.config_path).with_remote(args.host, args.port)
        document = load_scene_document(args.input_path, work_dir)
    except BridgeError as exc:
        LOG.error("%s", exc)
        return EXIT_USAGE
    if args.no_probe:
        settings = settings.with_probe(enabled=False)

    if not args.dry_run:
        LOG.error(
            "No transport for %s:%s is built in; run with --dry-run or drive "
            "udonbridge.api.materialize_scene with a client",
            settings.remote.host,
            settings.remote.port if settings.remote.port is not None else "?",
        )
        return EXIT_USAGE

    client = RecordingSceneClient()

    def _progress(current: int, total: int) -> None:
        LOG.debug("Built %d/%d", current, total)

    try:
        report = asyncio.run(materialize_scene(document, client, settings, _progress))
    except BridgeError as exc:
        LOG.error("%s", exc)
        return EXIT_FAILED_OBJECTS

    if args.output_path:
        client.write_json(
            Path(args.output_path),
            {
                "summary": report.counts,
                "assets": {identifier: asdict(info) for identifier, info in report.assets.items()},
            },
        )
    else:
        LOG.info("Recorded %d call(s)", len(client.calls))
    LOG.info("Summary: %s", json.dumps(report.counts, sort_keys=True))
    for result in report.failed:
        LOG.warning("Failed: %s (%s)", result.node_id, result.error)
    return EXIT_FAILED_OBJECTS if report.failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
