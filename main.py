"""Entry point for the club site observability service."""

import argparse
import logging
import os
import sys

from clublog.app import create_app
from clublog.config import Config
from clublog.event_log import DirectoryExporter
from clublog.observability import build_observability


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Club site event log and failure reporting service")
    parser.add_argument(
        "--config",
        default=os.environ.get("CONFIG_PATH", "config.yaml"),
        help="Path to YAML config (default: $CONFIG_PATH or config.yaml)",
    )
    parser.add_argument(
        "--export-to",
        metavar="DIR",
        help="Write the stored event log to DIR as app_logs_<date>.json and exit",
    )
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [clublog] %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    args = parse_args(argv)
    config = Config(args.config)

    if args.export_to:
        obs = build_observability(config, save_file=DirectoryExporter(args.export_to))
        export = obs.event_log.export()
        logging.getLogger(__name__).info("Exported %s", export.filename)
        return

    app = create_app(config)
    server = config["server"]
    app.run(host=server["host"], port=server["port"], debug=server["debug"])


if __name__ == "__main__":
    main()
