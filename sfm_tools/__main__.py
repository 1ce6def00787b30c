#!/usr/bin/env python3

"""
SFM Level Tools - inspect, normalize and create sfm_maps level files

Usage:
    python -m sfm_tools info <level.xml>
    python -m sfm_tools roundtrip <level.xml> [-o out.xml] [--[no-]pretty]
    python -m sfm_tools new <name> -o <out.xml> [--[no-]pretty]

Commands:
    info        Print a summary of the level
    roundtrip   Decode and re-encode a level (fixes object counts and
                self-closing elements); rewrites the input in place when
                no output is given
    new         Write a fresh level with one empty submap
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from sfm_manager import LevelCodecError, create_generic_level
from .config import Config
from .files import load_level, save_level
from .logging import close_log_file, configure_logging, get_logger
from .summary import describe_level


def _build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sfm-level",
        description="Inspect, normalize and create SFM level files",
    )
    parser.add_argument(
        "--log-level", default=config.log_level,
        help="Log level (default from SFM_LOG_LEVEL, else WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Print a summary of a level")
    info.add_argument("input", type=Path, help="Level file")

    roundtrip = subparsers.add_parser("roundtrip", help="Decode and re-encode a level")
    roundtrip.add_argument("input", type=Path, help="Level file")
    roundtrip.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output path (defaults to rewriting the input)",
    )

    new = subparsers.add_parser("new", help="Write a fresh level")
    new.add_argument("name", help="Level name")
    new.add_argument("-o", "--output", type=Path, required=True, help="Output path")

    for sub in (roundtrip, new):
        # --no-pretty and --no-xml-declaration override SFM_PRETTY and
        # SFM_XML_DECLARATION
        sub.add_argument(
            "--pretty", action=argparse.BooleanOptionalAction, default=config.pretty,
            help="Indent the output",
        )
        sub.add_argument(
            "--xml-declaration", action=argparse.BooleanOptionalAction,
            default=config.xml_declaration,
            help="Start the output with an XML declaration",
        )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    config = Config.from_env()
    args = _build_parser(config).parse_args(argv)

    configure_logging(
        log_level=args.log_level,
        log_file=config.log_file,
        json_logs=config.json_logs,
    )
    logger = get_logger(__name__)

    try:
        if args.command == "info":
            print(describe_level(load_level(args.input)))

        elif args.command == "roundtrip":
            level = load_level(args.input)
            output = save_level(
                level, args.output or args.input,
                pretty=args.pretty, xml_declaration=args.xml_declaration,
            )
            print(f"Wrote {output}")

        elif args.command == "new":
            output = save_level(
                create_generic_level(args.name), args.output,
                pretty=args.pretty, xml_declaration=args.xml_declaration,
            )
            print(f"Wrote {output}")

    except (LevelCodecError, OSError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    finally:
        close_log_file()

    return 0


if __name__ == "__main__":
    sys.exit(main())
