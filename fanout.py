#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from typing import List

from fanout_lib import FanoutError, generate_from_template


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Generate a directory tree from a template tree whose names contain {{ ... }} placeholders, "
            "expanding list values into one entry per element."
        )
    )
    parser.add_argument(
        "-m",
        "--model",
        default=os.path.join(os.getcwd(), "model.yaml"),
        help="Path to the YAML model (default: ./model.yaml)",
    )
    parser.add_argument(
        "-t",
        "--template",
        default=os.path.join(os.getcwd(), "template"),
        help="Template directory (default: ./template)",
    )
    parser.add_argument(
        "-o",
        "--out",
        default=os.path.join(os.getcwd(), "out"),
        help="Output directory (default: ./out)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the planned operations, do not touch the filesystem",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every step of the walk",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.isfile(args.model):
        print(f"Model file not found: {args.model}", file=sys.stderr)
        return 2
    if not os.path.isdir(args.template):
        print(f"Template path must be a directory: {args.template}", file=sys.stderr)
        return 2

    try:
        report = generate_from_template(args.model, args.template, args.out, dry_run=args.dry_run)
    except FanoutError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1

    for line in report.lines():
        print(line)
    if args.dry_run:
        print(f"Dry-run complete, nothing written. Planned: {report.summary()}")
    else:
        print(f"Generation completed. Output at: {args.out} ({report.summary()})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
