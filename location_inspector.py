"""CLI location inspector — print recent records or look one up by id."""

import argparse
import json
import os
import sys

from wherenow.errors import StorageError
from wherenow.store import LocationLog


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect the location log")
    parser.add_argument("--log-file",
                        default=os.environ.get("WHERENOW_LOG_FILE", "./data/locations.jsonl"),
                        help="Path to the JSON Lines location log")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--recent", metavar="N", type=int, nargs="?", const=20,
                       help="Print the N most recent upload records (default 20)")
    group.add_argument("--find", metavar="ID", help="Print the record with this id")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    log = LocationLog(args.log_file)

    try:
        if args.recent is not None:
            entries = log.recent(max(args.recent, 1))
            if not entries:
                print("No locations found.")
                return 0
            for entry in entries:
                print(json.dumps(entry, ensure_ascii=False))
        else:
            record = log.find(args.find)
            if record is None:
                print(f"Error: no record with id {args.find}", file=sys.stderr)
                return 1
            print(json.dumps(record, ensure_ascii=False, indent=2))
    except StorageError as e:
        print(f"Error: {e.code} ({args.log_file})", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
