# Contains the command line interface
import argparse
import json
import logging
import sys

from .config import DEFAULT_PRIMARY_KEY, DEFAULT_ROOT_TABLE_NAME, TMDB_ROOT_TABLES
from .errors import InvalidRecordError, JsonToCsvError
from .main import process_json_to_csv, process_record_stream
from .sources.tmdb import TmdbClient, TmdbClientError, iter_tmdb_records

logger = logging.getLogger(__name__)


def _parse_promotion(value):
    field, _, key = value.partition("=")
    if not field:
        raise argparse.ArgumentTypeError(f"Invalid promotion {value!r}, expected FIELD or FIELD=KEY")
    return field, key or DEFAULT_PRIMARY_KEY


def build_parser():
    parser = argparse.ArgumentParser(
        prog="json-to-csv",
        description="Normalize nested JSON records into relational CSV tables",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug diagnostics")
    subparsers = parser.add_subparsers(dest="command", required=True)

    file_parser = subparsers.add_parser("file", help="normalize JSON or JSON Lines files")
    file_parser.add_argument("inputs", nargs="+", help="JSON files (object or array) or .jsonl files")
    file_parser.add_argument("-o", "--output", required=True, help="output relational CSV directory")
    file_parser.add_argument("--root", default=DEFAULT_ROOT_TABLE_NAME, help="name of the root table")
    file_parser.add_argument("--primary-key", default=DEFAULT_PRIMARY_KEY, help="primary key of the root table")
    file_parser.add_argument("--skip", action="append", default=[], metavar="FIELD",
                             help="root field to leave out entirely (repeatable)")
    file_parser.add_argument("--promote", action="append", default=[], type=_parse_promotion,
                             metavar="FIELD[=KEY]", help="root field to always promote to a table (repeatable)")

    tmdb_parser = subparsers.add_parser("tmdb", help="pull top-rated movies, credits and people from TMDB")
    tmdb_parser.add_argument("-k", "--key", help="API key (default: $TMDB_API_KEY)")
    tmdb_parser.add_argument("-c", "--csv", required=True, help="output relational CSV directory")
    tmdb_parser.add_argument("-p", "--pages", type=int, default=1, help="number of top-rated movie pages to fetch")
    return parser


def read_records(path):
    """Records from a JSON file (one object or an array) or a JSON Lines file."""
    with open(path, "r", encoding="utf-8") as f:
        if path.endswith(".jsonl"):
            records = []
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as e:
                    raise InvalidRecordError(f"{path}:{line_no}: invalid JSON: {e}") from e
            return records
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidRecordError(f"{path}: invalid JSON: {e}") from e
    return data if isinstance(data, list) else [data]


def _run_file(args):
    records = []
    for path in args.inputs:
        records.extend(read_records(path))
    process_json_to_csv(
        records,
        args.output,
        root_table_name=args.root,
        primary_key_field=args.primary_key,
        skip_fields=args.skip,
        forced_promotions=dict(args.promote),
    )


def _run_tmdb(args):
    client = TmdbClient(args.key)
    process_record_stream(iter_tmdb_records(client, pages=args.pages), args.csv, TMDB_ROOT_TABLES)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "file":
            _run_file(args)
        else:
            _run_tmdb(args)
    except (JsonToCsvError, TmdbClientError, OSError) as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted; tables were closed after the last completed record")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
