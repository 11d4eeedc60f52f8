# Contains the main entry points
import json
import logging

from .config import DEFAULT_PRIMARY_KEY, DEFAULT_ROOT_TABLE_NAME
from .core.normalizer import JsonNormalizer
from .core.table_builder import TableRegistry
from .errors import InvalidRecordError

logger = logging.getLogger(__name__)


def _as_records(json_data):
    """A JSON string, a single record or a list of records, as a list of records."""
    if isinstance(json_data, (str, bytes)):
        try:
            json_data = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise InvalidRecordError(f"Invalid JSON string provided: {e}") from e
    if isinstance(json_data, list):
        return json_data
    return [json_data]


def process_json_to_csv(json_data, output_dir, root_table_name=DEFAULT_ROOT_TABLE_NAME,
                        primary_key_field=DEFAULT_PRIMARY_KEY, skip_fields=(), forced_promotions=None):
    """
    Normalizes JSON records into CSV tables under output_dir.

    Args:
        json_data: The JSON data to process (string, dict or list of dicts)
        output_dir: Directory the CSV files are written to (created if missing)
        root_table_name: Name for the root entity table (default: "rootTable")
        primary_key_field: Field deduplicating rows of the root table
        skip_fields: Root-table fields that are never written nor promoted
        forced_promotions: Root-table field -> key field, for nested fields that
            must become tables even when their first value is empty
    """
    records = _as_records(json_data)
    with TableRegistry(output_dir) as registry:
        registry.get_or_create_table(root_table_name, primary_key_field,
                                     skip_fields=skip_fields, forced_promotions=forced_promotions)
        normalizer = JsonNormalizer(registry)
        count = normalizer.normalize_records(records, root_table_name)
        logger.info("Normalized %d record(s) into %d table(s) and %d junction table(s) under %s",
                    count, len(registry.tables), len(registry.junctions), output_dir)


def process_record_stream(tagged_records, output_dir, root_tables):
    """
    Normalizes a stream of (table_name, record) pairs, e.g. from a record source.

    Records are consumed one at a time; every table is flushed after each one and
    all files are closed even if the stream raises or is interrupted.

    Args:
        tagged_records: Iterable of (root table name, record) pairs
        output_dir: Directory the CSV files are written to (created if missing)
        root_tables: Root table name -> primary key field
    """
    with TableRegistry(output_dir) as registry:
        for table_name, primary_key_field in root_tables.items():
            registry.get_or_create_table(table_name, primary_key_field)
        normalizer = JsonNormalizer(registry)
        count = 0
        for table_name, record in tagged_records:
            normalizer.normalize_record(record, table_name)
            count += 1
        logger.info("Normalized %d record(s) into %d table(s) and %d junction table(s) under %s",
                    count, len(registry.tables), len(registry.junctions), output_dir)
