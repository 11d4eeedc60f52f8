# Contains main normalization logic
import json
import logging
from collections.abc import Mapping

from ..errors import InvalidRecordError
from .analyzer import JsonStructureAnalyzer

logger = logging.getLogger(__name__)


def parse_record(record):
    """
    Accept a record as a mapping or as JSON text.

    Raises:
        InvalidRecordError: the text is not valid JSON, or the value is not an object
    """
    if isinstance(record, (str, bytes)):
        try:
            record = json.loads(record)
        except json.JSONDecodeError as e:
            raise InvalidRecordError(f"Invalid JSON string provided: {e}") from e
    if not isinstance(record, Mapping):
        raise InvalidRecordError(f"Expected a JSON object, got {type(record).__name__}")
    return record


def child_records(value):
    """
    The nested records held by a promoted field.

    Objects become a one-element list; arrays keep their object elements.
    Anything else (a value that drifted to a primitive) yields nothing.
    """
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, list):
        children = [item for item in value if isinstance(item, Mapping)]
        if len(children) != len(value):
            logger.debug("Ignoring %d non-object element(s) of a promoted array", len(value) - len(children))
        return children
    return []


class JsonNormalizer:
    """
    Writes records into their tables, splitting nested objects out into child
    tables linked through junction tables.

    Records are written depth first: the parent row, then each promoted child
    row followed by its junction row.
    """

    def __init__(self, registry, analyzer=None):
        self.registry = registry
        self.analyzer = analyzer or JsonStructureAnalyzer(registry)

    def normalize_record(self, record, table_name):
        """
        Write one top-level record into a registered root table.

        Every table is flushed afterwards, so an interrupted run loses nothing
        beyond the record being processed.

        Args:
            record: A mapping, or a JSON string holding an object
            table_name: Name of a table registered with the registry
        """
        table = self.registry.get_table(table_name)
        self.write(parse_record(record), table)
        self.registry.flush()

    def normalize_records(self, records, table_name):
        """
        Write every record of an iterable into the same root table.

        Returns:
            int: number of records processed (including deduplicated ones)
        """
        count = 0
        for record in records:
            self.normalize_record(record, table_name)
            count += 1
        return count

    def write(self, record, table):
        """
        Write record into table, then recurse into its promoted fields.

        Args:
            record: A mapping
            table: Table the record belongs to
        """
        # Discovery is lazy: the first record a table sees fixes its schema
        self.analyzer.discover(record, table)

        # First write wins; a repeated key skips the whole subtree, junctions included
        if not table.claim_key(record.get(table.primary_key_field)):
            return

        table.write_row(record)

        parent_key = record.get(table.primary_key_field)
        for field, promotion in table.promotions.items():
            value = record.get(field)
            if value is None:
                continue
            child_table = self.registry.get_table(promotion.child_table)
            junction = self.registry.get_junction(promotion.junction_table)
            for child in child_records(value):
                self.write(child, child_table)
                # The link holds even when the child row already existed
                junction.write_link(parent_key, child.get(child_table.primary_key_field))
