# Contains class for discovering table schemas from JSON records
import json
import logging
from enum import Enum
from typing import NamedTuple, Optional

from ..config import DEFAULT_PRIMARY_KEY, PROMOTABLE_KEY_CANDIDATES

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    SCALAR = "scalar"
    PROMOTABLE = "promotable"
    OPAQUE_ARRAY = "opaque_array"
    DROPPED = "dropped"


class FieldClassification(NamedTuple):
    """How one field of a table is handled; computed once from the first record."""
    kind: FieldKind
    child_table: Optional[str] = None
    junction_table: Optional[str] = None
    key_field: Optional[str] = None

    @property
    def is_column(self):
        return self.kind in (FieldKind.SCALAR, FieldKind.OPAQUE_ARRAY)


SCALAR = FieldClassification(FieldKind.SCALAR)
OPAQUE_ARRAY = FieldClassification(FieldKind.OPAQUE_ARRAY)
DROPPED = FieldClassification(FieldKind.DROPPED)


def find_promotable_key(sample):
    """
    Find the field that identifies rows of a nested object.

    Args:
        sample: A nested object (dict)

    Returns:
        str or None: the first of PROMOTABLE_KEY_CANDIDATES present in the sample
    """
    # Present with a null value still counts
    return next((key for key in PROMOTABLE_KEY_CANDIDATES if key in sample), None)


def nested_sample(value):
    """
    The object a nested field's child schema is discovered from.

    Returns:
        The object itself, the first element of an array, or None when the value
        is empty or not a container
    """
    if isinstance(value, dict):
        return value or None
    if isinstance(value, list) and value:
        return value[0]
    return None


def _describe(sample):
    return json.dumps(sample, ensure_ascii=False, default=str)[:500]


class JsonStructureAnalyzer:
    """
    Discovers table schemas from the first record each table sees.

    Discovery freezes the table's column order, writes its header row and,
    for every nested field that can be promoted, creates the child table and
    the junction table linking them (through the registry) and discovers
    those recursively from the nested sample.
    """

    def __init__(self, registry):
        self.registry = registry

    def discover(self, sample, table):
        """
        Freeze the schema of table from sample. Does nothing after the first call.

        Args:
            sample: The first record presented to the table
            table: Table to discover
        """
        # discovering guards against a nested field that re-enters its own table name
        if table.discovered or table.discovering:
            return

        table.discovering = True
        try:
            fields = {}
            for field, value in sample.items():
                if field in table.skip_fields:
                    continue
                fields[field] = self._classify_field(table, field, value)

            column_order = [field for field, classification in fields.items() if classification.is_column]
            table.freeze_schema(column_order, fields)
        finally:
            table.discovering = False

    def discover_junction(self, junction):
        if junction.discovered:
            return
        # Always exactly the two linking columns, even when parent and field share a name
        junction.freeze_schema([junction.parent_field, junction.child_field])

    def classify_value(self, value):
        """
        Structural classification of a value, ignoring keys and forced promotions.

        Returns:
            FieldKind: PROMOTABLE here only means "looks like a nested object";
            whether it really is depends on finding a key in the sample
        """
        if isinstance(value, dict):
            return FieldKind.PROMOTABLE if value else FieldKind.DROPPED
        if isinstance(value, list):
            if not value:
                return FieldKind.DROPPED
            first = value[0]
            if isinstance(first, dict):
                return FieldKind.PROMOTABLE if first else FieldKind.DROPPED
            return FieldKind.OPAQUE_ARRAY
        return FieldKind.SCALAR

    def _classify_field(self, table, field, value):
        kind = self.classify_value(value)
        forced_key = table.forced_promotions.get(field)

        if kind in (FieldKind.SCALAR, FieldKind.OPAQUE_ARRAY):
            if forced_key is not None and value is None:
                # Nothing to learn the child schema from yet
                return self._promote(table, field, None, forced_key)
            if forced_key is not None:
                logger.warning("Cannot promote field %r on table %s: its value is not an object (%s)",
                               field, table.name, _describe(value))
            return SCALAR if kind is FieldKind.SCALAR else OPAQUE_ARRAY

        sample = nested_sample(value)
        if kind is FieldKind.DROPPED:
            if forced_key is not None:
                return self._promote(table, field, None, forced_key)
            logger.warning("Skipping empty nested field %r on table %s", field, table.name)
            return DROPPED

        key_field = find_promotable_key(sample)
        if key_field is None:
            if forced_key is not None:
                return self._promote(table, field, sample, forced_key)
            logger.warning("Skipping nested field %r on table %s (couldn't find a known key for promotion): %s",
                           field, table.name, _describe(sample))
            return DROPPED

        return self._promote(table, field, sample, key_field)

    def _promote(self, table, field, sample, key_field):
        """Create (or reuse) the child and junction tables for a promoted field."""
        if field not in self.registry.tables:
            logger.info("Promoting nested field %r of table %s into table %s keyed by %r: %s",
                        field, table.name, field, key_field, _describe(sample))
        child = self.registry.get_or_create_table(field, primary_key_field=key_field or DEFAULT_PRIMARY_KEY)
        junction = self.registry.get_or_create_junction(table.name, field)

        if sample is not None:
            self.discover(sample, child)
        self.discover_junction(junction)

        return FieldClassification(
            FieldKind.PROMOTABLE,
            child_table=child.name,
            junction_table=junction.name,
            key_field=child.primary_key_field,
        )
