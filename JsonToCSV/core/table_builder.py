# Contains the table bookkeeping classes and the registry that owns them
import json
import logging
import os
from typing import Dict, Iterable, Mapping, Optional

from ..config import CSV_EXTENSION, DEFAULT_PRIMARY_KEY
from ..errors import TableWriteError, UnknownTableError
from ..output.csv_writer import CsvTableSink

logger = logging.getLogger(__name__)


def _dedup_token(value):
    """
    Set member standing for a primary-key value.

    Tagged with the value's type so that True, 1 and 1.0 or a list and its JSON
    text stay distinct keys. Objects and arrays are keyed by their JSON text.
    """
    try:
        hash(value)
    except TypeError:
        return ("json", json.dumps(value, sort_keys=True, default=str))
    return (type(value), value)


class Table:
    """
    One entity table: a CSV sink, a frozen column order and the set of primary
    keys already written.

    The schema (column_order and fields) is filled in once by the analyzer from
    the first record the table sees; the normalizer only reads it afterwards.
    """

    def __init__(self, name, primary_key_field, sink, skip_fields=(), forced_promotions=None):
        self.name = name
        self.primary_key_field = primary_key_field
        self.sink = sink
        self.skip_fields = frozenset(skip_fields)
        self.forced_promotions = dict(forced_promotions or {})
        self.column_order = []
        self.fields = {}  # field name -> FieldClassification, in sample order
        self.promotions = {}  # the promoted subset of fields
        self.seen_keys = set()
        self.discovered = False
        self.discovering = False
        self._reported_extra_fields = set()

    def __repr__(self):
        return f"Table({self.name!r}, primary_key_field={self.primary_key_field!r})"

    def freeze_schema(self, column_order, fields):
        if self.discovered:
            raise RuntimeError(f"Schema of table {self.name} is already frozen")
        self.column_order = list(column_order)
        self.fields = dict(fields)
        self.promotions = {
            field: classification
            for field, classification in self.fields.items()
            if classification.child_table is not None
        }
        self.discovered = True
        self.sink.write_header(self.column_order)

    def claim_key(self, key):
        """
        Record a primary key as written.

        Returns:
            bool: False if the key was already written (the record must be skipped)
        """
        token = _dedup_token(key)
        if token in self.seen_keys:
            return False
        self.seen_keys.add(token)
        return True

    def write_row(self, record):
        # Missing fields become blank cells so every row lines up with the header
        self.sink.append([record.get(column) for column in self.column_order])
        self._report_extra_fields(record)

    def _report_extra_fields(self, record):
        for field in record:
            if (field not in self.fields and field not in self.skip_fields
                    and field not in self._reported_extra_fields):
                self._reported_extra_fields.add(field)
                logger.debug("Ignoring field %r on table %s: not in its discovered schema", field, self.name)


class JunctionTable:
    """
    Two-column link table between a parent table and one of its promoted fields.

    Unlike Table there is no identity tracking: every link is written, even if
    the same pair was written before.
    """

    def __init__(self, name, parent_field, child_field, sink):
        self.name = name
        self.parent_field = parent_field
        self.child_field = child_field
        self.sink = sink
        self.column_order = []
        self.discovered = False

    def __repr__(self):
        return f"JunctionTable({self.name!r}, {self.parent_field!r} -> {self.child_field!r})"

    def freeze_schema(self, column_order):
        if self.discovered:
            raise RuntimeError(f"Schema of junction table {self.name} is already frozen")
        self.column_order = list(column_order)
        self.discovered = True
        self.sink.write_header(self.column_order)

    def write_link(self, parent_key, child_key):
        self.sink.append([parent_key, child_key])


class TableRegistry:
    """
    Maps table names to their Table / JunctionTable for one run.

    Tables are only ever created through get_or_create_table and
    get_or_create_junction, which the analyzer calls while discovering schemas.
    Creating a table opens its CSV file and does nothing else.
    """

    def __init__(self, output_dir, sink_factory=CsvTableSink):
        self.output_dir = output_dir
        self.sink_factory = sink_factory
        self.tables: Dict[str, Table] = {}
        self.junctions: Dict[str, JunctionTable] = {}
        self.closed = False
        os.makedirs(output_dir, exist_ok=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

    @property
    def table_names(self):
        return list(self.tables)

    @property
    def junction_names(self):
        return list(self.junctions)

    @staticmethod
    def junction_name(parent_table_name, child_field):
        return f"{parent_table_name}_{child_field}"

    def _open_sink(self, name):
        if self.closed:
            raise RuntimeError("Table registry is already closed")
        path = os.path.join(self.output_dir, f"{name}{CSV_EXTENSION}")
        sink = self.sink_factory(path)
        logger.info("Opened %s", path)
        return sink

    def get_or_create_table(self, name, primary_key_field=DEFAULT_PRIMARY_KEY,
                            skip_fields: Iterable[str] = (),
                            forced_promotions: Optional[Mapping[str, str]] = None) -> Table:
        """
        Return the entity table called name, creating it on first use.

        Args:
            name: Table name (also the CSV file name)
            primary_key_field: Field used to deduplicate rows
            skip_fields: Fields never written nor promoted
            forced_promotions: Field name -> key field, for fields that must be
                promoted even when their first sample is empty or keyless

        Returns:
            Table: the existing table if there is one (its settings are kept)
        """
        table = self.tables.get(name)
        if table is None:
            table = Table(name, primary_key_field, self._open_sink(name),
                          skip_fields=skip_fields, forced_promotions=forced_promotions)
            self.tables[name] = table
        return table

    def get_or_create_junction(self, parent_table_name, child_field) -> JunctionTable:
        name = self.junction_name(parent_table_name, child_field)
        junction = self.junctions.get(name)
        if junction is None:
            junction = JunctionTable(name, parent_table_name, child_field, self._open_sink(name))
            self.junctions[name] = junction
        return junction

    def get_table(self, name) -> Table:
        try:
            return self.tables[name]
        except KeyError:
            raise UnknownTableError(f"No table named {name!r} has been registered") from None

    def get_junction(self, name) -> JunctionTable:
        try:
            return self.junctions[name]
        except KeyError:
            raise UnknownTableError(f"No junction table named {name!r} has been registered") from None

    def _all_sinks(self):
        for table in self.tables.values():
            yield table.sink
        for junction in self.junctions.values():
            yield junction.sink

    def flush(self):
        """Write every buffered row of every table to disk."""
        for sink in self._all_sinks():
            sink.flush()

    def close(self):
        """Flush and close every table. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        first_error = None
        for sink in self._all_sinks():
            try:
                sink.close()
            except TableWriteError as e:
                logger.error("Failed to close %s: %s", sink.path, e)
                if first_error is None:
                    first_error = e
                continue
            logger.info("Closed %s", sink.path)
        if first_error is not None:
            raise first_error
