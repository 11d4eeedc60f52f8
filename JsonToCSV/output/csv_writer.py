# Contains the CSV file sink every table writes through
import json
import math
import os

import pandas as pd

from ..config import CSV_EXTENSION, DEFAULT_ENCODING
from ..errors import TableWriteError


def encode_cell(value):
    """
    Convert a record value into something pandas writes as a single CSV cell.

    Args:
        value: Any JSON-like value

    Returns:
        The value itself for primitives, None for missing values, and compact
        JSON text for objects and arrays (see decode_opaque_array)
    """
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def decode_opaque_array(text):
    """Inverse of encode_cell for array columns; an empty cell decodes to []."""
    if text is None or text == "":
        return []
    return json.loads(text)


class CsvTableSink:
    """
    Append-only CSV file for one table.

    Rows are buffered and written in batches on flush(), always with the same
    quoting rules as the header so every line parses positionally.
    """

    def __init__(self, path, encoding=DEFAULT_ENCODING):
        self.path = path
        self.columns = None
        self._pending = []
        try:
            self._handle = open(path, "w", encoding=encoding, newline="")
        except OSError as e:
            raise TableWriteError(f"Unable to open {path}: {e}", path=path) from e

    @property
    def closed(self):
        return self._handle.closed

    @property
    def pending_rows(self):
        return len(self._pending)

    def write_header(self, columns):
        if self.columns is not None:
            raise ValueError(f"Header already written for {self.path}")
        self.columns = list(columns)
        try:
            if self.columns:
                pd.DataFrame(columns=self.columns).to_csv(self._handle, index=False, lineterminator="\n")
            else:
                self._handle.write("\n")
        except OSError as e:
            raise TableWriteError(f"Unable to write header to {self.path}: {e}", path=self.path) from e

    def append(self, row):
        """Queue one row; values must line up positionally with the header."""
        if self.columns is None:
            raise ValueError(f"Cannot append to {self.path} before its header is written")
        self._pending.append([encode_cell(value) for value in row])

    def flush(self):
        if self._handle.closed:
            return
        rows, self._pending = self._pending, []
        try:
            if rows:
                if self.columns:
                    # dtype=object keeps ints as ints when a column also holds None
                    frame = pd.DataFrame(rows, columns=self.columns, dtype=object)
                    frame.to_csv(self._handle, header=False, index=False, lineterminator="\n", na_rep="")
                else:
                    self._handle.write("\n" * len(rows))
            self._handle.flush()
        except OSError as e:
            raise TableWriteError(f"Unable to write rows to {self.path}: {e}", path=self.path) from e

    def close(self):
        if self._handle.closed:
            return
        try:
            self.flush()
        finally:
            try:
                self._handle.close()
            except OSError as e:
                raise TableWriteError(f"Unable to close {self.path}: {e}", path=self.path) from e


def load_table(output_dir, table_name, opaque_columns=(), encoding=DEFAULT_ENCODING):
    """
    Read an exported table back into a DataFrame.

    Args:
        output_dir: Directory the tables were written to
        table_name: Table name, without the .csv extension
        opaque_columns: Columns holding JSON-encoded arrays to decode back to lists
        encoding: File encoding

    Returns:
        pd.DataFrame: every cell as text (empty cells as ""), opaque columns as lists.
            A table without columns gives a frame with no columns and one index
            entry per written row
    """
    path = os.path.join(output_dir, f"{table_name}{CSV_EXTENSION}")
    with open(path, "r", encoding=encoding, newline="") as f:
        header = f.readline()
        if header in ("", "\n", "\r\n"):
            # No columns (blank header and rows), or no header written yet
            return pd.DataFrame(index=pd.RangeIndex(sum(1 for _ in f)))
    frame = pd.read_csv(path, dtype=str, keep_default_na=False, encoding=encoding)
    for column in opaque_columns:
        frame[column] = frame[column].map(decode_opaque_array)
    return frame
