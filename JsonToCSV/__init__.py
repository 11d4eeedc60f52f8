from .core.normalizer import JsonNormalizer
from .core.analyzer import FieldClassification, FieldKind, JsonStructureAnalyzer
from .core.table_builder import JunctionTable, Table, TableRegistry
from .output.csv_writer import CsvTableSink, decode_opaque_array, load_table
from .errors import InvalidRecordError, JsonToCsvError, TableWriteError, UnknownTableError
from .main import process_json_to_csv, process_record_stream

__all__ = [
    "CsvTableSink",
    "FieldClassification",
    "FieldKind",
    "InvalidRecordError",
    "JsonNormalizer",
    "JsonStructureAnalyzer",
    "JsonToCsvError",
    "JunctionTable",
    "Table",
    "TableRegistry",
    "TableWriteError",
    "UnknownTableError",
    "decode_opaque_array",
    "load_table",
    "process_json_to_csv",
    "process_record_stream",
]
