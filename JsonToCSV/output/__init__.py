from .csv_writer import CsvTableSink, decode_opaque_array, encode_cell, load_table

__all__ = [
    'CsvTableSink',
    'decode_opaque_array',
    'encode_cell',
    'load_table'
]
