from .normalizer import JsonNormalizer
from .analyzer import FieldClassification, FieldKind, JsonStructureAnalyzer
from .table_builder import JunctionTable, Table, TableRegistry

__all__ = [
    'JsonNormalizer',
    'JsonStructureAnalyzer',
    'FieldClassification',
    'FieldKind',
    'JunctionTable',
    'Table',
    'TableRegistry'
]
