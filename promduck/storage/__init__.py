"""Translation engine between remote storage requests and the warehouse.

Write path: series -> BatchWriter (RowCodec) -> Warehouse.insert.
Read path: Query -> MatcherTranslator -> Warehouse.query -> ResultMerger.
"""

from promduck.storage.client import StorageClient
from promduck.storage.codec import RowCodec, decode_tags, encode_tags
from promduck.storage.duckdb_warehouse import DuckDBWarehouse
from promduck.storage.merger import ResultMerger, fingerprint, merge
from promduck.storage.translator import MatcherTranslator
from promduck.storage.warehouse import Warehouse
from promduck.storage.writer import BatchWriter

__all__ = [
    "BatchWriter",
    "DuckDBWarehouse",
    "MatcherTranslator",
    "ResultMerger",
    "RowCodec",
    "StorageClient",
    "Warehouse",
    "decode_tags",
    "encode_tags",
    "fingerprint",
    "merge",
]
