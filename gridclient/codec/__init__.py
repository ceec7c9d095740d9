"""
Codec module: row conversion and binary object handles.
"""

from gridclient.codec.blob import Blob
from gridclient.codec.rows import (
    CodecFactory,
    GenericRowCodec,
    MappingRowCodec,
    Row,
    RowCodec,
)
from gridclient.codec.values import coerce_value, timestamp_millis

__all__ = [
    "Blob",
    "CodecFactory",
    "GenericRowCodec",
    "MappingRowCodec",
    "Row",
    "RowCodec",
    "coerce_value",
    "timestamp_millis",
]
