"""
Row codec, value coercion and blob handle tests.

Run: python -m pytest gridclient/tests/test_codec.py -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gridclient.codec import Blob, GenericRowCodec, MappingRowCodec, Row, timestamp_millis
from gridclient.core.errors import TypeMismatchError, ValidationError
from gridclient.schema import ColumnInfo, ColumnType, ContainerInfo, ContainerType
from gridclient.schema.columns import EPOCH

SAMPLES = {
    ColumnType.STRING: "text",
    ColumnType.BOOL: True,
    ColumnType.BYTE: -128,
    ColumnType.SHORT: 32767,
    ColumnType.INTEGER: -7,
    ColumnType.LONG: 2 ** 40,
    ColumnType.FLOAT: 1.5,
    ColumnType.DOUBLE: -2.25,
    ColumnType.TIMESTAMP: datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc),
    ColumnType.GEOMETRY: "POINT(1 2)",
    ColumnType.BLOB: b"\x00\x01binary",
    ColumnType.STRING_ARRAY: ("a", "b"),
    ColumnType.BOOL_ARRAY: (True, False),
    ColumnType.INTEGER_ARRAY: (1, 2, 3),
    ColumnType.DOUBLE_ARRAY: (0.5,),
    ColumnType.TIMESTAMP_ARRAY: (EPOCH,),
}


def single_column(column_type: ColumnType, nullable: bool = True) -> ContainerInfo:
    return ContainerInfo(
        name="c",
        type=ContainerType.COLLECTION,
        columns=[ColumnInfo("v", column_type, nullable=nullable)],
    )


class TestRoundTrip:
    @pytest.mark.parametrize("column_type", list(SAMPLES))
    def test_sample_value(self, column_type):
        codec = GenericRowCodec(single_column(column_type))
        _, values = codec.encode([SAMPLES[column_type]])
        assert codec.decode(values)[0] == SAMPLES[column_type]

    @pytest.mark.parametrize("column_type", list(SAMPLES))
    def test_empty_value(self, column_type):
        codec = GenericRowCodec(single_column(column_type, nullable=False))
        empty = column_type.empty_value()
        _, values = codec.encode([empty])
        assert codec.decode(values)[0] == empty

    def test_null_passes_through_nullable_column(self):
        codec = GenericRowCodec(single_column(ColumnType.LONG))
        _, values = codec.encode([None])
        assert values == (None,)
        assert codec.decode(values)[0] is None

    def test_null_becomes_empty_value_for_not_null_column(self):
        codec = GenericRowCodec(single_column(ColumnType.STRING_ARRAY, nullable=False))
        _, values = codec.encode([None])
        assert values == ((),)

    def test_float_precision_normalized(self):
        codec = GenericRowCodec(single_column(ColumnType.DOUBLE))
        _, values = codec.encode([3])
        assert values == (3.0,)


class TestCoercion:
    def test_bool_is_not_an_integer(self):
        codec = GenericRowCodec(single_column(ColumnType.INTEGER))
        with pytest.raises(TypeMismatchError):
            codec.encode([True])

    def test_integer_range(self):
        codec = GenericRowCodec(single_column(ColumnType.BYTE))
        with pytest.raises(TypeMismatchError):
            codec.encode([128])

    def test_string_for_number(self):
        codec = GenericRowCodec(single_column(ColumnType.LONG))
        with pytest.raises(TypeMismatchError):
            codec.encode(["12"])

    def test_array_elements_cannot_be_null(self):
        codec = GenericRowCodec(single_column(ColumnType.INTEGER_ARRAY))
        with pytest.raises(TypeMismatchError):
            codec.encode([[1, None]])

    def test_naive_timestamp_is_utc_and_truncated_to_millis(self):
        codec = GenericRowCodec(single_column(ColumnType.TIMESTAMP))
        _, values = codec.encode([datetime(2024, 1, 1, 0, 0, 0, 123456)])
        assert values[0] == datetime(2024, 1, 1, 0, 0, 0, 123000, tzinfo=timezone.utc)

    def test_timestamp_converted_to_utc(self):
        codec = GenericRowCodec(single_column(ColumnType.TIMESTAMP))
        offset = timezone(timedelta(hours=9))
        _, values = codec.encode([datetime(2024, 1, 1, 9, 0, tzinfo=offset)])
        assert values[0] == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        assert timestamp_millis(values[0]) == 1704067200000

    def test_blob_handle_accepted(self):
        codec = GenericRowCodec(single_column(ColumnType.BLOB))
        _, values = codec.encode([Blob(b"abc")])
        assert values == (b"abc",)


class TestGenericRowCodec:
    @pytest.fixture
    def codec(self):
        return GenericRowCodec(ContainerInfo(
            name="c",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("id", ColumnType.INTEGER), ColumnInfo("Name", ColumnType.STRING)],
            row_key_assigned=True,
        ))

    def test_key_taken_from_column_zero(self, codec):
        key, values = codec.encode(Row(["id", "Name"], [4, "x"]))
        assert key == 4
        assert values == (4, "x")

    def test_explicit_key_overrides_row(self, codec):
        key, values = codec.encode([4, "x"], explicit_key=9)
        assert key == 9
        assert values == (9, "x")

    def test_null_key_rejected(self, codec):
        with pytest.raises(TypeMismatchError):
            codec.encode([None, "x"])

    def test_wrong_arity(self, codec):
        with pytest.raises(TypeMismatchError):
            codec.encode([1])

    def test_decoded_row_access(self, codec):
        row = codec.decode((1, "n"))
        assert row["name"] == "n"
        assert row[0] == 1
        assert row.as_dict() == {"id": 1, "Name": "n"}

    def test_create_row_defaults(self, codec):
        row = codec.create_row()
        assert row.values == (0, None)


class TestMappingRowCodec:
    @pytest.fixture
    def codec(self):
        return MappingRowCodec(ContainerInfo(
            name="c",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("id", ColumnType.STRING), ColumnInfo("qty", ColumnType.INTEGER)],
            row_key_assigned=True,
        ))

    def test_encode_decode(self, codec):
        key, values = codec.encode({"ID": "a", "qty": 3})
        assert key == "a"
        assert codec.decode(values) == {"id": "a", "qty": 3}

    def test_missing_column_is_null(self, codec):
        _, values = codec.encode({"id": "a"})
        assert values == ("a", None)

    def test_unknown_column_rejected(self, codec):
        with pytest.raises(TypeMismatchError):
            codec.encode({"id": "a", "other": 1})

    def test_non_mapping_rejected(self, codec):
        with pytest.raises(TypeMismatchError):
            codec.encode(["a", 1])


class TestBlob:
    def test_stream_write(self):
        blob = Blob()
        stream = blob.set_binary_stream()
        stream.write(b"hello")
        stream.write(b" world")
        assert blob.length() == 11
        assert blob.get_bytes(6, 5) == b"world"

    def test_set_bytes_past_end_zero_fills(self):
        blob = Blob(b"ab")
        written = blob.set_bytes(4, b"xyz", offset=1, length=1)
        assert written == 1
        assert blob.get_bytes(0, 10) == b"ab\x00\x00y"

    def test_overwrite_in_place(self):
        blob = Blob(b"abcdef")
        blob.set_bytes(1, b"ZZ")
        assert blob.get_bytes(0, 6) == b"aZZdef"

    def test_truncate(self):
        blob = Blob(b"abcdef")
        blob.truncate(2)
        assert blob.length() == 2

    def test_use_after_free(self):
        blob = Blob(b"abc")
        blob.free()
        assert blob.freed
        with pytest.raises(ValidationError):
            blob.length()
        with pytest.raises(ValidationError):
            blob.set_bytes(0, b"x")
