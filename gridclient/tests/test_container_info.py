"""
Container layout model tests.

Run: python -m pytest gridclient/tests/test_container_info.py -v
"""

from __future__ import annotations

import pytest

from gridclient.core.errors import ValidationError
from gridclient.schema import (
    ColumnInfo,
    ColumnType,
    CompressionMethod,
    ContainerInfo,
    ContainerType,
    IndexInfo,
    TimeSeriesProperties,
    TimeUnit,
    TriggerEvent,
    TriggerInfo,
)
from gridclient.schema.symbols import (
    check_column_name,
    check_container_name,
    check_data_affinity,
    check_index_name,
    check_trigger_name,
)

from conftest import keyed_info


class TestDataAffinity:
    def test_valid_affinity_is_stored(self):
        info = keyed_info()
        info.data_affinity = "grp_01"
        assert info.data_affinity == "grp_01"

    def test_invalid_characters_rejected_at_set_time(self):
        info = keyed_info()
        with pytest.raises(ValidationError):
            info.data_affinity = "bad affinity"

    def test_too_long_rejected(self):
        with pytest.raises(ValidationError):
            ContainerInfo(name="c", data_affinity="x" * 9)

    def test_failed_set_keeps_previous_value(self):
        info = keyed_info()
        info.data_affinity = "a1"
        with pytest.raises(ValidationError):
            info.data_affinity = "a-1"
        assert info.data_affinity == "a1"

    def test_none_clears(self):
        info = ContainerInfo(data_affinity="a")
        info.data_affinity = None
        assert info.data_affinity is None
        assert check_data_affinity("abcdefgh").is_ok()

    def test_trailing_newline_rejected_at_set_time(self):
        info = keyed_info()
        with pytest.raises(ValidationError):
            info.data_affinity = "grp\n"
        assert info.data_affinity is None


class TestCopySemantics:
    def test_setter_copies_caller_list(self):
        columns = [ColumnInfo("id", ColumnType.INTEGER)]
        info = ContainerInfo(name="c", type=ContainerType.COLLECTION, columns=columns)
        columns.append(ColumnInfo("extra", ColumnType.STRING))
        assert info.column_count == 1

    def test_index_and_trigger_lists_are_immutable(self):
        info = keyed_info()
        indexes = [IndexInfo.for_column("value")]
        info.index_infos = indexes
        indexes.clear()
        assert len(info.index_infos) == 1
        assert isinstance(info.index_infos, tuple)
        assert isinstance(info.trigger_infos, tuple)

    def test_copy_is_independent(self):
        props = TimeSeriesProperties()
        props.set_row_expiration_time(10, TimeUnit.DAY)
        info = ContainerInfo(
            name="ts",
            type=ContainerType.TIME_SERIES,
            columns=[ColumnInfo("t", ColumnType.TIMESTAMP)],
            row_key_assigned=True,
            time_series_properties=props,
        )
        clone = info.copy()
        clone.columns = []
        clone.time_series_properties.expiration_division_count = 4
        assert info.column_count == 1
        assert info.time_series_properties.expiration_division_count == -1

    def test_time_series_properties_cloned_on_set(self):
        props = TimeSeriesProperties()
        info = ContainerInfo(time_series_properties=props)
        props.compression_method = CompressionMethod.HI
        assert info.time_series_properties.compression_method is CompressionMethod.NO

    def test_trigger_info_copies_collections(self):
        events = [TriggerEvent.PUT]
        trigger = TriggerInfo.rest("t", "http://h:80/p", events)
        events.append(TriggerEvent.DELETE)
        assert trigger.target_events == frozenset({TriggerEvent.PUT})


class TestColumnLookup:
    def test_find_column_is_case_insensitive(self):
        info = keyed_info()
        assert info.find_column("VALUE") == 1
        assert info.find_column("missing") is None

    def test_get_column_out_of_range(self):
        with pytest.raises(ValidationError):
            keyed_info().get_column(5)

    def test_row_key_is_never_nullable(self):
        info = ContainerInfo(
            name="c",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("id", ColumnType.STRING), ColumnInfo("v", ColumnType.LONG)],
            row_key_assigned=True,
        )
        assert info.is_nullable(0) is False
        assert info.is_nullable(1) is True


class TestMaterialization:
    def test_transiently_invalid_info_can_be_constructed(self):
        info = ContainerInfo(name="empty", type=ContainerType.COLLECTION)
        assert info.check_materializable().is_err()

    def test_valid_keyed_info(self):
        assert keyed_info().check_materializable().is_ok()

    def test_too_many_columns(self):
        info = ContainerInfo(
            name="wide",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo(f"c{i}", ColumnType.INTEGER) for i in range(1025)],
        )
        assert info.check_materializable().is_err()

    def test_duplicate_column_names_case_insensitive(self):
        info = ContainerInfo(
            name="dup",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("a", ColumnType.INTEGER), ColumnInfo("A", ColumnType.STRING)],
        )
        assert info.check_materializable().is_err()

    def test_row_key_type_must_be_key_capable(self):
        info = ContainerInfo(
            name="k",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("k", ColumnType.DOUBLE)],
            row_key_assigned=True,
        )
        assert info.check_materializable().is_err()

    def test_nullable_row_key_rejected(self):
        info = ContainerInfo(
            name="k",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("k", ColumnType.INTEGER, nullable=True)],
            row_key_assigned=True,
        )
        assert info.check_materializable().is_err()

    def test_time_series_requires_timestamp_key(self):
        info = ContainerInfo(
            name="ts",
            type=ContainerType.TIME_SERIES,
            columns=[ColumnInfo("id", ColumnType.INTEGER)],
            row_key_assigned=True,
        )
        assert info.check_materializable().is_err()

    def test_time_series_properties_only_on_time_series(self):
        info = keyed_info()
        info.time_series_properties = TimeSeriesProperties()
        assert info.check_materializable().is_err()

    def test_container_name_symbols(self):
        assert check_container_name("sensor.data/2024=a").is_ok()
        assert check_container_name("bad name").is_err()

    @pytest.mark.parametrize("check", [
        check_container_name, check_column_name, check_index_name, check_trigger_name,
    ])
    def test_trailing_newline_rejected(self, check):
        assert check("orders\n").is_err()
        assert check("\norders").is_err()


class TestSameLayout:
    def test_identical(self):
        assert keyed_info().same_layout(keyed_info())

    def test_column_name_case_ignored(self):
        other = ContainerInfo(
            name="items",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("ID", ColumnType.INTEGER), ColumnInfo("Value", ColumnType.STRING)],
            row_key_assigned=True,
        )
        assert keyed_info().same_layout(other)

    def test_order_matters_unless_ignorable(self):
        columns = [
            ColumnInfo("id", ColumnType.INTEGER),
            ColumnInfo("a", ColumnType.STRING),
            ColumnInfo("b", ColumnType.LONG),
        ]
        first = ContainerInfo(name="c", type=ContainerType.COLLECTION, columns=columns, row_key_assigned=True)
        reordered = ContainerInfo(
            name="c",
            type=ContainerType.COLLECTION,
            columns=[columns[0], columns[2], columns[1]],
            row_key_assigned=True,
        )
        assert not first.same_layout(reordered)
        reordered.column_order_ignorable = True
        assert reordered.same_layout(first)


class TestTimeSeriesProperties:
    def test_defaults_unset(self):
        props = TimeSeriesProperties()
        assert props.row_expiration_time == -1
        assert props.row_expiration_time_unit is None
        assert props.expiration_division_count == -1
        assert props.compression_method is CompressionMethod.NO
        assert props.compression_window_size == -1

    def test_division_count_bounds(self):
        props = TimeSeriesProperties()
        props.expiration_division_count = 160
        assert props.expiration_division_count == 160
        with pytest.raises(ValidationError):
            props.expiration_division_count = 161
        with pytest.raises(ValidationError):
            props.expiration_division_count = 0

    def test_non_positive_expiration_rejected(self):
        with pytest.raises(ValidationError):
            TimeSeriesProperties().set_row_expiration_time(0, TimeUnit.HOUR)

    def test_compression_window(self):
        props = TimeSeriesProperties()
        props.set_compression_window_size(5, TimeUnit.MINUTE)
        assert props.compression_window_size == 5
        assert props.compression_window_size_unit is TimeUnit.MINUTE
        assert props.copy() == props
