"""
Index directive planning tests.

Run: python -m pytest gridclient/tests/test_index_directives.py -v
"""

from __future__ import annotations

import pytest

from gridclient.core.errors import IndexConflictError, UnsupportedIndexError, ValidationError
from gridclient.directives import IndexAction, IndexDirectiveEngine, default_index_type
from gridclient.schema import ColumnInfo, ColumnType, ContainerInfo, ContainerType, IndexInfo, IndexType


@pytest.fixture
def collection() -> ContainerInfo:
    return ContainerInfo(
        name="places",
        type=ContainerType.COLLECTION,
        columns=[
            ColumnInfo("id", ColumnType.STRING),
            ColumnInfo("score", ColumnType.DOUBLE),
            ColumnInfo("shape", ColumnType.GEOMETRY),
            ColumnInfo("tags", ColumnType.STRING_ARRAY),
        ],
        row_key_assigned=True,
    )


@pytest.fixture
def series() -> ContainerInfo:
    return ContainerInfo(
        name="metrics",
        type=ContainerType.TIME_SERIES,
        columns=[ColumnInfo("ts", ColumnType.TIMESTAMP), ColumnInfo("value", ColumnType.DOUBLE)],
        row_key_assigned=True,
    )


def apply(engine, index_info, existing):
    plan = engine.plan_create(index_info, existing).unwrap()
    if plan.action is IndexAction.CREATE:
        existing.append(plan.index)
    return plan


class TestResolution:
    def test_default_type_table(self):
        assert default_index_type(ColumnType.DOUBLE, ContainerType.COLLECTION) is IndexType.TREE
        assert default_index_type(ColumnType.GEOMETRY, ContainerType.COLLECTION) is IndexType.SPATIAL
        assert default_index_type(ColumnType.GEOMETRY, ContainerType.TIME_SERIES) is None
        assert default_index_type(ColumnType.BLOB, ContainerType.COLLECTION) is None

    def test_name_and_number_must_agree(self, collection):
        engine = IndexDirectiveEngine(collection)
        assert engine.resolve(IndexInfo(column_name="score", column=1)).is_ok()
        result = engine.resolve(IndexInfo(column_name="score", column=2))
        assert isinstance(result.error, ValidationError)

    def test_unknown_column(self, collection):
        result = IndexDirectiveEngine(collection).resolve(IndexInfo.for_column("nope"))
        assert isinstance(result.error, ValidationError)

    def test_time_series_key_not_indexable(self, series):
        result = IndexDirectiveEngine(series).resolve(IndexInfo.for_column("ts"))
        assert isinstance(result.error, UnsupportedIndexError)

    def test_hash_unsupported_on_time_series(self, series):
        result = IndexDirectiveEngine(series).resolve(IndexInfo.for_column("value", IndexType.HASH))
        assert isinstance(result.error, UnsupportedIndexError)

    def test_array_column_unsupported(self, collection):
        result = IndexDirectiveEngine(collection).resolve(IndexInfo.for_column("tags"))
        assert isinstance(result.error, UnsupportedIndexError)

    def test_spatial_needs_geometry(self, collection):
        result = IndexDirectiveEngine(collection).resolve(IndexInfo.for_column("score", IndexType.SPATIAL))
        assert isinstance(result.error, UnsupportedIndexError)


class TestCreatePlanning:
    def test_same_column_and_effective_type_is_noop(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        first = apply(engine, IndexInfo.for_column("score"), existing)
        second = apply(engine, IndexInfo(column=1, type=IndexType.TREE), existing)
        assert first.action is IndexAction.CREATE
        assert second.action is IndexAction.NOOP
        assert len(existing) == 1

    def test_named_duplicate_of_unnamed_is_noop(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score"), existing)
        plan = apply(engine, IndexInfo.for_column("score", name="by_score"), existing)
        assert plan.action is IndexAction.NOOP
        assert len(existing) == 1

    def test_different_type_on_same_column_creates(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score", IndexType.TREE), existing)
        plan = apply(engine, IndexInfo.for_column("score", IndexType.HASH), existing)
        assert plan.action is IndexAction.CREATE
        assert len(existing) == 2

    def test_name_used_by_different_index_conflicts(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score", name="idx"), existing)
        result = engine.plan_create(IndexInfo.for_column("id", name="idx"), existing)
        assert isinstance(result.error, IndexConflictError)

    def test_name_differing_only_in_case_conflicts(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score", name="idx"), existing)
        result = engine.plan_create(IndexInfo.for_column("score", name="IDX"), existing)
        assert isinstance(result.error, IndexConflictError)

    def test_exact_named_match_is_noop(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score", name="idx"), existing)
        plan = apply(engine, IndexInfo(column=1, name="idx"), existing)
        assert plan.action is IndexAction.NOOP


class TestDropPlanning:
    @pytest.fixture
    def existing(self, collection):
        engine = IndexDirectiveEngine(collection)
        indexes = []
        apply(engine, IndexInfo.for_column("id", name="by_id"), indexes)
        apply(engine, IndexInfo.for_column("score", IndexType.TREE), indexes)
        apply(engine, IndexInfo.for_column("score", IndexType.HASH, name="score_hash"), indexes)
        apply(engine, IndexInfo.for_column("shape"), indexes)
        return indexes

    def test_column_wildcard_type(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(IndexInfo(column_name="score"), existing).unwrap()
        assert {index.type for index in matches} == {IndexType.TREE, IndexType.HASH}

    def test_column_and_type(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(
            IndexInfo.for_column("score", IndexType.HASH), existing
        ).unwrap()
        assert [index.name for index in matches] == ["score_hash"]

    def test_default_type_matches_default_indexes(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(
            IndexInfo.for_column("score", IndexType.DEFAULT), existing
        ).unwrap()
        assert [index.type for index in matches] == [IndexType.TREE]

    def test_name_only_case_insensitive(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(IndexInfo.named("BY_ID"), existing).unwrap()
        assert len(matches) == 1
        assert matches[0].column_name == "id"

    def test_type_only(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(IndexInfo(type=IndexType.SPATIAL), existing).unwrap()
        assert [index.column_name for index in matches] == ["shape"]

    def test_no_match_is_empty(self, collection, existing):
        matches = IndexDirectiveEngine(collection).plan_drop(IndexInfo.named("ghost"), existing).unwrap()
        assert matches == []


class TestRebind:
    def test_vanished_column_drops_index(self, collection):
        engine = IndexDirectiveEngine(collection)
        existing = []
        apply(engine, IndexInfo.for_column("score"), existing)
        narrowed = ContainerInfo(
            name="places",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("id", ColumnType.STRING), ColumnInfo("SCORE", ColumnType.DOUBLE)],
            row_key_assigned=True,
        )
        rebound = engine.rebind(existing[0], narrowed)
        assert rebound is not None
        assert rebound.column_name == "SCORE"
        without = ContainerInfo(
            name="places",
            type=ContainerType.COLLECTION,
            columns=[ColumnInfo("id", ColumnType.STRING)],
            row_key_assigned=True,
        )
        assert engine.rebind(existing[0], without) is None
