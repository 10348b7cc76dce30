"""Tests for the in-process query engine and its Mongo translation."""

from __future__ import annotations

import pytest

from dotstore.errors import ValidationError
from dotstore.query import FindOptions, matches, run_query, to_mongo, values_equal

PEOPLE = [
    {"name": "Ada", "age": 15, "city": {"name": "Izmir"}},
    {"name": "Ben", "age": 20, "city": {"name": "Ankara"}},
    {"name": "Cem", "age": 30, "city": {"name": "Izmir"}},
    {"name": "Deniz"},
]


def names(results):
    return [item.get("name") for item in results]


class TestMatching:
    def test_literal_equality_on_nested_path(self) -> None:
        assert names(run_query(PEOPLE, {"city.name": "Izmir"})) == ["Ada", "Cem"]

    def test_range_operators(self) -> None:
        assert names(run_query(PEOPLE, {"age": {"$gte": 20}})) == ["Ben", "Cem"]
        assert names(run_query(PEOPLE, {"age": {"$gt": 20}})) == ["Cem"]
        assert names(run_query(PEOPLE, {"age": {"$lt": 20}})) == ["Ada"]
        assert names(run_query(PEOPLE, {"age": {"$lte": 20}})) == ["Ada", "Ben"]

    def test_range_never_matches_missing_or_other_types(self) -> None:
        docs = [{"age": "30"}, {"age": None}, {}]
        assert run_query(docs, {"age": {"$gt": 1}}) == []

    def test_ne_matches_missing(self) -> None:
        assert names(run_query(PEOPLE, {"age": {"$ne": 20}})) == ["Ada", "Cem", "Deniz"]

    def test_none_matches_missing_field(self) -> None:
        assert names(run_query(PEOPLE, {"age": None})) == ["Deniz"]

    def test_all_fields_must_match(self) -> None:
        query = {"city.name": "Izmir", "age": {"$gt": 20}}
        assert names(run_query(PEOPLE, query)) == ["Cem"]

    def test_empty_query_matches_everything(self) -> None:
        assert len(run_query(PEOPLE, {})) == 4

    def test_deep_equality_of_objects(self) -> None:
        assert matches({"tags": {"a": [1, 2]}}, {"tags": {"a": [1, 2]}})
        assert not matches({"tags": {"a": [1, 2]}}, {"tags": {"a": [2, 1]}})

    def test_bool_is_not_a_number(self) -> None:
        assert not values_equal(True, 1)
        assert not values_equal(0, False)
        assert values_equal(1, 1.0)

    def test_unknown_operator_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            run_query(PEOPLE, {"age": {"$in": [1]}})


class TestSources:
    def test_mapping_values_are_candidates(self) -> None:
        source = {"u1": {"age": 10}, "u2": {"age": 40}}
        assert run_query(source, {"age": {"$gt": 18}}) == [{"age": 40}]

    def test_scalar_source_yields_nothing(self) -> None:
        assert run_query(5, {}) == []
        assert run_query(None, {}) == []

    def test_source_is_not_mutated(self) -> None:
        source = [{"a": 2}, {"a": 1}]
        run_query(source, {}, {"sort": {"a": 1}, "projection": {"a": False}})
        assert source == [{"a": 2}, {"a": 1}]


class TestOptions:
    def test_sort_then_skip_then_limit(self) -> None:
        result = run_query(PEOPLE, {"age": {"$gte": 0}}, {"sort": {"age": -1}, "skip": 1, "limit": 1})
        assert names(result) == ["Ben"]

    def test_sort_accepts_words(self) -> None:
        assert names(run_query(PEOPLE, {"age": {"$gte": 0}}, {"sort": {"age": "desc"}})) == ["Cem", "Ben", "Ada"]

    def test_missing_values_sort_first(self) -> None:
        assert names(run_query(PEOPLE, {}, {"sort": {"age": 1}})) == ["Deniz", "Ada", "Ben", "Cem"]

    def test_limit_zero_returns_nothing(self) -> None:
        assert run_query(PEOPLE, {}, {"limit": 0}) == []

    def test_inclusion_projection(self) -> None:
        result = run_query(PEOPLE, {"name": "Ben"}, {"projection": {"city.name": True}})
        assert result == [{"city": {"name": "Ankara"}}]

    def test_exclusion_projection(self) -> None:
        result = run_query(PEOPLE, {"name": "Ben"}, {"projection": {"city": False, "age": False}})
        assert result == [{"name": "Ben"}]

    def test_sort_must_name_exactly_one_field(self) -> None:
        with pytest.raises(ValidationError):
            run_query(PEOPLE, {}, {"sort": {"age": 1, "name": 1}})

    def test_bad_direction_and_negative_values_are_rejected(self) -> None:
        for options in ({"sort": {"age": 2}}, {"skip": -1}, {"limit": -5}, {"unknown": 1}):
            with pytest.raises(ValidationError):
                run_query(PEOPLE, {}, options)

    def test_options_model_is_accepted(self) -> None:
        options = FindOptions(sort={"age": "asc"}, limit=2)
        assert options.sort_field == ("age", 1)
        assert names(run_query(PEOPLE, {"age": {"$gte": 0}}, options)) == ["Ada", "Ben"]


def test_to_mongo_prefixes_every_path() -> None:
    spec = to_mongo(
        {"age": {"$gte": 18}, "city.name": "Izmir"},
        {"sort": {"age": -1}, "projection": {"name": True}, "skip": 2, "limit": 5},
    )
    assert spec.filter == {"value.age": {"$gte": 18}, "value.city.name": "Izmir"}
    assert spec.projection == {"_id": 0, "value.name": 1}
    assert spec.sort == [("value.age", -1)]
    assert (spec.skip, spec.limit) == (2, 5)


def test_to_mongo_exclusion_projection() -> None:
    spec = to_mongo({}, {"projection": {"secret": False}})
    assert spec.projection == {"_id": 0, "value.secret": 0}
    assert spec.sort is None


def test_to_mongo_compares_non_operator_objects_whole() -> None:
    spec = to_mongo({"age": {"$gte": 18, "$lt": 30}, "city": {"name": "Izmir"}, "name": None})
    assert spec.filter == {
        "value.age": {"$eq": {"$gte": 18, "$lt": 30}},
        "value.city": {"$eq": {"name": "Izmir"}},
        "value.name": None,
    }
