from __future__ import annotations

import logging

import pytest

from JsonToCSV.core.analyzer import FieldClassification, FieldKind
from JsonToCSV.core.table_builder import TableRegistry
from JsonToCSV.errors import TableWriteError, UnknownTableError


def test_get_or_create_table_is_memoized_and_opens_the_file(registry, output_dir) -> None:
    movies = registry.get_or_create_table("movies", "id")

    assert registry.get_or_create_table("movies", "other_key") is movies
    assert movies.primary_key_field == "id"
    assert (output_dir / "movies.csv").exists()
    assert registry.table_names == ["movies"]


def test_get_or_create_junction_names_the_table_after_parent_and_field(registry, output_dir) -> None:
    junction = registry.get_or_create_junction("movies", "genres")

    assert junction.name == "movies_genres"
    assert junction.parent_field == "movies"
    assert junction.child_field == "genres"
    assert registry.get_or_create_junction("movies", "genres") is junction
    assert registry.get_junction("movies_genres") is junction
    assert (output_dir / "movies_genres.csv").exists()


def test_get_table_raises_for_unregistered_names(registry) -> None:
    with pytest.raises(UnknownTableError) as excinfo:
        registry.get_table("nope")

    assert isinstance(excinfo.value, KeyError)
    assert "nope" in str(excinfo.value)


def test_claim_key_is_first_write_wins(registry) -> None:
    movies = registry.get_or_create_table("movies", "id")

    assert movies.claim_key(1) is True
    assert movies.claim_key(1) is False
    assert movies.claim_key(None) is True
    assert movies.claim_key(None) is False
    # Unhashable keys are tracked through their JSON text
    assert movies.claim_key([1, 2]) is True
    assert movies.claim_key([1, 2]) is False


def test_claim_key_keeps_values_of_different_types_apart(registry) -> None:
    movies = registry.get_or_create_table("movies", "id")

    assert movies.claim_key(1) is True
    assert movies.claim_key(True) is True
    assert movies.claim_key(1.0) is True
    assert movies.claim_key("1") is True
    assert movies.claim_key([1, 2]) is True
    assert movies.claim_key("[1, 2]") is True
    assert movies.claim_key('["json", "[1, 2]"]') is True
    assert movies.claim_key({"a": 1}) is True
    assert movies.claim_key({"a": 1}) is False
    assert movies.claim_key(True) is False


def test_write_row_follows_column_order_and_blanks_missing_fields(registry, csv_lines) -> None:
    movies = registry.get_or_create_table("movies", "id")
    movies.freeze_schema(
        ["id", "title", "year"],
        {
            "id": FieldClassification(FieldKind.SCALAR),
            "title": FieldClassification(FieldKind.SCALAR),
            "year": FieldClassification(FieldKind.SCALAR),
        },
    )

    movies.write_row({"year": 1999, "id": 1, "extra": "ignored"})
    registry.flush()

    assert csv_lines("movies") == ["id,title,year", "1,,1999"]


def test_freeze_schema_only_once(registry) -> None:
    movies = registry.get_or_create_table("movies", "id")
    movies.freeze_schema(["id"], {"id": FieldClassification(FieldKind.SCALAR)})

    with pytest.raises(RuntimeError):
        movies.freeze_schema(["id"], {"id": FieldClassification(FieldKind.SCALAR)})


def test_junction_links_are_never_deduplicated(registry, csv_lines) -> None:
    junction = registry.get_or_create_junction("movies", "genres")
    junction.freeze_schema(["movies", "genres"])

    junction.write_link(1, 10)
    junction.write_link(1, 10)
    registry.flush()

    assert csv_lines("movies_genres") == ["movies,genres", "1,10", "1,10"]


def test_close_is_idempotent_and_logs_each_table(output_dir, caplog: pytest.LogCaptureFixture) -> None:
    registry = TableRegistry(str(output_dir))
    movies = registry.get_or_create_table("movies", "id")
    registry.get_or_create_junction("movies", "genres")

    with caplog.at_level(logging.INFO, logger="JsonToCSV.core.table_builder"):
        registry.close()
        registry.close()

    assert movies.sink.closed
    closed = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Closed")]
    assert len(closed) == 2

    with pytest.raises(RuntimeError):
        registry.get_or_create_table("people", "id")


def test_context_manager_closes_tables_on_error(output_dir) -> None:
    with pytest.raises(ValueError):
        with TableRegistry(str(output_dir)) as registry:
            movies = registry.get_or_create_table("movies", "id")
            raise ValueError("boom")

    assert registry.closed
    assert movies.sink.closed


def test_close_closes_every_table_even_when_one_fails(output_dir) -> None:
    registry = TableRegistry(str(output_dir))
    movies = registry.get_or_create_table("movies", "id")
    genres = registry.get_or_create_table("genres", "id")
    junction = registry.get_or_create_junction("movies", "genres")
    real_close = movies.sink.close

    def _failing_close():
        real_close()
        raise TableWriteError("disk full", path=movies.sink.path)

    movies.sink.close = _failing_close

    with pytest.raises(TableWriteError, match="disk full"):
        registry.close()

    assert movies.sink.closed
    assert genres.sink.closed
    assert junction.sink.closed
