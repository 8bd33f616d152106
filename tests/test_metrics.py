"""Tests for computed count columns."""

import pytest

from sheet_grid import MemoryGrid
from sheet_store import MetricStore, RetainedStore, TabularStore

from conftest import TODAY

HISTORY = [
    ["id", "Stage", "Backup Date"],
    ["r1", "Waiting", "2024-03-13"],
    ["r2", "Done", "2024-03-13"],
    ["r1", "Waiting", "2024-03-14"],
    ["r2", "Waiting", "2024-03-14"],
    ["r1", "Waiting", "2024-03-15"],
    ["r2", "Verification", "2024-03-15"],
    ["r3", "New", "2024-03-15"],
]


@pytest.fixture
def history_grid():
    return MemoryGrid(HISTORY)


@pytest.fixture
def history_metrics(history_grid):
    return MetricStore(RetainedStore(TabularStore(history_grid), ["id", "Stage"]))


def test_count_rows_where(history_metrics):
    counts = history_metrics.count_rows_where("Stage", ["Waiting", "Verification"], "id")

    assert counts == {"r1": 3, "r2": 2}


def test_count_rows_where_missing_field(history_metrics):
    assert history_metrics.count_rows_where("Owner", ["Waiting"], "id") == {}


def test_compute_grouped_count_writes_snapshot_rows_only(history_metrics, history_grid):
    written = history_metrics.compute_grouped_count("Days waiting", "Stage", ["Waiting"], "id", "2024-03-15")

    assert written == 3
    rows = history_grid.rows
    assert rows[0] == ["id", "Stage", "Backup Date", "Days waiting"]
    assert [row[3] for row in rows[1:]] == ["", "", "", "", 3, 1, 0]


def test_compute_grouped_count_is_idempotent(history_metrics, history_grid):
    history_metrics.compute_grouped_count("Days waiting", "Stage", ["Waiting"], "id", "2024-03-15")
    first = history_grid.rows
    history_metrics.compute_grouped_count("Days waiting", "Stage", ["Waiting"], "id", "2024-03-15")

    assert history_grid.rows == first


def test_compute_grouped_count_scattered_snapshot_rows():
    grid = MemoryGrid([
        ["id", "Stage", "Backup Date"],
        ["r1", "Waiting", "2024-03-15"],
        ["r1", "Waiting", "2024-03-14"],
        ["r2", "Done", "2024-03-15"],
    ])
    metrics = MetricStore(RetainedStore(TabularStore(grid), ["id", "Stage"]))

    metrics.compute_grouped_count("Days waiting", "Stage", ["Waiting"], "id", "2024-03-15")

    assert [row[3] for row in grid.rows[1:]] == [2, "", 0]


def test_compute_grouped_count_existing_column_is_updated(history_grid, history_metrics):
    history_metrics.compute_grouped_count("Days", "Stage", ["Waiting"], "id", "2024-03-15")
    history_metrics.compute_grouped_count("Days", "Stage", ["Verification"], "id", "2024-03-15")

    rows = history_grid.rows
    assert rows[0].count("Days") == 1
    assert [row[3] for row in rows[5:]] == [0, 1, 0]


def test_compute_grouped_count_missing_key_column():
    grid = MemoryGrid([["Stage", "Backup Date"], ["Waiting", "2024-03-15"]])
    metrics = MetricStore(RetainedStore(TabularStore(grid), ["Stage"]))

    assert metrics.compute_grouped_count("Days", "Stage", ["Waiting"], "id", "2024-03-15") == 0
    assert grid.rows == [["Stage", "Backup Date", "Days"], ["Waiting", "2024-03-15", ""]]


def test_add_computed_fields(history_metrics, history_grid):
    history_metrics.add_computed_fields("2024-03-15", [
        {"name": "Days waiting", "source_field": "Stage", "match_values": ["Waiting"]},
        {"name": "Days in verification", "source_field": "Stage", "match_values": ["Verification"]},
    ])

    rows = history_grid.rows
    assert rows[0][3:] == ["Days waiting", "Days in verification"]
    assert [row[3:] for row in rows[5:]] == [[3, 0], [1, 1], [0, 0]]


def test_ingest_then_compute(metrics, grid):
    """A new snapshot gets counts that include the rows just ingested."""
    metrics.retained.ingest_snapshot([{"id": "rec1", "Stage": "Waiting"}], today=TODAY)
    metrics.add_computed_fields("2024-03-15", [
        {"name": "Days waiting", "source_field": "Stage", "match_values": ["Waiting"]},
    ])

    assert grid.rows == [
        ["id", "Name", "Stage", "Backup Date", "Days waiting"],
        ["rec1", "", "Waiting", "2024-03-15", 1],
    ]


def test_count_rows_where_compares_cell_text():
    """Numbers read back as floats still match their text form."""
    grid = MemoryGrid([
        ["id", "Priority", "Backup Date"],
        ["r1", 3.0, "2024-03-14"],
        ["r1", 3, "2024-03-15"],
        ["r2", "3", "2024-03-15"],
        ["r3", 30, "2024-03-15"],
    ])
    metrics = MetricStore(RetainedStore(TabularStore(grid), ["id", "Priority"]))

    assert metrics.count_rows_where("Priority", ["3"], "id") == {"r1": 2, "r2": 1}
    assert TabularStore(grid).find_rows_where("Priority", "3") == [2, 3, 4]


def test_count_rows_where_does_not_match_substrings():
    """Empty and partial values never count as a match."""
    grid = MemoryGrid([
        ["id", "Stage", "Backup Date"],
        ["r1", "", "2024-03-15"],
        ["r2", "Wait", "2024-03-15"],
    ])
    metrics = MetricStore(RetainedStore(TabularStore(grid), ["id", "Stage"]))

    metrics.compute_grouped_count("Days", "Stage", ["Waiting"], "id", "2024-03-15")

    assert [row[3] for row in grid.rows[1:]] == [0, 0]
