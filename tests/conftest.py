"""Shared fixtures for the backup store tests."""

from datetime import date

import pytest

from sheet_grid import MemoryGrid
from sheet_store import MetricStore, RetainedStore, TabularStore

TODAY = date(2024, 3, 15)


@pytest.fixture
def grid():
    """A blank in-memory grid."""
    return MemoryGrid()


@pytest.fixture
def store(grid):
    return TabularStore(grid)


@pytest.fixture
def retained(store):
    return RetainedStore(store, ["id", "Name", "Stage"])


@pytest.fixture
def metrics(retained):
    return MetricStore(retained)


class RecordingGrid(MemoryGrid):
    """A MemoryGrid that remembers the row deletions it was asked to perform."""

    def __init__(self, rows=None):
        super().__init__(rows)
        self.deleted_batches = []

    def delete_rows(self, start_row, count):
        self.deleted_batches.append((start_row, count))
        super().delete_rows(start_row, count)
