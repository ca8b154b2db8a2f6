from __future__ import annotations

import pytest

from subscriber.app.domain.batch import BatchFullError, DeletionBatch
from subscriber.app.domain.models import DeleteEntry


def test_sequence_ids_are_positions_in_batch():
    batch = DeletionBatch()
    for n in range(3):
        batch.add(f"rh-{n}")

    assert batch.entries == [
        DeleteEntry(id="0", receipt_handle="rh-0"),
        DeleteEntry(id="1", receipt_handle="rh-1"),
        DeleteEntry(id="2", receipt_handle="rh-2"),
    ]
    assert len(batch) == 3
    assert not batch.full


def test_batch_is_full_at_ten_and_refuses_more():
    batch = DeletionBatch()
    for n in range(10):
        batch.add(f"rh-{n}")

    assert batch.full
    with pytest.raises(BatchFullError):
        batch.add("rh-10")
    assert len(batch) == 10


def test_clear_restarts_sequence_ids():
    batch = DeletionBatch()
    batch.add("rh-a")
    batch.add("rh-b")
    batch.clear()

    assert not batch
    assert batch.add("rh-c").id == "0"


def test_entries_is_a_snapshot():
    batch = DeletionBatch()
    batch.add("rh-a")
    snapshot = batch.entries
    batch.clear()

    assert len(snapshot) == 1


@pytest.mark.parametrize("size", [0, 11])
def test_max_size_must_fit_queue_limit(size):
    with pytest.raises(ValueError):
        DeletionBatch(max_size=size)
