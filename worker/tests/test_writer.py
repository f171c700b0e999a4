import pytest

from soakmap.etl import writer


def test_chunk_splits_and_rejects_bad_size():
    assert list(writer.chunk([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError):
        list(writer.chunk([1], 0))


def _records(make_record, count):
    return [make_record(name=f"Spring {index}", lat=44.0 + index / 10) for index in range(count)]


def test_write_springs_in_batches(fake_store, make_record):
    result = writer.write_springs(_records(make_record, 5), fake_store, batch_size=2)

    assert (result.inserted, result.skipped, result.errors) == (5, 0, 0)
    assert fake_store.batch_calls == 3
    assert len(fake_store.rows) == 5


def test_write_springs_counts_existing_slugs_as_skipped(fake_store, make_record):
    records = _records(make_record, 3)
    fake_store.add_existing("Spring 1", 44.1, -122.173, slug=records[1].slug)

    result = writer.write_springs(records, fake_store)

    assert (result.inserted, result.skipped, result.errors) == (2, 1, 0)


def test_write_springs_falls_back_to_single_inserts(fake_store, make_record, caplog):
    records = _records(make_record, 5)
    fake_store.fail_batches = True
    fake_store.fail_slugs = {records[3].slug}

    result = writer.write_springs(records, fake_store, batch_size=5)

    assert result.inserted == 4
    assert result.errors == 1
    assert result.inserted + result.errors + result.skipped == len(records)
    assert fake_store.single_calls == 5
    assert "Spring 3" in caplog.text


def test_write_springs_dry_run_writes_nothing(fake_store, make_record, caplog):
    with caplog.at_level("INFO"):
        result = writer.write_springs(_records(make_record, 3), fake_store, dry_run=True)

    assert (result.inserted, result.skipped, result.errors) == (0, 0, 0)
    assert fake_store.batch_calls == 0
    assert fake_store.rows == []
    assert "Would insert 3 springs" in caplog.text
    assert '"slug": "spring-0-or"' in caplog.text
