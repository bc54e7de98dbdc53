import datetime as dt
import json

import pytest

from fetch_site.ledger import (
    MetadataLedger,
    load_ledger,
    read_metadata_file,
    write_metadata_file,
)
from fetch_site.models import PageMetadata

HTML_V1 = '<a href="/x">x</a><a href="/y">y</a><img src="a.png">'
HTML_V2 = '<img src="a.png"><img src="b.png"><img src="c;d.png">'


def test_record_fetch_counts_and_increments(tmp_path):
    ledger = MetadataLedger(tmp_path / "meta.json")

    first = ledger.record_fetch("https://example.com", HTML_V1)
    assert (first.num_links, first.num_images, first.num_fetches) == (2, 1, 1)

    second = ledger.record_fetch("https://example.com", HTML_V2)
    assert (second.num_links, second.num_images, second.num_fetches) == (0, 3, 2)
    assert second.last_fetch >= first.last_fetch
    assert second.last_fetch.tzinfo is not None
    assert ledger.lookup("https://example.com") == second
    assert len(ledger) == 1


def test_record_fetch_snapshots_every_entry(tmp_path):
    path = tmp_path / "meta.json"
    ledger = MetadataLedger(path)
    ledger.record_fetch("https://a.example", HTML_V1)
    ledger.record_fetch("https://b.example", HTML_V2)

    records = json.loads(path.read_text())
    assert [r["url"] for r in records] == ["https://a.example", "https://b.example"]
    assert set(records[0]) == {"url", "num_links", "num_images", "last_fetch", "num_fetches"}
    assert records[0]["last_fetch"].endswith("Z")
    assert not path.with_suffix(".json.tmp").exists()


def test_lookup_unknown_url(tmp_path):
    ledger = MetadataLedger(tmp_path / "meta.json")
    assert ledger.lookup("https://nowhere.example") is None
    assert "https://nowhere.example" not in ledger
    assert not (tmp_path / "meta.json").exists()


def test_counts_survive_reload(tmp_path):
    path = tmp_path / "meta.json"
    ledger = MetadataLedger(path)
    ledger.record_fetch("https://example.com", HTML_V1)
    ledger.record_fetch("https://example.com", HTML_V1)

    reloaded = load_ledger(path)
    entry = reloaded.lookup("https://example.com")
    assert entry.num_fetches == 2
    assert reloaded.record_fetch("https://example.com", HTML_V1).num_fetches == 3


def test_missing_file_is_created_empty(tmp_path):
    path = tmp_path / "meta.json"
    ledger = load_ledger(path)
    assert len(ledger) == 0
    assert json.loads(path.read_text()) == []


def test_unparsable_file_gives_empty_ledger(tmp_path, caplog):
    path = tmp_path / "meta.json"
    path.write_text("{not json")
    ledger = load_ledger(path)
    assert len(ledger) == 0
    assert "Reading metadata file error" in caplog.text


def test_non_array_document_gives_empty_ledger(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text('{"url": "https://example.com"}')
    assert len(load_ledger(path)) == 0


def test_malformed_records_are_skipped(tmp_path):
    path = tmp_path / "meta.json"
    good = {
        "url": "https://example.com",
        "num_links": 4,
        "num_images": 2,
        "last_fetch": "2024-03-01T10:00:00.000Z",
        "num_fetches": 3,
    }
    path.write_text(
        json.dumps([good, {"url": "https://broken.example"}, "junk", dict(good, url="https://zero.example", num_fetches=0)])
    )
    ledger = load_ledger(path)
    assert len(ledger) == 1
    entry = ledger.lookup("https://example.com")
    assert entry.last_fetch == dt.datetime(2024, 3, 1, 10, tzinfo=dt.timezone.utc)


def test_failed_snapshot_keeps_increment(tmp_path, caplog):
    path = tmp_path / "meta.json"
    path.mkdir()
    ledger = MetadataLedger(path)

    entry = ledger.record_fetch("https://example.com", HTML_V1)

    assert entry.num_fetches == 1
    assert ledger.lookup("https://example.com") is entry
    assert "Failed to save metadata" in caplog.text


def test_raw_file_round_trip(tmp_path):
    path = tmp_path / "nested" / "meta.json"
    entry = PageMetadata(
        url="https://example.com",
        num_links=1,
        num_images=0,
        last_fetch=dt.datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=dt.timezone.utc),
        num_fetches=5,
    )
    write_metadata_file(path, [entry])
    assert read_metadata_file(path) == [
        {
            "url": "https://example.com",
            "num_links": 1,
            "num_images": 0,
            "last_fetch": "2024-01-02T03:04:05.678Z",
            "num_fetches": 5,
        }
    ]


@pytest.mark.parametrize(
    "stamp, expected",
    [
        ("2024-03-01T10:00:00.000Z", dt.datetime(2024, 3, 1, 10, tzinfo=dt.timezone.utc)),
        ("2024-03-01T10:00:00.1234Z", dt.datetime(2024, 3, 1, 10, 0, 0, 123400, tzinfo=dt.timezone.utc)),
        ("20240301T100000Z", dt.datetime(2024, 3, 1, 10, tzinfo=dt.timezone.utc)),
        ("2024-03-01T12:00:00+02:00", dt.datetime(2024, 3, 1, 10, tzinfo=dt.timezone.utc)),
        ("2024-03-01T10:00:00", dt.datetime(2024, 3, 1, 10, tzinfo=dt.timezone.utc)),
    ],
)
def test_iso_timestamp_forms_are_loaded(tmp_path, stamp, expected):
    path = tmp_path / "meta.json"
    path.write_text(
        json.dumps(
            [
                {
                    "url": "https://example.com",
                    "num_links": 0,
                    "num_images": 0,
                    "last_fetch": stamp,
                    "num_fetches": 1,
                }
            ]
        )
    )
    assert load_ledger(path).lookup("https://example.com").last_fetch == expected
