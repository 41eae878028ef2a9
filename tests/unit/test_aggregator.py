"""
Unit tests for the image list aggregator
"""

import os
import random
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import ImageRecord
from gallery.aggregator import aggregate, decorate, filter_active, normalize, sort_records
from gallery.errors import RetrievalError
from gallery.sources import StaticSource

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _iso(dt):
    return dt.isoformat().replace("+00:00", "Z")


def _files(*names):
    return normalize([{"filename": n} for n in names])


class TestNormalize:
    """Descriptor -> ImageRecord, dropping unusable entries"""

    def test_reference_keys(self):
        recs = normalize([
            {"image_url": "https://cdn/a.jpg"},
            {"url": "/images/b.jpg"},
            {"filename": "c.jpg"},
        ])
        assert [r.reference for r in recs] == ["https://cdn/a.jpg", "/images/b.jpg", "c.jpg"]

    def test_bare_strings_dropped(self):
        """Only mappings are descriptors; sources wrap bare filenames themselves"""
        recs = normalize(["x.jpg", {"image_url": "https://cdn/a.jpg"}])
        assert [r.reference for r in recs] == ["https://cdn/a.jpg"]

    def test_drops_entries_without_reference(self):
        recs = normalize([
            {"caption": "no image"},
            {"image_url": ""},
            {"image_url": "   "},
            None,
            {},
            42,
            {"image_url": "https://cdn/ok.jpg"},
        ])
        assert len(recs) == 1
        assert recs[0].url == "https://cdn/ok.jpg"

    def test_raw_is_preserved(self):
        d = {"image_url": "https://cdn/a.jpg", "order": 1, "link": "/shop"}
        rec = normalize([d])[0]
        assert rec.raw == d


class TestFilterActive:
    """Active window [start_at, end_at] against the current time"""

    def test_past_end_excluded(self):
        recs = normalize([{"filename": "old.jpg", "end_at": _iso(NOW - timedelta(days=1))}])
        assert filter_active(recs, now=NOW) == []

    def test_future_start_excluded(self):
        recs = normalize([{"filename": "soon.jpg", "start_at": _iso(NOW + timedelta(hours=1))}])
        assert filter_active(recs, now=NOW) == []

    def test_no_window_always_included(self):
        recs = normalize([{"filename": "always.jpg"}])
        assert [r.filename for r in filter_active(recs, now=NOW)] == ["always.jpg"]

    def test_inside_window_included(self):
        recs = normalize([{
            "filename": "now.jpg",
            "start_at": _iso(NOW - timedelta(days=1)),
            "end_at": _iso(NOW + timedelta(days=1)),
        }])
        assert len(filter_active(recs, now=NOW)) == 1

    def test_bounds_are_inclusive(self):
        recs = normalize([{"filename": "edge.jpg", "start_at": _iso(NOW), "end_at": _iso(NOW)}])
        assert len(filter_active(recs, now=NOW)) == 1

    def test_epoch_millis_bound(self):
        past_ms = int((NOW - timedelta(minutes=5)).timestamp() * 1000)
        recs = normalize([{"filename": "ms.jpg", "end_at": past_ms}])
        assert filter_active(recs, now=NOW) == []

    def test_unparseable_bound_is_open(self):
        recs = normalize([{"filename": "junk.jpg", "end_at": "whenever"}])
        assert len(filter_active(recs, now=NOW)) == 1


class TestSortRecords:
    """order / natural / shuffle"""

    def test_order_field_non_decreasing(self):
        recs = normalize([
            {"filename": "c.jpg", "order": 3},
            {"filename": "a.jpg"},
            {"filename": "b.jpg", "order": -1},
            {"filename": "d.jpg", "order": "2"},
        ])
        out = sort_records(recs, "order")
        orders = [r.order for r in out]
        assert orders == sorted(orders)
        assert [r.filename for r in out] == ["b.jpg", "a.jpg", "d.jpg", "c.jpg"]

    def test_order_is_stable(self):
        recs = normalize([{"filename": n} for n in ["z.jpg", "y.jpg", "x.jpg"]])
        assert [r.filename for r in sort_records(recs, "order")] == ["z.jpg", "y.jpg", "x.jpg"]

    def test_natural(self):
        recs = _files("1.png", "10.png", "2.png")
        assert [r.filename for r in sort_records(recs, "natural")] == ["1.png", "2.png", "10.png"]

    def test_seeded_shuffle_is_reproducible(self):
        names = [f"{i}.jpg" for i in range(20)]
        a = sort_records(_files(*names), "shuffle", rng=random.Random(7))
        b = sort_records(_files(*names), "shuffle", rng=random.Random(7))
        assert [r.filename for r in a] == [r.filename for r in b]
        assert sorted(r.filename for r in a) == sorted(names)

    def test_unknown_ordering(self):
        with pytest.raises(ValueError, match="unknown ordering"):
            sort_records([], "alphabetical")


class TestDecorate:
    """Caption / alt / url fallbacks"""

    def test_caption_from_filename(self):
        rec = decorate(_files("Bronco-Roger-Simmons.jpg"))[0]
        assert rec.caption == "Bronco Roger Simmons"
        assert rec.alt == "Bronco Roger Simmons"

    def test_caption_table_wins_over_derived(self):
        rec = decorate(_files("IMG_0001.jpg"), captions={"IMG_0001.jpg": "Opening night"})[0]
        assert rec.caption == "Opening night"

    def test_explicit_caption_and_alt_kept(self):
        rec = decorate(
            normalize([{"filename": "a.jpg", "caption": "Own caption", "alt": "Own alt"}]),
            captions={"a.jpg": "Table caption"},
        )[0]
        assert (rec.caption, rec.alt) == ("Own caption", "Own alt")

    def test_url_built_from_base(self):
        rec = decorate(_files("My Photo.jpg"), base_url="/images/")[0]
        assert rec.url == "/images/My%20Photo.jpg"

    def test_url_only_record_gets_caption_from_url(self):
        rec = decorate(normalize([{"image_url": "https://cdn.example.com/hdr/Main-Stage.png?v=3"}]))[0]
        assert rec.caption == "Main Stage"
        assert rec.filename is None

    def test_url_caption_is_unquoted(self):
        rec = decorate(normalize([{"image_url": "https://cdn.example.com/Main%20Stage%20Night.png"}]))[0]
        assert rec.caption == "Main Stage Night"


class TestAggregate:
    """Full pipeline over an ImageSource"""

    def test_static_source(self):
        src = StaticSource([
            {"filename": "b.jpg", "order": 2},
            {"filename": "gone.jpg", "order": 0, "end_at": "2000-01-01T00:00:00Z"},
            {"filename": "a.jpg", "order": 1},
            {"caption": "missing image"},
        ])
        out = aggregate(src, ordering="order", now=NOW, base_url="/images")
        assert [r.to_dict() for r in out] == [
            {"url": "/images/a.jpg", "caption": "a", "alt": "a", "filename": "a.jpg"},
            {"url": "/images/b.jpg", "caption": "b", "alt": "b", "filename": "b.jpg"},
        ]

    def test_empty_source_is_not_an_error(self):
        assert aggregate(StaticSource([]), now=NOW) == []

    def test_selection_passed_to_source(self):
        src = Mock()
        src.load.return_value = [{"image_url": "https://cdn/a.jpg"}]
        out = aggregate(src, selection="homepage", now=NOW, with_decoration=False)
        src.load.assert_called_once_with("homepage")
        assert out[0].caption is None

    def test_source_failure_propagates(self):
        src = Mock()
        src.load.side_effect = RetrievalError("down", status_code=503)
        with pytest.raises(RetrievalError):
            aggregate(src, now=NOW)

    def test_static_source_wraps_bare_filenames(self):
        out = aggregate(StaticSource(["b.jpg", {"filename": "a.jpg", "order": -1}]), now=NOW, base_url="/images")
        assert [r.filename for r in out] == ["a.jpg", "b.jpg"]
        assert out[1].url == "/images/b.jpg"

    def test_static_source_copies_items(self):
        """Decoration must not leak into the configured table"""
        table = [{"filename": "a.jpg"}]
        aggregate(StaticSource(table), now=NOW, base_url="/images")
        assert table == [{"filename": "a.jpg"}]


class TestImageRecord:
    def test_rejects_non_mapping(self):
        with pytest.raises(TypeError):
            ImageRecord.from_descriptor(3.5)
        with pytest.raises(TypeError):
            ImageRecord.from_descriptor("x.jpg")
