from __future__ import annotations

"""
Image list aggregation: raw descriptors -> filtered, ordered, decorated records.

    load      source.load(selection)            (gallery.sources.ImageSource)
    filter    drop entries without an image reference or outside their window
    order     "order" | "natural" | "shuffle"
    decorate  caption/alt/url fallbacks

Each call works on fresh records; nothing is shared between requests.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional
from urllib.parse import unquote

from common.types import ImageRecord
from common.utils import caption_from_filename, natural_sort_key
from gallery.image_folder import join_url
from gallery.sources import ImageSource


log = logging.getLogger(__name__)

ORDERINGS = ("order", "natural", "shuffle")


def normalize(descriptors: Iterable[object]) -> List[ImageRecord]:
    """Build records, skipping descriptors that are not mappings or have no image reference."""
    out: List[ImageRecord] = []
    skipped = 0
    for d in descriptors:
        if not d:
            skipped += 1
            continue
        try:
            rec = ImageRecord.from_descriptor(d)  # type: ignore[arg-type]
        except TypeError:
            skipped += 1
            continue
        if not rec.reference:
            skipped += 1
            continue
        out.append(rec)
    if skipped:
        log.debug("Skipped %d descriptors without an image reference", skipped)
    return out


def filter_active(records: Iterable[ImageRecord], now: Optional[datetime] = None) -> List[ImageRecord]:
    now = now or datetime.now(timezone.utc)
    return [r for r in records if r.is_active(now)]


def sort_records(
    records: List[ImageRecord],
    ordering: str = "order",
    rng: Optional[random.Random] = None,
) -> List[ImageRecord]:
    """
    "order":   stable sort by the numeric `order` field (missing -> 0)
    "natural": numeric-aware filename order, 1 < 2 < 10
    "shuffle": random permutation; pass a seeded `rng` for a reproducible one
    """
    if ordering == "order":
        return sorted(records, key=lambda r: r.order)
    if ordering == "natural":
        return sorted(records, key=lambda r: natural_sort_key(r.filename or r.url or ""))
    if ordering == "shuffle":
        out = list(records)
        (rng or random.Random()).shuffle(out)
        return out
    raise ValueError(f"unknown ordering {ordering!r}; expected one of {ORDERINGS}")


def decorate(
    records: Iterable[ImageRecord],
    captions: Optional[Mapping[str, str]] = None,
    base_url: Optional[str] = None,
) -> List[ImageRecord]:
    """
    Fill display fields in place:
      caption: explicit value, else captions[filename], else derived from the file name
      alt:     explicit value, else the caption
      url:     explicit value, else base_url + filename (when base_url is given)
    """
    captions = captions or {}
    out: List[ImageRecord] = []
    for r in records:
        name = r.filename or (unquote(r.url.rsplit("/", 1)[-1].split("?", 1)[0]) if r.url else "")
        if not r.caption:
            r.caption = captions.get(r.filename or "") or captions.get(name) or caption_from_filename(name)
        if not r.alt:
            r.alt = r.caption
        if not r.url and r.filename and base_url is not None:
            r.url = join_url(base_url, r.filename)
        out.append(r)
    return out


def aggregate(
    source: ImageSource,
    *,
    selection: Optional[str] = None,
    ordering: str = "order",
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    captions: Optional[Mapping[str, str]] = None,
    base_url: Optional[str] = None,
    with_decoration: bool = True,
) -> List[ImageRecord]:
    """
    Full pipeline. Source failures (RetrievalError / UnexpectedError) propagate to
    the caller; an empty list is a normal result.
    """
    if ordering not in ORDERINGS:
        raise ValueError(f"unknown ordering {ordering!r}; expected one of {ORDERINGS}")
    raw = source.load(selection)
    records = filter_active(normalize(raw), now=now)
    records = sort_records(records, ordering=ordering, rng=rng)
    if with_decoration:
        records = decorate(records, captions=captions, base_url=base_url)
    log.info(
        "Aggregated image list",
        extra={"extra": {"source": type(source).__name__, "set": selection, "in": len(raw), "out": len(records)}},
    )
    return records
