from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from common.utils import coerce_order, parse_timestamp


Descriptor = Union[Mapping[str, Any], str]

# Keys that may carry the image reference, in priority order.
URL_KEYS = ("image_url", "url")
FILENAME_KEY = "filename"


def _clean_str(v: Any) -> Optional[str]:
    if not isinstance(v, str):
        return None
    v = v.strip()
    return v or None


@dataclass(slots=True)
class ImageRecord:
    """
    One normalized image, built fresh for each request.

    Attributes:
        filename: bare file name (folder scan, static table); may be None for upstream items.
        url: absolute or site-relative URL; may be None until decorated.
        caption, alt: display text; None until decorated.
        order: numeric sort key (missing / non-numeric -> 0).
        start_at, end_at: optional active window bounds (UTC datetimes).
        raw: the descriptor as received, returned unchanged by the proxy endpoint.
    """
    filename: Optional[str] = None
    url: Optional[str] = None
    caption: Optional[str] = None
    alt: Optional[str] = None
    order: float = 0.0
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_descriptor(cls, d: Mapping[str, Any]) -> "ImageRecord":
        if not isinstance(d, Mapping):
            raise TypeError(f"descriptor must be a mapping, got {type(d).__name__}")
        url = None
        for key in URL_KEYS:
            url = _clean_str(d.get(key))
            if url:
                break
        return cls(
            filename=_clean_str(d.get(FILENAME_KEY)),
            url=url,
            caption=_clean_str(d.get("caption")),
            alt=_clean_str(d.get("alt")),
            order=coerce_order(d.get("order")),
            start_at=parse_timestamp(d.get("start_at")),
            end_at=parse_timestamp(d.get("end_at")),
            raw=dict(d),
        )

    @property
    def reference(self) -> Optional[str]:
        """The resolvable image reference: URL first, then filename."""
        return self.url or self.filename

    def is_active(self, now: datetime) -> bool:
        """True when `now` falls in [start_at, end_at]; a missing bound is open."""
        if self.start_at is not None and self.start_at > now:
            return False
        if self.end_at is not None and self.end_at < now:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Carousel wire shape."""
        return {
            "url": self.url,
            "caption": self.caption,
            "alt": self.alt,
            "filename": self.filename,
        }
