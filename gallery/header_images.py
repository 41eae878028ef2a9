from __future__ import annotations

"""
Upstream header-images provider.

The upstream is a JSON endpoint returning an array of image items, e.g.

    [
      {"image_url": "https://cdn/x.jpg", "order": 2, "start_at": "2026-01-01T00:00:00Z"},
      {"image_url": "https://cdn/y.jpg", "order": 1, "end_at": 1767225600000}
    ]

Items are returned exactly as received; filtering and ordering happen in
gallery.aggregator.

Usage:
    svc = HeaderImagesService(url="https://api.example.com/header_images")
    items = svc.load("homepage")   # GET ...?set=homepage
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from common.types import Descriptor
from gallery.errors import RetrievalError, UnexpectedError


log = logging.getLogger(__name__)


class HeaderImagesService:
    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Params:
            url: upstream JSON endpoint; may be None, in which case every load fails
            timeout: seconds for connect/read on the upstream request
            session: optional requests.Session for connection reuse (and tests)
        """
        self.url = url
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def build_url(self, selection: Optional[str] = None) -> str:
        """Upstream URL with `set=<selection>` merged into any existing query string."""
        if not self.url:
            raise RetrievalError("Upstream header images URL is not configured")
        if not selection:
            return self.url
        parts = urlsplit(self.url)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "set"]
        query.append(("set", selection))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def load(self, selection: Optional[str] = None) -> List[Descriptor]:
        url = self.build_url(selection)
        try:
            r = self.session.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("Header images request failed: %s", e)
            raise RetrievalError(f"Upstream request failed: {e}") from e

        if not (200 <= r.status_code < 300):
            body = r.text or ""
            log.warning("Header images upstream returned %s: %s", r.status_code, body[:200])
            raise RetrievalError(
                f"Upstream returned HTTP {r.status_code}",
                status_code=r.status_code,
                context={"upstream_status": r.status_code, "upstream_body": body[:1000]},
            )

        try:
            data: Any = r.json()
        except ValueError as e:
            raise UnexpectedError("Upstream returned a non-JSON body") from e

        if not isinstance(data, list):
            log.info("Header images upstream returned %s, not a list", type(data).__name__)
            return []
        return data

    def describe(self) -> Dict[str, Any]:
        return {"configured": self.configured, "timeout_s": self.timeout}
