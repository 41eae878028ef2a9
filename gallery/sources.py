from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from common.types import FILENAME_KEY, Descriptor


class ImageSource(Protocol):
    """
    Anything that can hand the aggregator a list of raw descriptors.

    Implemented by StaticSource (config table), gallery.image_folder.ImageFolder
    (directory scan) and gallery.header_images.HeaderImagesService (upstream API).
    `selection` names a set for sources that have them; others ignore it.
    """

    def load(self, selection: Optional[str] = None) -> List[Descriptor]: ...


class StaticSource:
    """
    In-memory table, injected from configuration instead of living in module globals.
    Entries are mappings or bare filenames (`- a.jpg` in YAML).
    """

    def __init__(self, items: Sequence[Descriptor] = ()):
        self._items = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def load(self, selection: Optional[str] = None) -> List[Descriptor]:
        # copy so one request's decoration never leaks into the next
        out: List[Descriptor] = []
        for i in self._items:
            if isinstance(i, str):
                out.append({FILENAME_KEY: i})
            elif isinstance(i, dict):
                out.append(dict(i))
            else:
                out.append(i)
        return out
