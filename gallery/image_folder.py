from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from common.types import Descriptor
from common.utils import natural_sort_key
from gallery.errors import RetrievalError


log = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff")


def join_url(base_url: str, filename: str) -> str:
    """'/images' + 'a b.png' -> '/images/a%20b.png'"""
    return f"{base_url.rstrip('/')}/{quote(filename)}"


@dataclass(frozen=True)
class ImageFileInfo:
    """Per-file details served by /api/images/details."""
    filename: str
    size: int
    modified: datetime
    extension: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "size": self.size,
            "modified": self.modified.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "extension": self.extension,
            "url": self.url,
            "width": self.width,
            "height": self.height,
        }


class ImageFolder:
    """
    Flat images directory served to the carousel.

        root/
          ├─ 1.png
          ├─ 2.jpg
          └─ notes.txt   (ignored: not an image extension)

    The directory is created on first scan if it does not exist. Every call
    re-reads the directory; nothing is cached between requests.
    """

    def __init__(
        self,
        root: str = "./public/images",
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        base_url: str = "/images",
        max_workers: int = 8,
    ):
        self.root = Path(root)
        self.extensions = tuple(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)
        self.base_url = base_url
        self.max_workers = max(1, int(max_workers))

    # -------- public API --------

    def is_image_file(self, filename: str) -> bool:
        return os.path.splitext(filename)[1].lower() in self.extensions

    def url_for(self, filename: str) -> str:
        return join_url(self.base_url, filename)

    def scan(self) -> List[str]:
        """Image filenames in natural order (1, 2, 10 rather than 1, 10, 2)."""
        try:
            if not self.root.exists():
                log.info("Creating images folder: %s", self.root)
                self.root.mkdir(parents=True, exist_ok=True)
            names = [p.name for p in self.root.iterdir() if p.is_file() and self.is_image_file(p.name)]
        except OSError as e:
            log.error("Error scanning images folder %s: %s", self.root, e)
            raise RetrievalError(str(e), context={"folder": str(self.root)}) from e

        names.sort(key=natural_sort_key)
        log.debug("Scanned %s", self.root, extra={"extra": {"count": len(names)}})
        return names

    def load(self, selection: Optional[str] = None) -> List[Descriptor]:
        # folders have no named sets; `selection` is accepted for the ImageSource protocol
        return [{"filename": name} for name in self.scan()]

    def details(self) -> List[ImageFileInfo]:
        """
        Stat every scanned file on a thread pool. `Executor.map` yields results in
        submission order, so the output keeps the scan order.
        """
        names = self.scan()
        if not names:
            return []
        try:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as pool:
                return list(pool.map(self._file_info, names))
        except OSError as e:
            log.error("Error reading image details in %s: %s", self.root, e)
            raise RetrievalError(str(e), context={"folder": str(self.root)}) from e

    # -------- internals --------

    def _file_info(self, filename: str) -> ImageFileInfo:
        path = self.root / filename
        st = path.stat()
        width, height = self._dimensions(path)
        return ImageFileInfo(
            filename=filename,
            size=int(st.st_size),
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            extension=path.suffix,
            url=self.url_for(filename),
            width=width,
            height=height,
        )

    @staticmethod
    def _dimensions(path: Path) -> Tuple[Optional[int], Optional[int]]:
        # Image.open only parses the header; pixel data is never decoded here
        try:
            with Image.open(path) as im:
                w, h = im.size
            return int(w), int(h)
        except (UnidentifiedImageError, OSError):
            return None, None
