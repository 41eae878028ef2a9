from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from gallery.image_folder import DEFAULT_EXTENSIONS


DEFAULT_CONFIG_PATH = "config/gallery.yaml"

DEFAULTS: Dict[str, Any] = {
    "images": {
        "folder": "./public/images",
        "base_url": "/images",
        "extensions": list(DEFAULT_EXTENSIONS),
        "stat_workers": 8,
    },
    "upstream": {
        "url": None,
        "timeout_s": 10.0,
        "allow_origin": "https://streamofdan.com",
        "cache_control": "public, max-age=60, stale-while-revalidate=600",
    },
    "carousel": {
        "images": [],
        "captions": {},
        "shuffle": True,
        "shuffle_seed": None,
        "fallback": {
            "filename": "fallback.jpg",
            "caption": "Featured image",
        },
    },
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "cors_origins": ["*"],
    },
}

# env var -> (section, key, caster)
ENV_OVERRIDES: Tuple[Tuple[str, str, str, Any], ...] = (
    ("IMAGES_FOLDER", "images", "folder", str),
    ("IMAGES_BASE_URL", "images", "base_url", str),
    ("HEADER_IMAGES_URL", "upstream", "url", str),
    ("PORT", "server", "port", int),
)


@dataclass
class Settings:
    images_folder: str = DEFAULTS["images"]["folder"]
    images_base_url: str = DEFAULTS["images"]["base_url"]
    image_extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    stat_workers: int = 8
    upstream_url: Optional[str] = None
    upstream_timeout_s: float = 10.0
    upstream_allow_origin: str = DEFAULTS["upstream"]["allow_origin"]
    upstream_cache_control: str = DEFAULTS["upstream"]["cache_control"]
    carousel_images: List[Any] = field(default_factory=list)
    carousel_captions: Dict[str, str] = field(default_factory=dict)
    carousel_shuffle: bool = True
    carousel_shuffle_seed: Optional[int] = None
    carousel_fallback: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULTS["carousel"]["fallback"]))
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_dict(cls, P: Dict[str, Any]) -> "Settings":
        images = P.get("images", {}) or {}
        upstream = P.get("upstream", {}) or {}
        carousel = P.get("carousel", {}) or {}
        server = P.get("server", {}) or {}
        seed = carousel.get("shuffle_seed")
        return cls(
            images_folder=str(images.get("folder", DEFAULTS["images"]["folder"])),
            images_base_url=str(images.get("base_url", DEFAULTS["images"]["base_url"])),
            image_extensions=tuple(images.get("extensions") or DEFAULT_EXTENSIONS),
            stat_workers=int(images.get("stat_workers", 8)),
            upstream_url=upstream.get("url") or None,
            upstream_timeout_s=float(upstream.get("timeout_s", 10.0)),
            upstream_allow_origin=str(upstream.get("allow_origin", DEFAULTS["upstream"]["allow_origin"])),
            upstream_cache_control=str(upstream.get("cache_control", DEFAULTS["upstream"]["cache_control"])),
            carousel_images=list(carousel.get("images") or []),
            carousel_captions={str(k): str(v) for k, v in (carousel.get("captions") or {}).items()},
            carousel_shuffle=bool(carousel.get("shuffle", True)),
            carousel_shuffle_seed=None if seed is None else int(seed),
            carousel_fallback=dict(carousel.get("fallback") or DEFAULTS["carousel"]["fallback"]),
            host=str(server.get("host", "0.0.0.0")),
            port=int(server.get("port", 3000)),
            cors_origins=list(server.get("cors_origins") or ["*"]),
        )


def _merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (over or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    YAML file merged over DEFAULTS; a missing file means pure defaults.
    Path precedence: explicit `path`, env GALLERY_CONFIG, config/gallery.yaml.
    """
    path = path or os.environ.get("GALLERY_CONFIG") or DEFAULT_CONFIG_PATH
    if not Path(path).exists():
        return copy.deepcopy(DEFAULTS)
    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return _merge(DEFAULTS, loaded)


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """Config file, then environment overrides (IMAGES_FOLDER, HEADER_IMAGES_URL, PORT, ...)."""
    P = _load_config(path)
    env = os.environ if environ is None else environ
    for var, section, key, cast in ENV_OVERRIDES:
        val = env.get(var)
        if val:
            P.setdefault(section, {})[key] = cast(val)
    return Settings.from_dict(P)
