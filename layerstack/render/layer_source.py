import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pyvips

from layerstack.render.vips_compat import decode_rgba_buffer
from layerstack.utils.errors import DecodeError, EmptySourceError, SourceAccessError

# Seeded once per process; every draw comes from this instance unless a
# generator is injected.
_RNG = random.Random()


@dataclass(frozen=True)
class LayerSource:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Layer:
    name: str
    pixels: pyvips.Image


def list_layer_items(source: LayerSource) -> list[Path]:
    """Return the non-directory entries of ``source`` in sorted order."""
    try:
        entries = sorted(source.path.iterdir(), key=lambda p: p.name)
        items = [entry for entry in entries if not entry.is_dir()]
    except OSError as exc:
        raise SourceAccessError(f"Cannot read layer source {source.path}: {exc}") from exc

    if not items:
        raise EmptySourceError(f"Layer source {source.path} has no layer items")
    return items


def read_random_layer(source: LayerSource, rng: Optional[random.Random] = None) -> Layer:
    items = list_layer_items(source)
    rng = rng or _RNG
    item = items[rng.randrange(len(items))]

    try:
        data = item.read_bytes()
    except OSError as exc:
        raise SourceAccessError(f"Cannot read layer item {item}: {exc}") from exc

    try:
        pixels = decode_rgba_buffer(data)
    except pyvips.Error as exc:
        raise DecodeError(f"Layer item {item} is not a valid image: {exc}") from exc

    logging.debug("🎲 picked %s from %s", item.name, source.name)
    return Layer(name=item.name, pixels=pixels)
