import logging
from pathlib import Path
from typing import Iterable

from layerstack.render.layer_source import LayerSource, list_layer_items
from layerstack.utils.errors import SourceAccessError


def prepare_output_dir(output_dir: str | Path) -> Path:
    """Create a fresh output directory; an existing one is never reused."""
    path = Path(output_dir)
    if path.exists():
        raise FileExistsError(f"Output directory '{path}' already exists")

    path.mkdir(parents=True)
    logging.info("📁 Output directory created: %s", path)
    return path


def validate_sources(sources: Iterable[str | Path]) -> list[LayerSource]:
    """Check every source up front so a bad one fails before any image is written."""
    layer_sources = []
    for raw in sources:
        path = Path(raw)
        if not path.is_dir():
            raise SourceAccessError(f"Layer source is not a directory: {path}")
        source = LayerSource(path)
        items = list_layer_items(source)
        logging.info("🗂️ Layer source %s: %s items", source.name, len(items))
        layer_sources.append(source)
    return layer_sources
