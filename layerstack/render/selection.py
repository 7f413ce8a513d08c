import random
from typing import Callable, Optional, Sequence

from layerstack.render.layer_source import Layer, LayerSource, read_random_layer

LayerReader = Callable[[LayerSource, Optional[random.Random]], Layer]


def assemble_composition(
    sources: Sequence[LayerSource],
    rng: Optional[random.Random] = None,
    reader: LayerReader = read_random_layer,
) -> list[Layer]:
    """Pick one layer per source, bottom-most source first.

    Reader errors propagate untouched; a unit that fails half-way leaves
    nothing behind.
    """
    if not sources:
        raise ValueError("At least one layer source is required")

    return [reader(source, rng) for source in sources]
