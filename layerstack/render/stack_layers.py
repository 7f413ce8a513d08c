import logging
from typing import Sequence

import pyvips

from layerstack.render.layer_source import Layer
from layerstack.render.vips_compat import ensure_rgba8, fit_to_canvas


def composite_layers(composition: Sequence[Layer]) -> pyvips.Image:
    """Alpha-blend ``composition`` bottom-up onto the bottom layer's canvas.

    Upper layers are placed at the origin and clipped to the canvas bounds.
    """
    if not composition:
        raise ValueError("Cannot composite an empty layer list")

    base = ensure_rgba8(composition[0].pixels).copy_memory()
    width, height = base.width, base.height

    for layer in composition[1:]:
        overlay = fit_to_canvas(ensure_rgba8(layer.pixels), width, height)
        base = base.composite2(overlay, "over").cast("uchar")

    logging.debug("🧱 stacked %s layers: %s", len(composition), (width, height))
    return base.copy_memory()
