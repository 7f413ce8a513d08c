from __future__ import annotations

import logging

import pyvips

logger = logging.getLogger(__name__)

# Decoded colour spaces that must go through sRGB before bands are reshaped.
_CONVERT_TO_SRGB = ("cmyk", "lab", "labs", "lch", "cmc", "xyz", "yxy", "scrgb", "hsv")


def set_vips_concurrency(threads: int) -> None:
    """Set the libvips worker thread count; 0 keeps the libvips default."""
    if threads <= 0:
        return
    try:
        pyvips.vips_lib.vips_concurrency_set(threads)
    except AttributeError:
        logger.warning("pyvips concurrency API unavailable, keeping libvips default")
        return
    logger.info("Configured libvips concurrency: %s threads", threads)


def ensure_rgba8(img: pyvips.Image) -> pyvips.Image:
    if img.interpretation in _CONVERT_TO_SRGB:
        img = img.colourspace("srgb")
    if img.format == "ushort":
        img = (img / 256).cast("uchar")
    if img.bands == 1:
        img = img.bandjoin([img, img]).bandjoin_const(255)
    elif img.bands == 2:
        gray = img.extract_band(0)
        alpha = img.extract_band(1)
        img = gray.bandjoin([gray, gray, alpha])
    elif img.bands == 3:
        img = img.bandjoin_const(255)
    else:
        img = img.extract_band(0, n=4)
    return img.cast("uchar").copy(interpretation="srgb")


def decode_rgba_buffer(data: bytes) -> pyvips.Image:
    """Decode raster bytes fully into memory as 8-bit RGBA.

    libvips is lazy, so the pixels are materialised here; a truncated or
    corrupt image fails on this call instead of later inside a save worker.
    """
    img = pyvips.Image.new_from_buffer(data, "", access="sequential", fail_on="truncated")
    return ensure_rgba8(img).copy_memory()


def fit_to_canvas(img: pyvips.Image, width: int, height: int) -> pyvips.Image:
    """Clip or pad ``img`` to ``width`` x ``height`` anchored at the origin, never resizing."""
    if img.width == width and img.height == height:
        return img
    if img.width > width or img.height > height:
        img = img.crop(0, 0, min(img.width, width), min(img.height, height))
    if img.width < width or img.height < height:
        img = img.embed(0, 0, width, height, extend="background", background=[0, 0, 0, 0])
    return img


def encode_png(img: pyvips.Image) -> bytes:
    return img.write_to_buffer(".png")
