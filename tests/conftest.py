import os
from pathlib import Path

import pytest
import pyvips


def solid_image(width: int, height: int, rgba) -> pyvips.Image:
    return (
        pyvips.Image.black(width, height)
        .new_from_image(list(rgba))
        .cast("uchar")
        .copy(interpretation="srgb")
    )


@pytest.fixture
def make_image():
    return solid_image


@pytest.fixture
def write_png():
    def _write(path: Path, width: int = 4, height: int = 4, rgba=(255, 0, 0, 255)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        solid_image(width, height, rgba).write_to_file(str(path))
        return path

    return _write


@pytest.fixture
def layer_dirs(tmp_path, write_png):
    """Two sources: backgrounds {A, B} and overlays {X, Y}."""
    backgrounds = tmp_path / "layers" / "1_background"
    overlays = tmp_path / "layers" / "2_overlay"
    write_png(backgrounds / "A.png", rgba=(255, 0, 0, 255))
    write_png(backgrounds / "B.png", rgba=(0, 255, 0, 255))
    write_png(overlays / "X.png", rgba=(0, 0, 255, 128))
    write_png(overlays / "Y.png", rgba=(255, 255, 255, 64))
    return [backgrounds, overlays]


@pytest.fixture
def clean_env(monkeypatch):
    """Start without generator variables and drop whatever a test loads from .env."""
    names = {
        "DIR1",
        "DIR2",
        "NFT_COUNT",
        "OUTPUT_DIR",
        "SAVE_WORKERS",
        "SAVE_MAX_PENDING",
        "STORAGE_BACKEND",
        "CONTINUE_ON_ERROR",
        "VIPS_THREADS",
    }
    names.update(name for name in os.environ if name.startswith("DIR"))
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
