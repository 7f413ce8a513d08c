import logging
from pathlib import Path


def _resolve_path(root: Path, key: str) -> Path:
    path = (root / key).resolve()
    if root.resolve() not in path.parents:
        raise ValueError(f"Key escapes output root: {key}")
    return path


def write_bytes(root: Path, key: str, data: bytes, content_type: str = "application/octet-stream"):
    dest = _resolve_path(root, key)
    dest.parent.mkdir(parents=True, exist_ok=True)
    _ = content_type  # unused locally, kept so every backend shares one signature

    try:
        with open(dest, "wb") as dst:
            dst.write(data)
        logging.info(f"💾 Saved locally: {dest}")
    except OSError as e:
        logging.error(f"❌ Failed to save {key}: {e}")
        raise


def make_writer(root: str | Path):
    root = Path(root)

    def _writer(key: str, data: bytes, content_type: str):
        write_bytes(root, key, data, content_type)

    return _writer
