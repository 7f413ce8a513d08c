"""
Storage backend factory.
Returns the write function used by the image save queue.

Backends:
- "local" (default): files under the output directory
- "r2": objects under the output prefix in the configured R2 bucket
"""
import logging

STORAGE_BACKENDS = ("local", "r2")


def get_writer(backend: str, destination: str):
    logging.info(f"📂 Storage backend: {backend}")

    if backend == "local":
        from layerstack.storage.storage_local import make_writer
    elif backend == "r2":
        from layerstack.storage.storage_r2 import make_writer
    else:
        raise ValueError(
            f"Unknown storage backend '{backend}', expected one of {STORAGE_BACKENDS}"
        )

    return make_writer(destination)
