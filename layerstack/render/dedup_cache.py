import logging
from typing import Callable, Optional, Sequence

import pyvips

from layerstack.render.layer_source import Layer

CompositionKey = tuple[str, ...]


def key_of(composition: Sequence[Layer]) -> CompositionKey:
    return tuple(layer.name for layer in composition)


def key_label(key: CompositionKey) -> str:
    """Human-readable form of a key, for log lines only."""
    return "-".join(key)


class DeduplicationCache:
    """Composite images by ordered layer names, for one batch run.

    Entries are never evicted. The cache is owned by the control thread;
    save workers only ever see the images, never the mapping.
    """

    def __init__(self):
        self._entries: dict[CompositionKey, pyvips.Image] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CompositionKey) -> bool:
        return key in self._entries

    def lookup(self, key: CompositionKey) -> tuple[Optional[pyvips.Image], bool]:
        image = self._entries.get(key)
        return image, image is not None

    def store(self, key: CompositionKey, image: pyvips.Image) -> None:
        if key in self._entries:
            raise KeyError(f"Composite already cached for {key_label(key)}")
        self._entries[key] = image

    def get_or_render(
        self,
        composition: Sequence[Layer],
        render: Callable[[Sequence[Layer]], pyvips.Image],
    ) -> tuple[CompositionKey, pyvips.Image, bool]:
        key = key_of(composition)
        image, found = self.lookup(key)
        if found:
            return key, image, False

        image = render(composition)
        self.store(key, image)
        logging.debug("🗃️ cached composite %s (%s entries)", key_label(key), len(self._entries))
        return key, image, True
