import logging
import random
import time
from typing import Callable, Optional, Sequence

import pyvips

from layerstack.models.generation import GenerationConfig, GenerationReport, UnitFailure
from layerstack.render.dedup_cache import DeduplicationCache, key_label
from layerstack.render.layer_source import Layer, LayerSource
from layerstack.render.selection import assemble_composition
from layerstack.render.stack_layers import composite_layers
from layerstack.storage.image_save_queue import ImageSaveQueue, WriteFn
from layerstack.utils.errors import LayerStackError, PersistenceError

Selector = Callable[[Sequence[LayerSource], Optional[random.Random]], list[Layer]]
Renderer = Callable[[Sequence[Layer]], pyvips.Image]


class BatchGenerator:
    """Generate ``config.count`` units, compositing each distinct combination once.

    Selection, cache lookups and compositing run on the calling thread;
    only encoding and writing happen on the save queue's workers.
    """

    def __init__(
        self,
        config: GenerationConfig,
        write_fn: Optional[WriteFn] = None,
        selector: Selector = assemble_composition,
        renderer: Renderer = composite_layers,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.sources = [LayerSource(path) for path in config.sources]
        if write_fn is None:
            from layerstack.storage.factory import get_writer

            write_fn = get_writer(config.storage_backend, config.output_dir)
        self.write_fn = write_fn
        self.selector = selector
        self.renderer = renderer
        self.rng = rng
        self.cache = DeduplicationCache()

    def run(self) -> GenerationReport:
        config = self.config
        report = GenerationReport(requested=config.count)
        queue = ImageSaveQueue(
            write_fn=self.write_fn,
            workers=config.workers,
            max_pending=config.max_pending,
            fail_fast=not config.continue_on_error,
        )
        started = time.monotonic()
        queue.start()

        try:
            for index in range(1, config.count + 1):
                try:
                    composition = self.selector(self.sources, self.rng)
                except LayerStackError as exc:
                    if not config.continue_on_error:
                        raise
                    logging.error("❌ Unit %s skipped: %s", index, exc)
                    report.failures.append(UnitFailure(index=index, stage="select", error=str(exc)))
                    continue

                key, image, created = self.cache.get_or_render(composition, self.renderer)
                if not created:
                    label = key_label(key)
                    logging.info("🔁 combination %s already exists", label)
                    report.duplicates.append(label)
                    continue

                report.rendered += 1
                queue.enqueue(index, image)
        except BaseException:
            # Drain before the error propagates so no save outlives the run.
            try:
                queue.close_and_wait()
            except PersistenceError as exc:
                logging.error("❌ Saves failed while aborting: %s", exc)
            raise

        queue.close_and_wait()

        report.saved = queue.saved_indices
        for index, exc in sorted(queue.errors.items()):
            report.failures.append(UnitFailure(index=index, stage="save", error=str(exc)))
        report.failures.sort(key=lambda failure: failure.index)

        logging.info(
            "🏁 Batch finished in %.2fs: requested=%s rendered=%s duplicates=%s saved=%s failed=%s",
            time.monotonic() - started,
            report.requested,
            report.rendered,
            len(report.duplicates),
            len(report.saved),
            len(report.failures),
        )
        return report
