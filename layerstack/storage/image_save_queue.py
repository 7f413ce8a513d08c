import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

import pyvips

from layerstack.models.generation import DEFAULT_MAX_PENDING, DEFAULT_SAVE_WORKERS
from layerstack.render.vips_compat import encode_png
from layerstack.utils.errors import PersistenceError

WriteFn = Callable[[str, bytes, str], None]


class ImageSaveQueue:
    def __init__(
        self,
        write_fn: WriteFn,
        workers: int = DEFAULT_SAVE_WORKERS,
        max_pending: int = DEFAULT_MAX_PENDING,
        fail_fast: bool = True,
        on_state_change: Optional[Callable[[str, str, int], None]] = None,
    ):
        self.write_fn = write_fn
        self.workers = max(1, workers)
        self.fail_fast = fail_fast
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future] = []
        self._futures_lock = threading.Lock()
        self._backpressure = threading.Semaphore(max(1, max_pending))
        self._closed = False
        self._closed_lock = threading.Lock()

        self._states: dict[str, str] = {}
        self._states_lock = threading.Lock()

        self._saved: list[int] = []
        self._saved_lock = threading.Lock()

        self._errors: dict[int, Exception] = {}
        self._errors_lock = threading.Lock()
        self._on_state_change = on_state_change

    def _set_state(self, filename: str, state: str, index: int):
        with self._states_lock:
            self._states[filename] = state
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(filename, state, index)
        except Exception:
            logging.exception("❌ State callback failed for %s", filename)

    def _save_image(self, index: int, image: pyvips.Image):
        filename = f"{index}.png"
        try:
            logging.info("⬇️ save started: %s", filename)
            data = encode_png(image)
            self.write_fn(filename, data, "image/png")
            logging.info("✅ save completed: %s", filename)
            with self._saved_lock:
                self._saved.append(index)
            self._set_state(filename, "saved", index)
        except Exception as exc:
            with self._errors_lock:
                self._errors[index] = exc
            logging.exception("❌ save failed: %s", filename)
            self._set_state(filename, "failed", index)
        finally:
            self._backpressure.release()

    def enqueue(self, index: int, image: pyvips.Image):
        if self._executor is None:
            raise RuntimeError("ImageSaveQueue.start() must be called before enqueue()")
        if self.fail_fast:
            self._raise_if_failed()

        filename = f"{index}.png"
        self._set_state(filename, "queued", index)
        self._backpressure.acquire()
        logging.info("📋 save queued: %s", filename)
        future = self._executor.submit(self._save_image, index, image)
        with self._futures_lock:
            self._futures.append(future)

    def start(self):
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="image-save",
        )

    def close_and_wait(self):
        with self._closed_lock:
            if self._closed:
                return
            self._closed = True

        with self._futures_lock:
            pending = list(self._futures)

        wait(pending)

        if self._executor:
            self._executor.shutdown(wait=True)

        if self.fail_fast:
            self._raise_if_failed()

    def _raise_if_failed(self):
        with self._errors_lock:
            if not self._errors:
                return
            first_index = min(self._errors)
            first_error = self._errors[first_index]
            count = len(self._errors)
        raise PersistenceError(
            f"{count} image save(s) failed; first: {first_index}.png: {first_error}"
        ) from first_error

    @property
    def saved_count(self) -> int:
        with self._saved_lock:
            return len(self._saved)

    @property
    def saved_indices(self) -> list[int]:
        with self._saved_lock:
            return sorted(self._saved)

    @property
    def errors(self) -> dict[int, Exception]:
        with self._errors_lock:
            return dict(self._errors)

    @property
    def states(self) -> dict[str, str]:
        with self._states_lock:
            return dict(self._states)
