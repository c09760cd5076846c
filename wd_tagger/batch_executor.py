"""
Batched execution: parallel preprocessing, one engine call per batch.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, TypeVar
import numpy as np
from PIL import Image
from .engine import InferenceEngine
from .exceptions import InferenceError
from .logging import get_logger
from .preprocessing import normalize_image


T = TypeVar("T")
R = TypeVar("R")


class BatchExecutor:
    """Runs batches of images through an inference engine.

    Preprocessing fans out over a thread pool. Every task writes into a
    pre-sized slot addressed by the image's position in the batch, so the
    assembled batch follows input order whatever the completion order.
    """

    def __init__(self, engine: InferenceEngine, workers: Optional[int] = None):
        self.engine = engine
        self.logger = get_logger("batch_executor")
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="wd-tagger")

    @property
    def size(self) -> int:
        return self.engine.input_size

    @property
    def classes(self) -> int:
        return self.engine.num_classes

    def fan_out(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Apply ``fn`` to every item concurrently; results keep input order."""
        results: List[Optional[R]] = [None] * len(items)
        futures = {self._pool.submit(fn, item): idx for idx, item in enumerate(items)}
        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
        return results

    def preprocess(self, images: Sequence[Image.Image]) -> np.ndarray:
        """Normalize images into a single ``[N, size, size, 3]`` batch tensor."""
        if not images:
            raise ValueError("A batch needs at least one image")
        size = self.size
        tensors = self.fan_out(lambda image: normalize_image(image, size), images)
        return np.stack(tensors, axis=0)

    def infer(self, batch: np.ndarray) -> List[np.ndarray]:
        """Run one engine call and split its output into per-image score vectors."""
        count = batch.shape[0]
        try:
            output = self.engine.run(batch)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Inference failed for batch of {count}: {e}") from e

        flat = np.asarray(output, dtype=np.float32).reshape(-1)
        expected = count * self.classes
        if flat.size != expected:
            raise InferenceError(
                f"Engine returned {flat.size} values for a batch of {count}, expected {expected}"
            )

        # Output rows are positional: row i belongs to image i
        return [flat[i * self.classes:(i + 1) * self.classes] for i in range(count)]

    def run(self, images: Sequence[Image.Image]) -> List[np.ndarray]:
        """Return one score vector per image, in input order."""
        return self.infer(self.preprocess(images))

    def close(self) -> None:
        self._pool.shutdown(wait=True)
