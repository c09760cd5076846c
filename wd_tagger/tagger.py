"""
Tagger facade: owns the inference session and the tag taxonomy, and runs
images through preprocessing, inference and postprocessing.
"""

import time
from pathlib import Path
from typing import List, Optional, Sequence, Union
from PIL import Image
from pydantic import ValidationError
from .batch_executor import BatchExecutor
from .classifier import ScoreClassifier
from .engine import InferenceEngine, OnnxInferenceEngine
from .exceptions import InferenceError, InvalidThresholdError, ModelLoadError
from .hub import TaggerRepo, download_model
from .logging import get_logger
from .models import TagResult, ThresholdPolicy
from .performance_monitor import PerformanceMonitor
from .taxonomy import TagTaxonomy


class WDTagger:
    """Multi-label image tagger for WD14-style models.

    The tagger is the single owner of its inference session; ``predict`` is
    not meant to be called concurrently on the same instance.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        taxonomy: TagTaxonomy,
        workers: Optional[int] = None,
    ):
        self.logger = get_logger("tagger")
        if len(taxonomy) != engine.num_classes:
            raise ModelLoadError(
                f"Tag table has {len(taxonomy)} tags but the model outputs {engine.num_classes} classes"
            )

        self.engine = engine
        self.taxonomy = taxonomy
        self.executor = BatchExecutor(engine, workers=workers)
        self.classifier = ScoreClassifier(taxonomy)
        self.monitor = PerformanceMonitor()
        self._closed = False

    @classmethod
    def from_files(
        cls,
        model_path: Union[str, Path],
        tags_path: Union[str, Path],
        use_gpu: bool = True,
        workers: Optional[int] = None,
    ) -> "WDTagger":
        """Open a tagger from a local model and tag table."""
        taxonomy = TagTaxonomy.from_csv(tags_path)
        engine = OnnxInferenceEngine(model_path, use_gpu=use_gpu)
        try:
            return cls(engine, taxonomy, workers=workers)
        except Exception:
            engine.close()
            raise

    @classmethod
    def from_repo(
        cls,
        repo: Union[TaggerRepo, str] = TaggerRepo.WD_SWINV2_TAGGER_V3,
        cache_dir: Optional[Union[str, Path]] = None,
        use_gpu: bool = True,
        workers: Optional[int] = None,
    ) -> "WDTagger":
        """Download (or reuse the cached) model and tag table, then open them."""
        files = download_model(repo, cache_dir=cache_dir)
        return cls.from_files(files.model_path, files.tags_path, use_gpu=use_gpu, workers=workers)

    @property
    def input_size(self) -> int:
        return self.engine.input_size

    def predict(
        self,
        images: Sequence[Image.Image],
        general_threshold: float = 0.35,
        character_threshold: float = 0.85,
        general_mcut: bool = False,
        character_mcut: bool = False,
    ) -> List[TagResult]:
        """Tag a batch of decoded images with a single inference call.

        Thresholds must lie in [0, 1], otherwise InvalidThresholdError is
        raised. Returns one TagResult per image, in input order. Raises
        InferenceError if the batch fails; no partial results are returned.
        """
        if self._closed:
            raise InferenceError("Tagger has been closed")

        try:
            general = ThresholdPolicy(value=general_threshold, adaptive=general_mcut)
            character = ThresholdPolicy(value=character_threshold, adaptive=character_mcut)
        except ValidationError as e:
            raise InvalidThresholdError(f"Invalid tag threshold: {e}") from e

        if not images:
            return []

        start_time = time.time()
        batch = self.executor.preprocess(images)
        preprocess_time = time.time() - start_time

        start_time = time.time()
        try:
            scores = self.executor.infer(batch)
        except InferenceError:
            self.monitor.record_batch_failure()
            raise
        inference_time = time.time() - start_time

        start_time = time.time()
        results = self.executor.fan_out(
            lambda vector: self.classifier.classify(vector, general, character),
            scores,
        )
        postprocess_time = time.time() - start_time

        self.monitor.record_batch(
            images=len(results),
            tags=sum(len(r.general_tags) + len(r.character_tags) for r in results),
            preprocess_time=preprocess_time,
            inference_time=inference_time,
            postprocess_time=postprocess_time,
        )
        return results

    def close(self):
        """Release the inference session and worker threads."""
        if self._closed:
            return
        self._closed = True
        self.executor.close()
        self.engine.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
