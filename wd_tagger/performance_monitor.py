"""
Performance monitoring utilities for the WD tagger.
"""

import time
from typing import Dict, Optional, Any
from dataclasses import dataclass
from .logging import get_logger


@dataclass
class PerformanceMetrics:
    """Performance metrics tracking."""

    # Batch processing
    batches_processed: int = 0
    batches_failed: int = 0
    images_tagged: int = 0
    tags_emitted: int = 0

    # Stage timings
    total_preprocess_time: float = 0.0
    total_inference_time: float = 0.0
    total_postprocess_time: float = 0.0
    average_batch_time: Optional[float] = None

    @property
    def total_batch_time(self) -> float:
        return self.total_preprocess_time + self.total_inference_time + self.total_postprocess_time

    def update_averages(self):
        """Update calculated averages."""
        if self.batches_processed > 0:
            self.average_batch_time = self.total_batch_time / self.batches_processed

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging."""
        self.update_averages()
        return {
            "batches_processed": self.batches_processed,
            "batches_failed": self.batches_failed,
            "images_tagged": self.images_tagged,
            "tags_emitted": self.tags_emitted,
            "preprocess_time": round(self.total_preprocess_time, 3),
            "inference_time": round(self.total_inference_time, 3),
            "postprocess_time": round(self.total_postprocess_time, 3),
            "average_batch_time": round(self.average_batch_time or 0, 3),
        }


class PerformanceMonitor:
    """Performance monitoring and metrics collection."""

    def __init__(self):
        self.logger = get_logger("performance")
        self.metrics = PerformanceMetrics()
        self.start_time = time.time()

    def record_batch(
        self,
        images: int,
        tags: int,
        preprocess_time: float,
        inference_time: float,
        postprocess_time: float,
    ):
        """Record a completed batch."""
        self.metrics.batches_processed += 1
        self.metrics.images_tagged += images
        self.metrics.tags_emitted += tags
        self.metrics.total_preprocess_time += preprocess_time
        self.metrics.total_inference_time += inference_time
        self.metrics.total_postprocess_time += postprocess_time

        self.logger.debug(
            f"Batch of {images}: preprocess {preprocess_time:.3f}s, "
            f"inference {inference_time:.3f}s, postprocess {postprocess_time:.3f}s"
        )

    def record_batch_failure(self):
        """Record a batch whose inference failed."""
        self.metrics.batches_failed += 1

    def get_runtime_seconds(self) -> float:
        """Get total runtime in seconds."""
        return time.time() - self.start_time

    def log_performance_summary(self):
        """Log a summary of performance metrics."""
        runtime = self.get_runtime_seconds()
        metrics_dict = self.metrics.to_dict()
        images_per_second = self.metrics.images_tagged / runtime if runtime > 0 else 0

        self.logger.info(
            f"📈 Performance Summary: Runtime {runtime:.1f}s, "
            f"{metrics_dict['images_tagged']} images in {metrics_dict['batches_processed']} batches "
            f"({images_per_second:.1f} images/sec), {metrics_dict['tags_emitted']} tags"
        )
        if self.metrics.batches_processed > 0:
            self.logger.info(
                f"⏱️  Stage totals: preprocess {metrics_dict['preprocess_time']:.1f}s, "
                f"inference {metrics_dict['inference_time']:.1f}s, "
                f"postprocess {metrics_dict['postprocess_time']:.1f}s"
            )

    def get_metrics_dict(self) -> Dict[str, Any]:
        """Get all metrics as a dictionary."""
        runtime = self.get_runtime_seconds()
        metrics_dict = self.metrics.to_dict()
        metrics_dict["runtime_seconds"] = round(runtime, 2)
        return metrics_dict
