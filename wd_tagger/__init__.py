"""
WD Tagger

Assigns rating, character and general tags to images with WD14-style
tagger models: letterbox/bicubic preprocessing, batched ONNX inference and
fixed or MCut thresholding.
"""

__version__ = "1.0.0"

from .exceptions import (
    TaggerError,
    ModelLoadError,
    UnsupportedInputError,
    InferenceError,
    DegenerateInputError,
    InvalidThresholdError,
)
from .models import TagCategory, TagEntry, TagResult, ThresholdPolicy
from .taxonomy import TagTaxonomy
from .preprocessing import letterbox, normalize_image
from .classifier import ScoreClassifier, mcut_threshold
from .engine import InferenceEngine, OnnxInferenceEngine
from .batch_executor import BatchExecutor
from .hub import TaggerRepo, download_model
from .tagger import WDTagger

__all__ = [
    "TaggerError",
    "ModelLoadError",
    "UnsupportedInputError",
    "InferenceError",
    "DegenerateInputError",
    "InvalidThresholdError",
    "TagCategory",
    "TagEntry",
    "TagResult",
    "ThresholdPolicy",
    "TagTaxonomy",
    "letterbox",
    "normalize_image",
    "ScoreClassifier",
    "mcut_threshold",
    "InferenceEngine",
    "OnnxInferenceEngine",
    "BatchExecutor",
    "TaggerRepo",
    "download_model",
    "WDTagger",
]
