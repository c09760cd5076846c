"""
Score postprocessing: turns a probability vector into rating, character and
general tags.
"""

from typing import List, Sequence
import numpy as np
from .exceptions import DegenerateInputError, InferenceError
from .logging import get_logger
from .models import TagCategory, TagResult, ThresholdPolicy
from .taxonomy import TagTaxonomy


logger = get_logger("classifier")


def mcut_threshold(scores: Sequence[float]) -> float:
    """Maximum Cut Thresholding (MCut).

    Sorts the scores in descending order and places the threshold in the
    middle of the largest gap between two consecutive scores. The first gap
    wins on ties.

    Raises:
        DegenerateInputError: if fewer than two scores are given.
    """
    scores = np.asarray(scores, dtype=np.float32)
    if scores.size < 2:
        raise DegenerateInputError(f"MCut needs at least 2 scores, got {scores.size}")

    ranked = np.sort(scores)[::-1]
    difs = ranked[:-1] - ranked[1:]
    idx = int(np.argmax(difs))
    return float((ranked[idx] + ranked[idx + 1]) / np.float32(2))


def filter_tags(scores: np.ndarray, names: Sequence[str], threshold: float) -> List[str]:
    """Names whose score is at or above ``threshold``, in their given order."""
    keep = np.asarray(scores, dtype=np.float32) >= np.float32(threshold)
    return [str(name) for name, kept in zip(names, keep) if kept]


class ScoreClassifier:
    """Splits score vectors into tag sets using a tag taxonomy."""

    def __init__(self, taxonomy: TagTaxonomy):
        self.taxonomy = taxonomy
        self._rating = (taxonomy.indices(TagCategory.RATING), taxonomy.names(TagCategory.RATING))
        self._general = (taxonomy.indices(TagCategory.GENERAL), taxonomy.names(TagCategory.GENERAL))
        self._character = (taxonomy.indices(TagCategory.CHARACTER), taxonomy.names(TagCategory.CHARACTER))

    def resolve_threshold(self, scores: np.ndarray, policy: ThresholdPolicy, category: TagCategory) -> float:
        """Fixed threshold, or MCut when the policy asks for it."""
        if not policy.adaptive:
            return policy.value
        try:
            return mcut_threshold(scores)
        except DegenerateInputError as e:
            # Not enough scores to find a gap: use the configured value instead
            logger.debug(f"MCut unavailable for {category.value} tags ({e}), using {policy.value}")
            return policy.value

    def rating(self, scores: np.ndarray) -> str:
        """Highest scoring rating; the earliest entry wins ties."""
        indices, names = self._rating
        if not indices.size:
            return ""
        return str(names[int(np.argmax(scores[indices]))])

    def classify(
        self,
        scores: np.ndarray,
        general: ThresholdPolicy,
        character: ThresholdPolicy,
    ) -> TagResult:
        scores = np.asarray(scores, dtype=np.float32).reshape(-1)
        if scores.size != len(self.taxonomy):
            raise InferenceError(
                f"Score vector has {scores.size} values, taxonomy has {len(self.taxonomy)} tags"
            )

        general_idx, general_names = self._general
        general_scores = scores[general_idx]
        character_idx, character_names = self._character
        character_scores = scores[character_idx]

        general_threshold = self.resolve_threshold(general_scores, general, TagCategory.GENERAL)
        character_threshold = self.resolve_threshold(character_scores, character, TagCategory.CHARACTER)

        return TagResult(
            rating=self.rating(scores),
            general_tags=filter_tags(general_scores, general_names, general_threshold),
            character_tags=filter_tags(character_scores, character_names, character_threshold),
        )
