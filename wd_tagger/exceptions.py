"""
Exceptions raised by the WD tagger pipeline.
"""


class TaggerError(Exception):
    """Base class for tagger errors."""
    pass


class ModelLoadError(TaggerError):
    """The model, the tag table or the inference session could not be loaded."""
    pass


class UnsupportedInputError(TaggerError):
    """An image could not be decoded or normalized."""
    pass


class InferenceError(TaggerError):
    """The inference engine failed for a batch."""
    pass


class DegenerateInputError(TaggerError):
    """Too few scores in a category to compute an MCut threshold."""
    pass


class InvalidThresholdError(TaggerError, ValueError):
    """A tag threshold was outside [0, 1]."""
    pass
