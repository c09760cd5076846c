"""
Inference engines that turn a batch tensor into per-class probabilities.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import numpy as np
from .exceptions import InferenceError, ModelLoadError
from .logging import get_logger


CUDA_PROVIDER = "CUDAExecutionProvider"
CPU_PROVIDER = "CPUExecutionProvider"


class InferenceEngine:
    """Base class for inference engines.

    An engine takes a float32 tensor of shape ``[batch, size, size, 3]`` and
    returns a float32 tensor of shape ``[batch, classes]``. ``input_size`` and
    ``num_classes`` come from the model itself.
    """

    input_size: int
    num_classes: int

    def run(self, batch: np.ndarray) -> np.ndarray:
        """Run inference on a batch. Must be implemented by subclasses."""
        raise NotImplementedError

    def close(self) -> None:
        """Release the underlying session."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _resolve_providers(use_gpu: bool, providers: Optional[Sequence[str]]) -> List[str]:
    import onnxruntime as ort

    if providers is not None:
        return list(providers)

    available = ort.get_available_providers()
    resolved = []
    if use_gpu and CUDA_PROVIDER in available:
        resolved.append(CUDA_PROVIDER)
    resolved.append(CPU_PROVIDER)  # Always have CPU fallback
    return resolved


class OnnxInferenceEngine(InferenceEngine):
    """Inference engine backed by an ONNX Runtime session."""

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = True,
        providers: Optional[Sequence[str]] = None,
    ):
        self.logger = get_logger("engine")
        self.model_path = Path(model_path)

        try:
            import onnxruntime as ort
        except ImportError as e:
            raise ModelLoadError("onnxruntime is not installed. Run: pip install onnxruntime") from e

        if not self.model_path.exists():
            raise ModelLoadError(f"Model not found: {self.model_path}")

        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        try:
            self._session = ort.InferenceSession(
                str(self.model_path),
                sess_options=sess_options,
                providers=_resolve_providers(use_gpu, providers),
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to open model {self.model_path}: {e}") from e

        model_input = self._session.get_inputs()[0]
        model_output = self._session.get_outputs()[0]
        self._input_name = model_input.name
        self._output_name = model_output.name

        # Input is [batch, size, size, 3], output is [batch, classes]
        self.input_size = self._static_dim(model_input.shape, 1, "input")
        self.num_classes = self._static_dim(model_output.shape, 1, "output")

        active_provider = self._session.get_providers()[0] if self._session.get_providers() else "Unknown"
        self.logger.info(
            f"🧠 Loaded {self.model_path.name} using {active_provider} "
            f"(input {self.input_size}x{self.input_size}, {self.num_classes} classes)"
        )

    def _static_dim(self, shape, axis: int, kind: str) -> int:
        if len(shape) <= axis or not isinstance(shape[axis], int):
            raise ModelLoadError(f"Model {kind} shape {shape} has no static dimension at axis {axis}")
        return int(shape[axis])

    def run(self, batch: np.ndarray) -> np.ndarray:
        if self._session is None:
            raise InferenceError("Inference session is closed")
        try:
            outputs = self._session.run([self._output_name], {self._input_name: batch})
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e
        return outputs[0]

    def close(self) -> None:
        """Drop the session; ONNX Runtime frees it with the last reference."""
        if self._session is not None:
            self._session = None
            self.logger.debug(f"Closed inference session for {self.model_path.name}")
