"""
Model and tag table acquisition from the Hugging Face Hub.
"""

from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional, Union
from .exceptions import ModelLoadError
from .logging import get_logger


MODEL_FILE = "model.onnx"
TAGS_FILE = "selected_tags.csv"

logger = get_logger("hub")


class TaggerRepo(str, Enum):
    """Known tagger model repositories."""
    WD_CONVNEXT_TAGGER_V3 = "SmilingWolf/wd-convnext-tagger-v3"
    WD_EVA02_LARGE_TAGGER_V3 = "SmilingWolf/wd-eva02-large-tagger-v3"
    WD_SWINV2_TAGGER_V3 = "SmilingWolf/wd-swinv2-tagger-v3"
    WD_VIT_LARGE_TAGGER_V3 = "SmilingWolf/wd-vit-large-tagger-v3"
    WD_VIT_TAGGER_V3 = "SmilingWolf/wd-vit-tagger-v3"
    WD_CONVNEXT_TAGGER_V2 = "SmilingWolf/wd-v1-4-convnext-tagger-v2"
    WD_CONVNEXTV2_TAGGER_V2 = "SmilingWolf/wd-v1-4-convnextv2-tagger-v2"
    WD_MOAT_TAGGER_V2 = "SmilingWolf/wd-v1-4-moat-tagger-v2"
    WD_SWINV2_TAGGER_V2 = "SmilingWolf/wd-v1-4-swinv2-tagger-v2"
    WD_VIT_TAGGER_V2 = "SmilingWolf/wd-v1-4-vit-tagger-v2"

    IDOLSANKAKU_EVA02_LARGE_TAGGER_V1 = "deepghs/idolsankaku-eva02-large-tagger-v1"
    IDOLSANKAKU_SWINV2_TAGGER_V1 = "deepghs/idolsankaku-swinv2-tagger-v1"


class ModelFiles(NamedTuple):
    """Local paths of a downloaded tagger model."""
    model_path: Path
    tags_path: Path


def download_model(
    repo: Union[TaggerRepo, str],
    cache_dir: Optional[Union[str, Path]] = None,
) -> ModelFiles:
    """Fetch the ONNX model and its tag table, reusing the local cache."""
    repo_id = repo.value if isinstance(repo, TaggerRepo) else str(repo)

    try:
        from huggingface_hub import hf_hub_download
    except ImportError as e:
        raise ModelLoadError("huggingface_hub is not installed. Run: pip install huggingface_hub") from e

    logger.info(f"📥 Fetching {repo_id}")
    try:
        model_path = hf_hub_download(repo_id=repo_id, filename=MODEL_FILE, cache_dir=cache_dir)
        tags_path = hf_hub_download(repo_id=repo_id, filename=TAGS_FILE, cache_dir=cache_dir)
    except Exception as e:
        raise ModelLoadError(f"Failed to download model '{repo_id}': {e}") from e

    return ModelFiles(model_path=Path(model_path), tags_path=Path(tags_path))
