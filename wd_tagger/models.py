"""
Data models for the WD tagger.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TagCategory(str, Enum):
    """Tag category as declared by the tag table's category code."""
    GENERAL = "general"
    CHARACTER = "character"
    RATING = "rating"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "TagCategory":
        """Resolve a tag table category code (0, 4 or 9)."""
        try:
            value = int(str(code).strip())
        except (TypeError, ValueError):
            return cls.UNKNOWN
        return _CATEGORY_CODES.get(value, cls.UNKNOWN)


_CATEGORY_CODES = {
    0: TagCategory.GENERAL,
    4: TagCategory.CHARACTER,
    9: TagCategory.RATING,
}


class TagEntry(BaseModel):
    """One row of the tag taxonomy."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    name: str
    category: TagCategory


class ThresholdPolicy(BaseModel):
    """Threshold settings for one tag category."""
    value: float = Field(default=0.35, ge=0.0, le=1.0)
    adaptive: bool = False


class TagResult(BaseModel):
    """Tags predicted for a single image."""
    rating: str = ""
    general_tags: List[str] = []
    character_tags: List[str] = []

    def as_list(self) -> List[str]:
        """Rating first, then character tags, then general tags."""
        return [self.rating, *self.character_tags, *self.general_tags]

    def to_caption(self) -> str:
        """Comma-joined caption as written next to each image."""
        return ",".join(self.as_list())
