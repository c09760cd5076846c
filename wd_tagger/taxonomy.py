"""
Tag taxonomy: the fixed table mapping model output columns to tag names.
"""

import csv
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence, Union
import numpy as np
from .exceptions import ModelLoadError
from .logging import get_logger
from .models import TagCategory, TagEntry


logger = get_logger("taxonomy")


class TagTaxonomy:
    """Immutable table of tag entries indexed by model output column.

    Entries are dense and 0-based; entry ``i`` names column ``i`` of the
    model output. Per-category index arrays are computed once so that score
    vectors can be partitioned without string comparisons.
    """

    def __init__(self, entries: Iterable[TagEntry]):
        self._entries = tuple(entries)
        for position, entry in enumerate(self._entries):
            if entry.index != position:
                raise ModelLoadError(
                    f"Tag indices must be dense and 0-based: expected {position}, got {entry.index}"
                )

        self._names = np.array([entry.name for entry in self._entries], dtype=object)
        self._indices: Dict[TagCategory, np.ndarray] = {
            category: np.array(
                [entry.index for entry in self._entries if entry.category is category],
                dtype=np.intp,
            )
            for category in TagCategory
        }

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> "TagTaxonomy":
        """Build a taxonomy from tag table data rows (header already removed).

        Only column 1 (name) and column 2 (category code) are used; the row
        position is the model output index.
        """
        entries = []
        for index, row in enumerate(rows):
            if len(row) < 3:
                raise ModelLoadError(f"Malformed tag table row {index + 1}: {list(row)!r}")
            entries.append(TagEntry(
                index=index,
                name=row[1],
                category=TagCategory.from_code(row[2]),
            ))
        return cls(entries)

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "TagTaxonomy":
        """Load a ``selected_tags.csv`` style tag table."""
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                reader = csv.reader(f)
                next(reader, None)  # Skip header
                taxonomy = cls.from_rows(reader)
        except OSError as e:
            raise ModelLoadError(f"Failed to read tag table {path}: {e}") from e
        except (csv.Error, UnicodeDecodeError) as e:
            raise ModelLoadError(f"Failed to parse tag table {path}: {e}") from e

        logger.info(
            f"🏷️  Loaded {len(taxonomy)} tags: "
            f"{len(taxonomy.indices(TagCategory.GENERAL))} general, "
            f"{len(taxonomy.indices(TagCategory.CHARACTER))} character, "
            f"{len(taxonomy.indices(TagCategory.RATING))} rating"
        )
        return taxonomy

    def indices(self, category: TagCategory) -> np.ndarray:
        """Output column indices of a category, in ascending order."""
        return self._indices[category]

    def names(self, category: TagCategory) -> np.ndarray:
        """Tag names of a category, aligned with ``indices(category)``."""
        return self._names[self._indices[category]]

    def by_category(self, category: TagCategory) -> List[TagEntry]:
        return [self._entries[i] for i in self._indices[category]]

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TagEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[TagEntry]:
        return iter(self._entries)
