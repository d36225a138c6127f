from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# EMIBD9 truncates identifiers beyond this length and rejects blanks and '/'.
MAX_PLACEHOLDER_LENGTH = 20


@dataclass(frozen=True)
class PlaceholderMap:
    """Run-scoped mapping between sample labels and EMIBD9-safe identifiers.

    Placeholders are the 1-based ordinal of each sample as a string
    ("1".."N"), so they are unique, short and free of whitespace or path
    separators whatever the original labels look like.
    """

    labels: Tuple[str, ...]
    placeholders: Tuple[str, ...]
    _index: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_index", {p: i for i, p in enumerate(self.placeholders)}
        )

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "PlaceholderMap":
        labels = tuple(str(s) for s in labels)
        n = len(labels)
        if n <= 0:
            raise ConfigurationError("At least one sample is required to run EMIBD9.")

        dups = [s for s, c in Counter(labels).items() if c > 1]
        if dups:
            logger.warning(
                "%d sample label(s) are duplicated (e.g. %r); "
                "matrix labels will not be unique.",
                len(dups),
                dups[0],
            )

        placeholders = tuple(str(i + 1) for i in range(n))
        return cls(labels=labels, placeholders=placeholders)

    @property
    def n(self) -> int:
        return len(self.labels)

    @property
    def label_to_placeholder(self) -> Dict[str, str]:
        return dict(zip(self.labels, self.placeholders))

    @property
    def placeholder_to_label(self) -> Dict[str, str]:
        return dict(zip(self.placeholders, self.labels))

    def index_of(self, placeholder) -> int:
        """0-based ordinal of a placeholder; IndexError when outside [1, N]."""
        key = str(placeholder).strip()
        idx = self._index.get(key)
        if idx is not None:
            return idx
        try:
            value = int(float(key))
        except (ValueError, OverflowError):
            raise IndexError(f"Placeholder {placeholder!r} is not a sample index") from None
        if value < 1 or value > self.n or float(key) != value:
            raise IndexError(
                f"Placeholder {placeholder!r} is outside the sample range [1, {self.n}]"
            )
        return value - 1

    def restore(self, placeholders: Sequence) -> List[str]:
        """Translate placeholders back to the original sample labels."""
        return [self.labels[self.index_of(p)] for p in placeholders]


def is_valid_placeholder(placeholder: str) -> bool:
    """True when an identifier satisfies EMIBD9's ID rules."""
    return (
        0 < len(placeholder) <= MAX_PLACEHOLDER_LENGTH
        and not any(ch.isspace() for ch in placeholder)
        and "/" not in placeholder
        and "\\" not in placeholder
    )
