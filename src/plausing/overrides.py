from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple


class _Any:
    def __repr__(self) -> str:
        return "ANY"


ANY = _Any()
"""Source-value guard that matches every source value."""

NOTHING = object()


@dataclass(frozen=True)
class Override:
    source_field: str
    target_field: str
    source_value: Any = ANY
    expected: Any = NOTHING
    transform: Optional[Callable[[Any], Any]] = None

    def __post_init__(self) -> None:
        if (self.expected is NOTHING) == (self.transform is None):
            raise ValueError(
                f"Override {self.source_field} --> {self.target_field} needs exactly "
                "one of an expected value or a transform."
            )

    def matches(self, source_field: str, target_field: str, source_value: Any) -> bool:
        if self.source_field != source_field or self.target_field != target_field:
            return False
        if self.source_value is ANY:
            return True
        if self.source_value is None or source_value is None:
            return self.source_value is source_value
        return self.source_value == source_value

    def expected_for(self, source_value: Any) -> Any:
        if self.transform is not None:
            return self.transform(source_value)
        return self.expected


class OverrideRegistry:
    """Caller-declared expectations that take precedence over the oracle."""

    def __init__(self) -> None:
        self._overrides: List[Override] = []

    def add(self, override: Override) -> None:
        self._overrides.append(override)

    def lookup(
        self, source_field: str, target_field: str, source_value: Any
    ) -> Tuple[bool, Any]:
        # Guarded overrides win over catch-all ones for the same field pair.
        candidates = [
            o
            for o in self._overrides
            if o.matches(source_field, target_field, source_value)
        ]
        if not candidates:
            return False, None
        candidates.sort(key=lambda o: o.source_value is ANY)
        return True, candidates[0].expected_for(source_value)

    def __len__(self) -> int:
        return len(self._overrides)
