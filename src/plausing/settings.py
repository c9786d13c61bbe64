from __future__ import annotations

import re
from datetime import date
from typing import FrozenSet, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NOISE_PREFIXES = ("COL_", "ATT_", "ENTITY_", "TABLE_")


class VerifierSettings(BaseModel):
    """Knobs of a verification session that are not per-field test data."""

    model_config = ConfigDict(frozen=True)

    # Prefixes used by generated persistence code for column/table constants.
    noise_prefixes: Tuple[str, ...] = DEFAULT_NOISE_PREFIXES
    ignored_enum_members: FrozenSet[str] = Field(default_factory=frozenset)
    accessor_pattern: str = r"^(get_|to_|as_)|value"
    text_test_value: str = "A test string."
    test_date: date = date(1977, 4, 1)
    include_private_fields: bool = False

    @field_validator("accessor_pattern")
    @classmethod
    def _check_accessor_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"accessor_pattern is not a valid regex: {e}") from e
        return value

    def is_noise(self, name: str) -> bool:
        return name.startswith(tuple(self.noise_prefixes))

    def is_accessor_name(self, name: str) -> bool:
        return re.search(self.accessor_pattern, name) is not None
