from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from .errors import OracleFailure
from .typeinfo import TypeInfo

ValueConverter = Callable[[Any], Any]


@dataclass(frozen=True)
class TypePair:
    source_type: type
    target_type: type

    @classmethod
    def of(cls, source_type: Any, target_type: Any) -> "TypePair":
        return cls(TypeInfo.of(source_type).cls, TypeInfo.of(target_type).cls)


@dataclass(frozen=True)
class Converter:
    type_pair: TypePair
    function: ValueConverter

    def __call__(self, value: Any) -> Any:
        return self.function(value)


def value_list_converter(
    source_type: Any,
    target_type: Any,
    source_values: Sequence[Any],
    target_values: Sequence[Any],
) -> Converter:
    """Converter that maps ``source_values[i]`` to ``target_values[i]``."""
    if len(source_values) != len(target_values):
        raise ValueError(
            "Expected as many target values as source values, "
            f"got {len(target_values)} for {len(source_values)}."
        )
    pair = TypePair.of(source_type, target_type)

    def convert(value: Any) -> Any:
        for source_value, target_value in zip(source_values, target_values):
            if value == source_value:
                return target_value
        raise OracleFailure(
            f"No mapping has been defined for type {pair.source_type.__name__} "
            f"with value {value!r}"
        )

    return Converter(pair, convert)


class ConverterRegistry:
    def __init__(self) -> None:
        self._converters: Dict[TypePair, Converter] = {}

    def register(self, converter: Converter) -> None:
        self._converters[converter.type_pair] = converter

    def lookup(self, source_type: Any, target_type: Any) -> Optional[Converter]:
        return self._converters.get(TypePair.of(source_type, target_type))

    def __contains__(self, pair: TypePair) -> bool:
        return pair in self._converters

    def __len__(self) -> int:
        return len(self._converters)


INT_TO_FLOAT = value_list_converter(
    Optional[int],
    Optional[float],
    [-(2**63), 2**63 - 1, 1, -1, 0, None],
    [float(-(2**63)), float(2**63 - 1), 1.0, -1.0, 0.0, None],
)
