from contextlib import nullcontext as does_not_raise
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Set, Tuple

import pytest

from plausing import (
    INT_TO_FLOAT,
    ConverterRegistry,
    NoSuchEnumMemberError,
    OracleFailure,
    VerifierSettings,
    expected_value,
)
from plausing.converters import Converter, TypePair
from plausing.oracle import find_getter
from plausing.typeinfo import TypeInfo


class Color(Enum):
    RED = 1
    GREEN = 2


class Colour(Enum):
    RED = "r"
    GREEN = "g"


class Shade(Enum):
    RED = "red"


class Animal:
    pass


class Dog(Animal):
    pass


@dataclass(frozen=True)
class Money:
    cents: int

    def get_cents(self) -> int:
        return self.cents

    def halved(self) -> float:
        return self.cents / 2

    @staticmethod
    def zero() -> int:
        return 0


class Temperature:
    def __init__(self, degrees: float):
        self.degrees = degrees

    @property
    def rounded(self) -> int:
        return round(self.degrees)

    def as_text(self) -> str:
        return f"{self.degrees} degrees"


@pytest.fixture
def converters():
    registry = ConverterRegistry()
    registry.register(INT_TO_FLOAT)
    return registry


class TestIdentity:
    """Tests for values that are stored unchanged."""

    @pytest.mark.parametrize(
        "value, source_type, target_type",
        [
            ("x", str, str),
            (None, Optional[str], str),
            (5, int, int),
            (5, int, float),
            (5, int, complex),
            (1.5, float, complex),
            (5, int, Optional[int]),
            (5, int, Any),
            (True, bool, int),
        ],
    )
    def test_identity(self, value, source_type, target_type):
        """Same types, subclasses, numeric promotions and Any keep the value."""
        assert expected_value(value, source_type, target_type) == value

    def test_subclass(self):
        """A subclass instance is kept as is."""
        dog = Dog()

        assert expected_value(dog, Dog, Animal) is dog

    def test_narrowing_is_not_identity(self):
        """Nothing turns a float into an int."""
        with pytest.raises(
            OracleFailure, match="No applicable mapping strategy"
        ) as exc_info:
            expected_value(1.5, float, int)

        assert any(reason.startswith("identity") for reason in exc_info.value.reasons)


class TestBoxing:
    """Tests for nullable and non-nullable numerics."""

    @pytest.mark.parametrize(
        "source_type, target_type",
        [(Optional[int], int), (Optional[float], float), (Optional[complex], complex)],
    )
    def test_unboxing(self, source_type, target_type):
        """Unboxing keeps the value."""
        assert expected_value(7, source_type, target_type) == 7

    def test_unboxing_null_of_non_null_field(self):
        """None of a non-null-only field maps to None without any strategy."""
        assert expected_value(None, Optional[int], int, non_null=True) is None

    def test_unboxing_is_not_identity(self):
        """A nullable numeric is not accepted as a plain numeric."""
        assert not TypeInfo.of(int).accepts(TypeInfo.of(Optional[int]))


class TestEnums:
    """Tests for name-based enum conversion."""

    @pytest.mark.parametrize(
        "value, source_type, target_type, expected",
        [
            (Color.RED, Color, Colour, Colour.RED),
            (None, Optional[Color], Optional[Colour], None),
            ("GREEN", str, Color, Color.GREEN),
            (None, Optional[str], Optional[Color], None),
            (Color.GREEN, Color, str, "GREEN"),
            (None, Optional[Color], Optional[str], None),
        ],
    )
    def test_enum_conversion(self, value, source_type, target_type, expected):
        """Conversions go by member name and keep None."""
        assert expected_value(value, source_type, target_type) == expected

    @pytest.mark.parametrize(
        "value, source_type",
        [(Color.GREEN, Color), ("GREEN", str), ("green", str)],
    )
    def test_missing_member(self, value, source_type):
        """A name without a counterpart fails."""
        with pytest.raises(NoSuchEnumMemberError, match="Shade has no member named"):
            expected_value(value, source_type, Shade)


class TestCollections:
    """Tests for element-wise conversion."""

    @pytest.mark.parametrize(
        "value, source_type, target_type, expected",
        [
            (
                [Color.RED, Color.GREEN],
                List[Color],
                List[Colour],
                [Colour.RED, Colour.GREEN],
            ),
            ([], List[Color], List[Colour], []),
            (None, Optional[List[Color]], Optional[List[Colour]], None),
            ({"RED"}, Set[str], Set[Color], {Color.RED}),
            ((Color.RED,), Tuple[Color, ...], FrozenSet[str], ("RED",)),
            ([1, 2], list, list, [1, 2]),
        ],
    )
    def test_element_wise(self, value, source_type, target_type, expected):
        """Elements go through the oracle, the container keeps the source's class."""
        result = expected_value(value, source_type, target_type)

        assert result == expected
        assert type(result) is type(expected)

    def test_element_types_from_arguments(self):
        """Explicit element types replace the annotations."""
        assert expected_value(["RED"], list, list, str, Color) == [Color.RED]

    def test_element_failure_propagates(self):
        """A failing element fails the whole collection."""
        with pytest.raises(NoSuchEnumMemberError):
            expected_value([Color.RED, Color.GREEN], List[Color], List[Shade])

    def test_element_converter(self, converters):
        """Registered converters apply to elements."""
        result = expected_value([1, -1], List[int], List[float], converters=converters)

        assert result == [1.0, -1.0]
        assert all(isinstance(v, float) for v in result)


class TestConverters:
    """Tests for registered converters."""

    def test_registered_converter_wins(self, converters):
        """A converter beats the numeric promotion."""
        assert isinstance(expected_value(1, int, float, converters=converters), float)

    def test_converter_for_unrelated_types(self):
        """Any type pair can get a converter."""
        registry = ConverterRegistry()
        registry.register(
            Converter(TypePair.of(Color, int), lambda c: None if c is None else c.value)
        )

        result = expected_value(Color.GREEN, Color, Optional[int], converters=registry)

        assert result == 2

    def test_value_list_converter_with_unknown_value(self, converters):
        """Values outside the converter's list fail."""
        with pytest.raises(
            OracleFailure, match="No mapping has been defined for type int with value 2"
        ):
            expected_value(2, int, float, converters=converters)


class TestConstructorsAndGetters:
    """Tests for conversion through constructors and accessors."""

    def test_constructor(self):
        """A single-argument constructor builds the target."""
        assert expected_value(5, int, Money) == Money(5)

    def test_constructor_keeps_none(self):
        """None is not constructed."""
        assert expected_value(None, Optional[int], Optional[Money]) is None

    def test_getter(self):
        """A method returning the target type reads the value."""
        assert expected_value(Money(5), Money, int) == 5

    def test_getter_for_boxed_target(self):
        """A getter returning int serves an Optional[int] target."""
        assert expected_value(Money(5), Money, Optional[int]) == 5

    def test_property_getter(self):
        """Properties are read without calling them."""
        assert expected_value(Temperature(21.6), Temperature, int) == 22

    @pytest.mark.parametrize(
        "cls, target, expected",
        [
            (Money, int, ("get_cents", False)),
            (Money, float, ("halved", False)),
            (Temperature, int, ("rounded", True)),
            (Temperature, str, ("as_text", False)),
            (Temperature, bytes, None),
        ],
    )
    def test_find_getter(self, cls, target, expected):
        """Static methods never count as getters."""
        assert find_getter(cls, TypeInfo.of(target)) == expected

    def test_accessor_names_are_preferred(self):
        """Among several getters, accessor-like names win."""

        class Reading:
            def doubled(self) -> int:
                return 2

            def get_raw(self) -> int:
                return 1

        assert find_getter(Reading, TypeInfo.of(int)) == ("get_raw", False)
        assert find_getter(
            Reading, TypeInfo.of(int), VerifierSettings(accessor_pattern="^doub")
        ) == ("doubled", False)

    @pytest.mark.parametrize(
        "value, source_type, target_type, expectation",
        [
            (5, int, Money, does_not_raise()),
            ("5", str, Money, pytest.raises(OracleFailure, match="constructor")),
            (Money(5), Money, str, pytest.raises(OracleFailure, match="getter")),
        ],
    )
    def test_failure_lists_every_strategy(
        self, value, source_type, target_type, expectation
    ):
        """Declined strategies explain why."""
        with expectation:
            expected_value(value, source_type, target_type)
