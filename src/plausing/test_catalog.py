import math
import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple

import pytest
from structlog.testing import capture_logs

from plausing import (
    EmptyCollectionError,
    FieldRef,
    NoSuitableConstructorError,
    NoTestDataFailure,
    TestValueCatalog,
    VerifierSettings,
    generate_test_values,
)
from plausing.catalog import INT_RANGE


class Color(Enum):
    RED = 1
    GREEN = 2
    BLUE = 3


@dataclass
class Bag:
    items: list = field(default_factory=list)


@pytest.fixture
def catalog():
    return TestValueCatalog()


class TestDefaults:
    """Tests for the built-in test values."""

    @pytest.mark.parametrize(
        "annotation, values",
        [
            (str, ["A test string.", None]),
            (Optional[str], ["A test string.", None]),
            (int, INT_RANGE),
            (Optional[int], INT_RANGE + [None]),
            (float, [math.ulp(0.0), sys.float_info.max, 1.0, -1.0, 0.0]),
            (bool, [True, False]),
            (Optional[bool], [True, False, None]),
            (date, [date(1977, 4, 1), None]),
            (datetime, [datetime(1977, 4, 1), None]),
        ],
    )
    def test_values_by_type(self, catalog, annotation, values):
        """Every built-in type has a fixed test range."""
        assert catalog.get_test_values_for(FieldRef("att1", annotation)) == values

    @pytest.mark.parametrize(
        "annotation, training_value",
        [(str, "A test string."), (Optional[int], 1), (float, 1.0), (bool, True)],
    )
    def test_training_value_by_type(self, catalog, annotation, training_value):
        """Every built-in type has a training value."""
        ref = FieldRef("att1", annotation)

        assert catalog.get_training_value_for(ref) == training_value

    def test_text_value_from_settings(self):
        """The text test value is configurable."""
        catalog = TestValueCatalog(VerifierSettings(text_test_value="hello"))

        assert catalog.get_test_values_for(FieldRef("att1", str)) == ["hello", None]


class TestRegistration:
    """Tests for caller-registered test values."""

    def test_field_values_take_precedence(self, catalog):
        """Values registered for a field name beat the type's values."""
        catalog.add_field_values("att1", ["x", "y"], "y")

        ref = FieldRef("att1", str)
        assert catalog.get_test_values_for(ref) == ["x", "y"]
        assert catalog.get_training_value_for(ref) == "y"
        assert catalog.get_test_values_for(FieldRef("att2", str))[0] == "A test string."

    def test_training_value_defaults_to_first_non_null_value(self, catalog):
        """Without an explicit training value the first non-null test value is used."""
        catalog.add_field_values("att1", [None, "y"])

        assert catalog.get_training_value_for(FieldRef("att1", str)) == "y"

    def test_type_values_are_keyed_by_nullability(self, catalog):
        """Registering Optional[str] leaves plain str alone."""
        catalog.add_type_values(Optional[str], ["x", None], "x")

        nullable = catalog.get_test_values_for(FieldRef("att1", Optional[str]))
        plain = catalog.get_test_values_for(FieldRef("att1", str))

        assert nullable == ["x", None]
        assert plain == ["A test string.", None]

    def test_non_null_fields(self, catalog):
        """Fields marked non-null never get None."""
        catalog.mark_non_null("count")

        values = catalog.get_test_values_for(FieldRef("count", Optional[int]))

        assert None not in values
        assert values == INT_RANGE

    def test_missing_test_data(self, catalog):
        """Types without values and without a way to generate them are a setup error."""
        with pytest.raises(NoTestDataFailure, match="No test data for type bytes"):
            catalog.get_test_values_for(FieldRef("blob", bytes))


class TestEnums:
    """Tests for enum test values."""

    def test_enum_values_are_populated_lazily(self, catalog):
        """All members and None, the first member is the training value."""
        ref = FieldRef("color", Optional[Color])

        with capture_logs() as logs:
            values = catalog.get_test_values_for(ref)

        assert values == [Color.RED, Color.GREEN, Color.BLUE, None]
        assert catalog.get_training_value_for(ref) is Color.RED
        assert logs[0]["event"] == "enum_test_values_registered"

    def test_ignored_enum_members(self, catalog):
        """Ignored member names are left out."""
        catalog.ignored_enum_members.add("RED")

        ref = FieldRef("color", Color)

        assert catalog.get_test_values_for(ref) == [Color.GREEN, Color.BLUE, None]
        assert catalog.get_training_value_for(ref) is Color.GREEN

    def test_all_members_ignored(self, catalog):
        """An enum without usable members has no test data."""
        catalog.ignored_enum_members.update({"RED", "GREEN", "BLUE"})

        with pytest.raises(NoTestDataFailure):
            catalog.get_test_values_for(FieldRef("color", Color))

    def test_member_ignored_after_registration(self, catalog):
        """Ignoring a member later still removes it from the registered values."""
        catalog.add_enum_values(Color)
        catalog.ignored_enum_members.add("RED")

        ref = FieldRef("color", Color)

        assert catalog.get_test_values_for(ref) == [Color.GREEN, Color.BLUE, None]
        assert catalog.get_training_value_for(ref) is Color.GREEN

    def test_every_member_ignored_after_registration(self, catalog):
        """Dropping every registered member leaves no test data."""
        catalog.add_enum_values(Color)
        catalog.ignored_enum_members.update({"RED", "GREEN", "BLUE"})

        with pytest.raises(NoTestDataFailure, match="are ignored"):
            catalog.get_test_values_for(FieldRef("color", Color))

    def test_name_ignored_after_registration(self, catalog):
        """Enum names registered for a field follow the ignored members."""
        catalog.add_enum_names("name", Color)
        catalog.ignored_enum_members.add("RED")

        ref = FieldRef("name", Optional[str])

        assert catalog.get_test_values_for(ref) == ["GREEN", "BLUE", None]
        assert catalog.get_training_value_for(ref) == "GREEN"

    def test_plain_strings_are_not_filtered(self, catalog):
        """Only fields fed with enum names are filtered by name."""
        catalog.add_field_values("label", ["RED", None])
        catalog.ignored_enum_members.add("RED")

        assert catalog.get_test_values_for(FieldRef("label", str)) == ["RED", None]

    def test_enum_names(self, catalog):
        """Enum names can feed string fields."""
        assert catalog.enum_names(Color) == ["RED", "GREEN", "BLUE", None]

    def test_populate_enum_defaults(self, catalog):
        """Enum fields and enum collection elements are registered up front."""
        added = catalog.populate_enum_defaults(
            [FieldRef("colors", List[Color]), FieldRef("name", str)]
        )

        assert added == [Color]
        assert catalog.has_type(Color)


class TestCollections:
    """Tests for values built from a collection's element type."""

    @pytest.mark.parametrize(
        "annotation, values",
        [
            (List[bool], [[True], [False], [], [True, False]]),
            (Optional[List[bool]], [[True], [False], [], [True, False], None]),
            (Set[bool], [{True}, {False}, set(), {True, False}]),
            (Tuple[bool, ...], [(True,), (False,), (), (True, False)]),
            (Sequence[bool], [[True], [False], [], [True, False]]),
        ],
    )
    def test_collection_values(self, catalog, annotation, values):
        """Singletons, the empty collection and one collection of every value."""
        assert catalog.get_test_values_for(FieldRef("flags", annotation)) == values

    def test_collection_training_value(self, catalog):
        """The training value is a singleton of the element's training value."""
        assert catalog.get_training_value_for(FieldRef("numbers", List[int])) == [1]

    def test_element_type_from_source(self, catalog):
        """An unparameterized collection takes its element type from the source."""
        source = Bag(items=[7])

        with capture_logs() as logs:
            values = catalog.get_test_values_for(FieldRef("items", list), source)

        assert values[0] == [INT_RANGE[0]]
        assert values[-1] == INT_RANGE
        assert logs[0]["event"] == "collection_element_type_inferred"
        assert logs[0]["field"] == "items"

    def test_empty_collection(self, catalog):
        """An empty unparameterized collection gives no element type."""
        with pytest.raises(
            EmptyCollectionError,
            match="Can't infer type parameter because collection items is empty.",
        ):
            catalog.get_test_values_for(FieldRef("items", list), Bag())

    def test_element_type_hint(self, catalog):
        """An explicit element type wins."""
        catalog.set_element_type("items", bool)

        assert catalog.get_test_values_for(FieldRef("items", list), Bag()) == [
            [True],
            [False],
            [],
            [True, False],
        ]


class TestGeneratingTypes:
    """Tests for values synthesized through single-argument constructors."""

    def test_generate_test_values(self):
        """Every int test value builds a Decimal."""
        assert generate_test_values(Decimal, int) == [Decimal(v) for v in INT_RANGE]

    def test_generate_test_values_keeps_none(self):
        """None is not constructed."""
        assert generate_test_values(Decimal, Optional[int])[-1] is None

    def test_generate_test_values_without_constructor(self):
        """Classes that can't be built from the generating type fail."""
        with pytest.raises(NoSuitableConstructorError):
            generate_test_values(Color, int)

    def test_field_values_are_generated(self, catalog):
        """The first type whose values all construct the field's class wins."""
        with capture_logs() as logs:
            values = catalog.get_test_values_for(FieldRef("price", Optional[Decimal]))

        assert values == [Decimal(v) for v in INT_RANGE] + [None]
        assert logs[-1]["event"] == "test_values_generated"
