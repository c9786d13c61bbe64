from __future__ import annotations

from collections.abc import Set as AbstractSet
from enum import Enum
from functools import partial
from inspect import isclass
from typing import (
    Any,
    Callable,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Set,
    Type,
    Union,
)

import structlog

from .catalog import TestValueCatalog
from .converters import (
    Converter,
    ConverterRegistry,
    TypePair,
    ValueConverter,
    value_list_converter,
)
from .errors import (
    ConstructionFailure,
    OracleFailure,
    UncoveredTargetFieldsFailure,
    ValueMismatchFailure,
)
from .fields import FieldRef, create_instance, fields_of, get_adapter
from .learner import FieldMapping, Mapper, MappingLearner
from .oracle import expected_value
from .overrides import ANY, NOTHING, Override, OverrideRegistry
from .settings import VerifierSettings
from .typeinfo import TypeInfo, is_collection_value

logger = structlog.get_logger()

SourceFactory = Union[Callable[[], Any], Type[Any]]


def structurally_equal(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return actual is expected
    if is_collection_value(actual) and is_collection_value(expected):
        if isinstance(actual, AbstractSet) or isinstance(expected, AbstractSet):
            return set(actual) == set(expected)
        return len(actual) == len(expected) and all(
            structurally_equal(a, e) for a, e in zip(actual, expected)
        )
    return bool(actual == expected)


class MappingVerifier:
    """Asserts that a mapper maps SOURCE to TARGET in a plausible way.

    The verifier checks that:

    - every target field is set by the mapper, unless it is ignored,
    - every source field is mapped to at most one target field,
    - the mapper accepts the whole test range of every source field,
    - every test value ends up in its target field as the value the oracle
      (or a declared override) expects.

    Fields are assumed to be independent: each one is tested in isolation,
    so a run costs O(n) mapper calls for n fields.

    Configuration methods return the verifier, so they can be chained:

        MappingVerifier().ignore_target_fields("id").verify(to_dto, Entity)
    """

    def __init__(
        self, settings: Optional[VerifierSettings] = None, **options: Any
    ) -> None:
        settings = settings or VerifierSettings()
        if options:
            settings = VerifierSettings(**{**settings.model_dump(), **options})
        self.settings = settings
        self.catalog = TestValueCatalog(settings)
        self.converters = ConverterRegistry()
        self.overrides = OverrideRegistry()
        self.ignored_target_fields: Set[str] = set()

    # region Configuration

    def ignore_target_fields(self, *names: str) -> "MappingVerifier":
        self.ignored_target_fields.update(names)
        return self

    def with_test_values_for_field(
        self, field_name: str, values: Sequence[Any], training_value: Any = NOTHING
    ) -> "MappingVerifier":
        self.catalog.add_field_values(field_name, values, training_value)
        return self

    def with_test_values_for_type(
        self, type_: Any, values: Sequence[Any], training_value: Any = NOTHING
    ) -> "MappingVerifier":
        self.catalog.add_type_values(type_, values, training_value)
        return self

    def with_enum_test_values(self, enum_cls: Type[Enum]) -> "MappingVerifier":
        self.catalog.add_enum_values(enum_cls)
        return self

    def with_enum_names_for_field(
        self, field_name: str, enum_cls: Type[Enum]
    ) -> "MappingVerifier":
        self.catalog.add_enum_names(field_name, enum_cls)
        return self

    def ignore_enum_members(self, *names: str) -> "MappingVerifier":
        self.catalog.ignored_enum_members.update(names)
        return self

    def with_converter(
        self,
        converter_or_source: Any,
        target_type: Any = None,
        function: Optional[ValueConverter] = None,
    ) -> "MappingVerifier":
        if isinstance(converter_or_source, Converter):
            self.converters.register(converter_or_source)
        elif function is None:
            raise TypeError(
                "with_converter() needs a Converter or source type, target type "
                "and function."
            )
        else:
            self.converters.register(
                Converter(TypePair.of(converter_or_source, target_type), function)
            )
        return self

    def with_value_list_converter(
        self,
        source_type: Any,
        target_type: Any,
        source_values: Sequence[Any],
        target_values: Sequence[Any],
    ) -> "MappingVerifier":
        self.converters.register(
            value_list_converter(source_type, target_type, source_values, target_values)
        )
        return self

    def with_override(
        self,
        source_field: str,
        target_field: str,
        *,
        expected: Any = NOTHING,
        transform: Optional[ValueConverter] = None,
        source_value: Any = ANY,
    ) -> "MappingVerifier":
        self.overrides.add(
            Override(source_field, target_field, source_value, expected, transform)
        )
        return self

    def exclude_null_values(self, *field_names: str) -> "MappingVerifier":
        for name in field_names:
            self.catalog.mark_non_null(name)
        return self

    def with_collection_element_type(
        self, field_name: str, element_type: Any
    ) -> "MappingVerifier":
        self.catalog.set_element_type(field_name, element_type)
        return self

    # endregion

    def verify(self, mapper: Mapper, source_factory: SourceFactory) -> FieldMapping:
        """Verify `mapper` and return the source-to-target field mapping it learned.

        Args:
            mapper: Function under test, SOURCE -> TARGET.
            source_factory: Zero-argument callable returning a fresh SOURCE, or
                the SOURCE class itself.
        """
        factory = self._as_factory(source_factory)
        try:
            source_reference = factory()
        except Exception as e:
            raise ConstructionFailure("Unable to get instance of source") from e
        try:
            target_reference = mapper(source_reference)
        except Exception as e:
            raise ConstructionFailure(
                "Exception while creating target reference"
            ) from e

        log = logger.bind(
            source=type(source_reference).__qualname__,
            target=type(target_reference).__qualname__,
        )
        log.info("mapper_verification_started")

        source_fields = fields_of(source_reference, self.settings)
        target_fields = fields_of(target_reference, self.settings)
        self.catalog.populate_enum_defaults(source_fields)

        learner = MappingLearner(mapper, factory, self.catalog, self.settings)
        mapping = learner.learn(source_reference, target_reference)

        self.assert_all_target_fields_are_mapped(target_fields, mapping)
        for source_field in source_fields:
            target_field = mapping.get(source_field)
            if target_field is None:
                continue
            log.info(
                "testing_field_mapping",
                source_field=source_field.name,
                target_field=target_field.name,
            )
            values = self.catalog.get_test_values_for(source_field, source_reference)
            for value in values:
                self.assert_field_is_mapped_to_expected_value(
                    learner, source_field, target_field, value
                )

        log.info("mapper_verification_passed", mapped_fields=len(mapping))
        return mapping

    def assert_all_target_fields_are_mapped(
        self, target_fields: Iterable[FieldRef], mapping: FieldMapping
    ) -> None:
        mapped = set(mapping.values())
        unmapped = [
            f.name
            for f in target_fields
            if f not in mapped and f.name not in self.ignored_target_fields
        ]
        if unmapped:
            raise UncoveredTargetFieldsFailure(unmapped)

    def assert_field_is_mapped_to_expected_value(
        self,
        learner: MappingLearner,
        source_field: FieldRef,
        target_field: FieldRef,
        value: Any,
    ) -> None:
        target = learner.apply(source_field, value)
        actual = get_adapter(target, self.settings).get_value(target, target_field)

        has_override, expected = self.overrides.lookup(
            source_field.name, target_field.name, value
        )
        if not has_override:
            try:
                expected = self.expected_value(source_field, target_field, value)
            except OracleFailure as e:
                raise ValueMismatchFailure(
                    source_field.name,
                    target_field.name,
                    value,
                    None,
                    actual,
                    reason=f"can't guess the expected value: {e}",
                ) from e

        if not structurally_equal(actual, expected):
            raise ValueMismatchFailure(
                source_field.name,
                target_field.name,
                value,
                expected,
                actual,
                overridden=has_override,
            )

    def expected_value(
        self, source_field: FieldRef, target_field: FieldRef, value: Any
    ) -> Any:
        return expected_value(
            value,
            source_field.type_info,
            target_field.type_info,
            self._element_type(source_field),
            self._element_type(target_field),
            converters=self.converters,
            non_null=self.catalog.is_non_null(source_field.name),
            settings=self.settings,
        )

    def _element_type(self, ref: FieldRef) -> Optional[TypeInfo]:
        return self.catalog.element_type_hints.get(ref.name, ref.type_info.element)

    @staticmethod
    def _as_factory(source_factory: SourceFactory) -> Callable[[], Any]:
        if isclass(source_factory):
            return partial(create_instance, source_factory)
        return source_factory


def verify_mapping(
    mapper: Mapper,
    source_factory: SourceFactory,
    *,
    ignore_target_fields: Iterable[str] = (),
    non_null_fields: Iterable[str] = (),
    element_types: Optional[Mapping[str, Any]] = None,
    converters: Iterable[Converter] = (),
    settings: Optional[VerifierSettings] = None,
) -> FieldMapping:
    """Verify `mapper` in one call. See `MappingVerifier` for the checks performed."""
    verifier = MappingVerifier(settings)
    verifier.ignore_target_fields(*ignore_target_fields)
    verifier.exclude_null_values(*non_null_fields)
    for field_name, element_type in (element_types or {}).items():
        verifier.with_collection_element_type(field_name, element_type)
    for converter in converters:
        verifier.with_converter(converter)
    return verifier.verify(mapper, source_factory)
