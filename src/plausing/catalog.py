from __future__ import annotations

import math
import sys
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type

import structlog

from .errors import EmptyCollectionError, NoTestDataFailure, OracleFailure
from .fields import FieldRef, construct_from
from .overrides import NOTHING
from .settings import VerifierSettings
from .typeinfo import TypeInfo, is_collection_value

logger = structlog.get_logger()

CatalogKey = Tuple[type, bool]

INT_RANGE = [-(2**63), 2**63 - 1, 1, -1, 0]
FLOAT_RANGE = [math.ulp(0.0), sys.float_info.max, 1.0, -1.0, 0.0]


class TestValueCatalog:
    """Test and training values for one verification session.

    Values are looked up by field name first, then by the field's type. Types
    without an entry get values generated from another registered type, and
    collections get values built from their element type.
    """

    __test__ = False

    def __init__(self, settings: Optional[VerifierSettings] = None) -> None:
        self.settings = settings or VerifierSettings()
        self.values_by_field: Dict[str, List[Any]] = {}
        self.training_by_field: Dict[str, Any] = {}
        self.values_by_type: Dict[CatalogKey, List[Any]] = {}
        self.training_by_type: Dict[CatalogKey, Any] = {}
        self.non_null_fields: Set[str] = set()
        self.element_type_hints: Dict[str, TypeInfo] = {}
        self.ignored_enum_members: Set[str] = set(self.settings.ignored_enum_members)
        self.enum_name_fields: Dict[str, Type[Enum]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        text = self.settings.text_test_value
        test_date = self.settings.test_date
        test_datetime = datetime.combine(test_date, time())

        self.add_type_values(str, [text, None], text)
        self.add_type_values(int, INT_RANGE, 1)
        self.add_type_values(Optional[int], INT_RANGE + [None], 1)
        self.add_type_values(float, FLOAT_RANGE, 1.0)
        self.add_type_values(Optional[float], FLOAT_RANGE + [None], 1.0)
        self.add_type_values(bool, [True, False], True)
        self.add_type_values(Optional[bool], [True, False, None], True)
        self.add_type_values(date, [test_date, None], test_date)
        self.add_type_values(datetime, [test_datetime, None], test_datetime)

    # region Configuration

    def add_field_values(
        self, field_name: str, values: Sequence[Any], training_value: Any = NOTHING
    ) -> None:
        self.enum_name_fields.pop(field_name, None)
        self.values_by_field[field_name] = list(values)
        if training_value is not NOTHING:
            self.training_by_field[field_name] = training_value
        else:
            self.training_by_field.pop(field_name, None)

    def add_type_values(
        self, type_: Any, values: Sequence[Any], training_value: Any = NOTHING
    ) -> None:
        key = TypeInfo.of(type_).key
        self.values_by_type[key] = list(values)
        if training_value is not NOTHING:
            self.training_by_type[key] = training_value
        else:
            self.training_by_type.pop(key, None)

    def add_enum_values(self, enum_cls: Type[Enum]) -> None:
        members = self.enum_members(enum_cls)
        if not members:
            return
        self.add_type_values(enum_cls, members + [None], members[0])
        logger.debug(
            "enum_test_values_registered",
            enum=enum_cls.__qualname__,
            members=[m.name for m in members],
        )

    def enum_members(self, enum_cls: Type[Enum]) -> List[Enum]:
        return [m for m in enum_cls if m.name not in self.ignored_enum_members]

    def enum_names(self, enum_cls: Type[Enum]) -> List[Optional[str]]:
        return [m.name for m in self.enum_members(enum_cls)] + [None]

    def add_enum_names(self, field_name: str, enum_cls: Type[Enum]) -> None:
        names = self.enum_names(enum_cls)
        self.add_field_values(field_name, names, names[0])
        self.enum_name_fields[field_name] = enum_cls

    def is_ignored(self, ref: FieldRef, value: Any) -> bool:
        if isinstance(value, Enum):
            return value.name in self.ignored_enum_members
        return (
            ref.name in self.enum_name_fields
            and isinstance(value, str)
            and value in self.ignored_enum_members
        )

    def mark_non_null(self, field_name: str) -> None:
        self.non_null_fields.add(field_name)

    def is_non_null(self, field_name: str) -> bool:
        return field_name in self.non_null_fields

    def set_element_type(self, field_name: str, element_type: Any) -> None:
        self.element_type_hints[field_name] = TypeInfo.of(element_type)

    def has_type(self, type_: Any) -> bool:
        return TypeInfo.of(type_).key in self.values_by_type

    def populate_enum_defaults(self, fields: Iterable[FieldRef]) -> List[Type[Enum]]:
        added = []
        for ref in fields:
            info = ref.type_info
            candidates = [info, info.element] if info.element is not None else [info]
            for candidate in candidates:
                if candidate.is_enum and not self.has_type(candidate.cls):
                    self.add_enum_values(candidate.cls)
                    added.append(candidate.cls)
        return added

    # endregion

    def get_test_values_for(self, ref: FieldRef, source: Any = None) -> List[Any]:
        values = self._resolve(ref, source)
        if self.is_non_null(ref.name):
            return [v for v in values if v is not None]
        return values

    def get_training_value_for(self, ref: FieldRef, source: Any = None) -> Any:
        training = self._registered_training_value(ref)
        if training is not NOTHING and not self.is_ignored(ref, training):
            return training
        info = ref.type_info
        if info.is_collection and ref.name not in self.values_by_field:
            element = self._element_type_for(ref, source)
            element_ref = self._element_ref(ref, element)
            container = self._container_class(ref, source)
            return container([self.get_training_value_for(element_ref)])
        for value in self.get_test_values_for(ref, source):
            if value is not None:
                return value
        raise NoTestDataFailure(
            f"No training value for field {ref.name} of type {info.name}"
        )

    def _registered_training_value(self, ref: FieldRef) -> Any:
        if ref.name in self.training_by_field:
            return self.training_by_field[ref.name]
        if ref.name in self.values_by_field:
            return NOTHING
        info = ref.type_info
        for key in (info.key, info.base.key):
            if key in self.training_by_type:
                return self.training_by_type[key]
        return NOTHING

    def values_for_type(self, type_: Any) -> List[Any]:
        info = TypeInfo.of(type_)
        if info.is_enum and not self.has_type(info.cls):
            self.add_enum_values(info.cls)
        if info.key in self.values_by_type:
            return list(self.values_by_type[info.key])
        if info.nullable and info.base.key in self.values_by_type:
            values = list(self.values_by_type[info.base.key])
            return values if None in values else values + [None]
        raise NoTestDataFailure(f"No test data for type {info.name}")

    def _resolve(self, ref: FieldRef, source: Any) -> List[Any]:
        # Members ignored after their enum was registered are dropped here.
        found = self._lookup(ref, source)
        values = [v for v in found if not self.is_ignored(ref, v)]
        if len(values) < len(found) and all(v is None for v in values):
            raise NoTestDataFailure(f"All enum members of field {ref.name} are ignored")
        return values

    def _lookup(self, ref: FieldRef, source: Any) -> List[Any]:
        if ref.name in self.values_by_field:
            return list(self.values_by_field[ref.name])

        info = ref.type_info
        try:
            return self.values_for_type(info)
        except NoTestDataFailure:
            pass

        generated = self._generate(info)
        if generated is not None:
            return generated

        if info.is_collection:
            return self._collection_values(ref, source)

        raise NoTestDataFailure(
            f"No test data for type {info.name} (field {ref.name})"
        )

    def _generate(self, info: TypeInfo) -> Optional[List[Any]]:
        if info.cls is object:
            return None
        for key in list(self.values_by_type):
            generating = TypeInfo(key[0], key[1])
            try:
                values = generate_test_values(info.cls, generating, self)
            except OracleFailure:
                continue
            if info.nullable and None not in values:
                values.append(None)
            logger.debug(
                "test_values_generated", type=info.name, generating_type=generating.name
            )
            return values
        return None

    def _collection_values(self, ref: FieldRef, source: Any) -> List[Any]:
        element = self._element_type_for(ref, source)
        element_values = self._resolve(self._element_ref(ref, element), None)
        container = self._container_class(ref, source)
        values = [container([v]) for v in element_values]
        values.append(container())
        values.append(container(element_values))
        if ref.type_info.nullable:
            values.append(None)
        return values

    def _element_ref(self, ref: FieldRef, element: TypeInfo) -> FieldRef:
        return FieldRef(f"{ref.name}[]", element, ref.declaring_type)

    def _element_type_for(self, ref: FieldRef, source: Any) -> TypeInfo:
        if ref.name in self.element_type_hints:
            return self.element_type_hints[ref.name]
        declared = ref.type_info.element
        if declared is not None and declared.cls is not object:
            return declared
        current = getattr(source, ref.name, None) if source is not None else None
        if is_collection_value(current):
            for element in current:
                if element is not None:
                    logger.debug(
                        "collection_element_type_inferred",
                        field=ref.name,
                        element_type=type(element).__qualname__,
                    )
                    return TypeInfo(type(element))
        raise EmptyCollectionError(ref.name)

    def _container_class(self, ref: FieldRef, source: Any) -> type:
        concrete = ref.type_info.concrete_collection_class()
        if concrete is not None:
            return concrete
        current = getattr(source, ref.name, None) if source is not None else None
        if is_collection_value(current):
            return type(current)
        return list


def generate_test_values(
    target_cls: type, generating_type: Any, catalog: Optional[TestValueCatalog] = None
) -> List[Any]:
    """Build a `target_cls` from every catalog value of `generating_type`.

    With ``int`` as the generating type, a class taking one int argument gets one
    instance per int test value, and ``None`` stays ``None``. Raises an
    `OracleFailure` when any value can't be constructed.
    """
    catalog = catalog or TestValueCatalog()
    generating = TypeInfo.of(generating_type)
    return [
        None if value is None else construct_from(target_cls, generating.base, value)
        for value in catalog.values_for_type(generating)
    ]
