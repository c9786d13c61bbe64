from __future__ import annotations

import collections.abc
import typing
from dataclasses import dataclass
from enum import Enum
from types import UnionType
from typing import Any, Optional, Tuple, Union

NUMERIC_PRIMITIVES: Tuple[type, ...] = (int, float, complex)

# PEP 484 numeric tower: an int is acceptable where a float or complex is expected.
NUMERIC_PROMOTIONS = {
    (int, float),
    (int, complex),
    (float, complex),
}

_NON_COLLECTION_ITERABLES = (str, bytes, bytearray, memoryview)

_ABSTRACT_COLLECTIONS = {
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
}


@dataclass(frozen=True)
class TypeInfo:
    """A field annotation reduced to what the oracle and the catalog reason about."""

    cls: type = object
    nullable: bool = False
    element: Optional["TypeInfo"] = None

    @classmethod
    def of(cls, annotation: Any) -> "TypeInfo":
        if isinstance(annotation, TypeInfo):
            return annotation
        if annotation is None or annotation is type(None):
            return cls(object, nullable=True)
        if annotation is Any or isinstance(annotation, (str, typing.ForwardRef)):
            return cls(object)

        origin = typing.get_origin(annotation)
        args = typing.get_args(annotation)

        if origin is Union or origin is UnionType:
            members = [arg for arg in args if arg is not type(None)]
            nullable = len(members) < len(args)
            if len(members) == 1:
                inner = cls.of(members[0])
                return cls(inner.cls, nullable or inner.nullable, inner.element)
            return cls(object, nullable)

        if origin is typing.ClassVar:
            return cls.of(args[0]) if args else cls(object)

        if origin is not None and isinstance(origin, type):
            if issubclass(origin, collections.abc.Collection) and not issubclass(
                origin, (collections.abc.Mapping,) + _NON_COLLECTION_ITERABLES
            ):
                element = None
                if args and args[0] is not Ellipsis:
                    element = cls.of(args[0])
                return cls(origin, element=element)
            return cls(origin)

        if isinstance(annotation, type):
            return cls(annotation)
        return cls(object)

    @property
    def base(self) -> "TypeInfo":
        return TypeInfo(self.cls, False, self.element)

    @property
    def key(self) -> Tuple[type, bool]:
        return self.cls, self.nullable

    @property
    def name(self) -> str:
        name = getattr(self.cls, "__qualname__", repr(self.cls))
        if self.element is not None:
            name = f"{name}[{self.element.name}]"
        return f"Optional[{name}]" if self.nullable else name

    @property
    def is_enum(self) -> bool:
        return issubclass(self.cls, Enum)

    @property
    def is_text(self) -> bool:
        return issubclass(self.cls, str) and not self.is_enum

    @property
    def is_collection(self) -> bool:
        return is_collection_class(self.cls)

    @property
    def is_primitive(self) -> bool:
        return self.cls in NUMERIC_PRIMITIVES and not self.nullable

    @property
    def is_boxed(self) -> bool:
        return self.cls in NUMERIC_PRIMITIVES and self.nullable

    def concrete_collection_class(self) -> Optional[type]:
        if not self.is_collection:
            return None
        if self.cls in _ABSTRACT_COLLECTIONS:
            return _ABSTRACT_COLLECTIONS[self.cls]
        if getattr(self.cls, "__abstractmethods__", None):
            return None
        return self.cls

    def accepts(self, other: "TypeInfo") -> bool:
        """Whether a value declared as `other` can be stored unchanged as `self`."""
        if self.cls is object:
            return True
        if other.is_boxed and not self.nullable:
            return False
        if (other.cls, self.cls) in NUMERIC_PROMOTIONS:
            return True
        return issubclass(other.cls, self.cls)

    def assignable_from(self, other: "TypeInfo") -> bool:
        """Declared-type compatibility where a numeric and its nullable box differ."""
        if self.cls in NUMERIC_PRIMITIVES or other.cls in NUMERIC_PRIMITIVES:
            return other.cls is self.cls and other.nullable == self.nullable
        return self.cls is object or issubclass(other.cls, self.cls)

    def __str__(self) -> str:
        return self.name


def is_collection_class(cls: type) -> bool:
    return (
        isinstance(cls, type)
        and issubclass(cls, collections.abc.Collection)
        and not issubclass(cls, _NON_COLLECTION_ITERABLES)
        and not issubclass(cls, collections.abc.Mapping)
        and not issubclass(cls, Enum)
    )


def is_collection_value(value: Any) -> bool:
    return value is not None and is_collection_class(type(value))


BOXING_PAIRS = {
    (TypeInfo(primitive, nullable=True).key, TypeInfo(primitive).key)
    for primitive in NUMERIC_PRIMITIVES
} | {
    (TypeInfo(primitive).key, TypeInfo(primitive, nullable=True).key)
    for primitive in NUMERIC_PRIMITIVES
}
