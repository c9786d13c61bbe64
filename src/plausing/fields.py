from __future__ import annotations

import dataclasses
import sys
import typing
from dataclasses import dataclass, field
from enum import Enum
from inspect import Parameter, isclass, signature
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ConstructionFailure, NoSuitableConstructorError
from .settings import VerifierSettings
from .typeinfo import TypeInfo, is_collection_class

T = TypeVar("T")

# Calling these on a value converts lossily (int(1.9), str(anything)), so they
# never count as a conversion constructor.
COERCING_TYPES: Tuple[type, ...] = (bool, int, float, complex, str, bytes)


@dataclass(frozen=True)
class FieldRef:
    name: str
    annotation: Any = field(default=object, compare=False)
    declaring_type: type = object

    @property
    def type_info(self) -> TypeInfo:
        return TypeInfo.of(self.annotation)

    def __str__(self) -> str:
        return f"{self.declaring_type.__name__}.{self.name}"


def resolve_type_hints(cls: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError, AttributeError):
        # One unresolvable name (e.g. a class local to a function) must not
        # degrade the other fields, so every annotation is resolved on its own.
        hints: Dict[str, Any] = {}
        for klass in reversed(getattr(cls, "__mro__", (cls,))):
            module = sys.modules.get(getattr(klass, "__module__", ""))
            globalns = dict(vars(module)) if module is not None else {}
            localns = dict(vars(klass))
            for name, annotation in _own_annotations(klass).items():
                hints[name] = _evaluate(annotation, globalns, localns)
        return hints


def _evaluate(
    annotation: Any, globalns: Dict[str, Any], localns: Dict[str, Any]
) -> Any:
    if isinstance(annotation, typing.ForwardRef):
        annotation = annotation.__forward_arg__
    if not isinstance(annotation, str):
        return annotation
    try:
        return eval(annotation, globalns, localns)
    except (NameError, SyntaxError, TypeError, AttributeError):
        # Left as a string, the field is typed from its runtime value.
        return annotation


def is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return (
        annotation is typing.ClassVar
        or typing.get_origin(annotation) is typing.ClassVar
    )


def _own_annotations(klass: type) -> Dict[str, Any]:
    return klass.__dict__.get("__annotations__", {})


def _declaring_type(cls: type, name: str) -> type:
    for klass in cls.__mro__:
        if name in _own_annotations(klass):
            return klass
    return cls


class ObjectAdapter:
    """Field access for plain Python objects."""

    def __init__(self, settings: VerifierSettings) -> None:
        self.settings = settings

    def is_data_name(self, name: str) -> bool:
        if name.startswith("__"):
            return False
        if name.startswith("_") and not self.settings.include_private_fields:
            return False
        return not self.settings.is_noise(name)

    def get_declared_names(self, cls: type) -> Iterator[Tuple[str, type]]:
        for klass in cls.__mro__:
            if klass is object:
                continue
            for name in _own_annotations(klass):
                yield name, klass

    def fields_of(self, obj: Any) -> List[FieldRef]:
        cls = type(obj)
        hints = resolve_type_hints(cls)
        refs: List[FieldRef] = []
        seen: Set[str] = set()
        for name, declaring in self.get_declared_names(cls):
            if name in seen:
                continue
            seen.add(name)
            annotation = hints.get(name)
            if is_class_var(annotation) or not self.is_data_name(name):
                continue
            annotation = self._annotation_for(obj, name, annotation)
            refs.append(FieldRef(name, annotation, declaring))
        for name in getattr(obj, "__dict__", {}):
            if name in seen or not self.is_data_name(name):
                continue
            seen.add(name)
            refs.append(FieldRef(name, self._annotation_for(obj, name, None), cls))
        return refs

    def _annotation_for(self, obj: Any, name: str, annotation: Any) -> Any:
        if annotation is not None and not isinstance(annotation, str):
            return annotation
        value = getattr(obj, name, None)
        return object if value is None else type(value)

    def get_value(self, obj: Any, ref: FieldRef) -> Any:
        # A field never assigned on this instance reads as unset.
        return getattr(obj, ref.name, None)

    def set_value(self, obj: Any, ref: FieldRef, value: Any) -> None:
        setattr(obj, ref.name, value)


class DataclassAdapter(ObjectAdapter):
    def fields_of(self, obj: Any) -> List[FieldRef]:
        cls = type(obj)
        hints = resolve_type_hints(cls)
        return [
            FieldRef(
                f.name,
                self._annotation_for(obj, f.name, hints.get(f.name, f.type)),
                _declaring_type(cls, f.name),
            )
            for f in dataclasses.fields(obj)
            if self.is_data_name(f.name)
        ]

    def set_value(self, obj: Any, ref: FieldRef, value: Any) -> None:
        if type(obj).__dataclass_params__.frozen:
            object.__setattr__(obj, ref.name, value)
        else:
            setattr(obj, ref.name, value)


class PydanticModelAdapter(ObjectAdapter):
    def fields_of(self, obj: Any) -> List[FieldRef]:
        cls = type(obj)
        return [
            FieldRef(
                name,
                self._annotation_for(obj, name, field_info.annotation),
                _declaring_type(cls, name),
            )
            for name, field_info in cls.model_fields.items()
            if self.is_data_name(name)
        ]

    def set_value(self, obj: Any, ref: FieldRef, value: Any) -> None:
        if type(obj).model_config.get("frozen"):
            obj.__dict__[ref.name] = value
        else:
            setattr(obj, ref.name, value)


def get_adapter(obj: Any, settings: Optional[VerifierSettings] = None) -> ObjectAdapter:
    settings = settings or VerifierSettings()
    if isinstance(obj, BaseModel):
        return PydanticModelAdapter(settings)
    if dataclasses.is_dataclass(obj) and not isclass(obj):
        return DataclassAdapter(settings)
    return ObjectAdapter(settings)


def fields_of(obj: Any, settings: Optional[VerifierSettings] = None) -> List[FieldRef]:
    return get_adapter(obj, settings).fields_of(obj)


def create_instance(cls: Type[T]) -> T:
    try:
        return cls()
    except ValidationError as e:
        if issubclass(cls, BaseModel):
            return cls.model_construct()
        raise ConstructionFailure(
            f"Can't instantiate class {cls.__qualname__}: {e}"
        ) from e
    except TypeError as e:
        raise ConstructionFailure(
            f"Can't instantiate class {cls.__qualname__}: no suitable constructor ({e})"
        ) from e


def _init_hints(cls: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(cls.__init__)
    except (NameError, TypeError, AttributeError):
        return {}


def is_constructible(cls: Any) -> bool:
    return (
        isclass(cls)
        and cls is not object
        and cls not in COERCING_TYPES
        and not issubclass(cls, Enum)
        and not is_collection_class(cls)
    )


def construct_from(cls: Type[T], arg_type: Any, value: Any) -> T:
    """Build a `cls` from `value` through a single-argument constructor."""
    if not is_constructible(cls):
        raise NoSuitableConstructorError(cls if isclass(cls) else type(cls), arg_type)

    try:
        sig = signature(cls)
    except (TypeError, ValueError):
        sig = None  # builtin or extension type without introspectable signature

    if sig is not None:
        try:
            bound = sig.bind(value)
        except TypeError as e:
            raise NoSuitableConstructorError(cls, arg_type, str(e)) from e
        param_name = next(iter(bound.arguments))
        annotation = _init_hints(cls).get(param_name)
        if (
            sig.parameters[param_name].kind is not Parameter.VAR_POSITIONAL
            and annotation is not None
            and not TypeInfo.of(annotation).accepts(TypeInfo.of(arg_type))
        ):
            raise NoSuitableConstructorError(
                cls,
                arg_type,
                f"parameter {param_name} expects {TypeInfo.of(annotation)}",
            )

    try:
        return cls(value)
    except Exception as e:  # the constructor is user code
        raise NoSuitableConstructorError(cls, arg_type, str(e)) from e
