"""Type-directed guess of the value a correct mapper produces.

`expected_value` walks `STRATEGIES` in order. Every strategy either converts
the source value or declines with a reason. The first conversion wins, and if
all strategies decline an `OracleFailure` lists their reasons. A strategy
raises only when it applies but the value has no counterpart, such as an enum
member missing from the target enum.
"""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from .converters import ConverterRegistry
from .errors import NoSuchEnumMemberError, NoSuitableConstructorError, OracleFailure
from .fields import construct_from, is_constructible
from .settings import VerifierSettings
from .typeinfo import BOXING_PAIRS, TypeInfo

DEFAULT_SETTINGS = VerifierSettings()


@dataclass(frozen=True)
class Converted:
    value: Any


@dataclass(frozen=True)
class Declined:
    reason: str


Attempt = Union[Converted, Declined]


@dataclass(frozen=True)
class ConversionRequest:
    value: Any
    source: TypeInfo
    target: TypeInfo
    source_element: Optional[TypeInfo] = None
    target_element: Optional[TypeInfo] = None
    converters: Optional[ConverterRegistry] = None
    settings: VerifierSettings = DEFAULT_SETTINGS

    def describe(self) -> str:
        return f"{self.source} --> {self.target}"


class Strategy:
    name = "strategy"

    def attempt(self, request: ConversionRequest) -> Attempt:
        raise NotImplementedError


class RegisteredConverterStrategy(Strategy):
    name = "registered converter"

    def attempt(self, request: ConversionRequest) -> Attempt:
        converter = None
        if request.converters is not None:
            converter = request.converters.lookup(request.source, request.target)
        if converter is None:
            return Declined(f"no converter registered for {request.describe()}")
        return Converted(converter(request.value))


class CollectionStrategy(Strategy):
    name = "collection"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if not (request.source.is_collection and request.target.is_collection):
            return Declined("source and target are not both collections")
        if request.value is None:
            return Converted(None)

        source_element = request.source_element or request.source.element
        target_element = (
            request.target_element or request.target.element or source_element
        )
        mapped = []
        for element in request.value:
            element_source = source_element or TypeInfo(type(element))
            mapped.append(
                expected_value(
                    element,
                    element_source,
                    target_element or element_source,
                    converters=request.converters,
                    settings=request.settings,
                )
            )
        return Converted(type(request.value)(mapped))


class IdentityStrategy(Strategy):
    name = "identity"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if request.target.accepts(request.source):
            return Converted(request.value)
        return Declined(f"{request.target} does not accept {request.source}")


class EnumToEnumStrategy(Strategy):
    name = "enum to enum"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if not (request.source.is_enum and request.target.is_enum):
            return Declined("source and target are not both enums")
        if request.value is None:
            return Converted(None)
        return Converted(_enum_member(request.target.cls, request.value.name))


class StringToEnumStrategy(Strategy):
    name = "string to enum"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if not (request.source.is_text and request.target.is_enum):
            return Declined("not a string to enum mapping")
        if request.value is None:
            return Converted(None)
        return Converted(_enum_member(request.target.cls, request.value))


class EnumToStringStrategy(Strategy):
    name = "enum to string"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if not (request.source.is_enum and request.target.is_text):
            return Declined("not an enum to string mapping")
        if request.value is None:
            return Converted(None)
        return Converted(request.value.name)


class ConstructorStrategy(Strategy):
    name = "constructor"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if not is_constructible(request.target.cls):
            return Declined(f"{request.target} has no conversion constructor")
        if request.value is None:
            return Converted(None)
        try:
            converted = construct_from(
                request.target.cls, request.source.base, request.value
            )
        except NoSuitableConstructorError as e:
            return Declined(str(e))
        return Converted(converted)


class GetterStrategy(Strategy):
    name = "getter"

    def attempt(self, request: ConversionRequest) -> Attempt:
        getter = find_getter(request.source.cls, request.target, request.settings)
        if getter is None and request.target.is_boxed:
            getter = find_getter(
                request.source.cls, request.target.base, request.settings
            )
        if getter is None:
            return Declined(
                f"{request.source} has no getter returning {request.target}"
            )
        if request.value is None:
            return Converted(None)

        name, is_property = getter
        try:
            result = getattr(request.value, name)
            return Converted(result if is_property else result())
        except Exception as e:  # the getter is user code
            return Declined(f"getter {name} raised {e!r}")


class BoxingStrategy(Strategy):
    name = "boxing"

    def attempt(self, request: ConversionRequest) -> Attempt:
        if (request.source.key, request.target.key) in BOXING_PAIRS:
            return Converted(request.value)
        return Declined(f"{request.describe()} is not a boxing conversion")


STRATEGIES: Tuple[Strategy, ...] = (
    RegisteredConverterStrategy(),
    CollectionStrategy(),
    IdentityStrategy(),
    EnumToEnumStrategy(),
    StringToEnumStrategy(),
    EnumToStringStrategy(),
    ConstructorStrategy(),
    GetterStrategy(),
    BoxingStrategy(),
)


def expected_value(
    source_value: Any,
    source_type: Any,
    target_type: Any,
    source_element_type: Any = None,
    target_element_type: Any = None,
    converters: Optional[ConverterRegistry] = None,
    non_null: bool = False,
    settings: Optional[VerifierSettings] = None,
) -> Any:
    if source_value is None and non_null:
        return None

    request = ConversionRequest(
        value=source_value,
        source=TypeInfo.of(source_type),
        target=TypeInfo.of(target_type),
        source_element=_type_info_or_none(source_element_type),
        target_element=_type_info_or_none(target_element_type),
        converters=converters,
        settings=settings or DEFAULT_SETTINGS,
    )
    reasons: List[str] = []
    for strategy in STRATEGIES:
        attempt = strategy.attempt(request)
        if isinstance(attempt, Converted):
            return attempt.value
        reasons.append(f"{strategy.name}: {attempt.reason}")
    raise OracleFailure(
        f"No applicable mapping strategy for {source_value!r} ({request.describe()})",
        reasons,
    )


def _type_info_or_none(annotation: Any) -> Optional[TypeInfo]:
    return None if annotation is None else TypeInfo.of(annotation)


def _enum_member(enum_cls: type, name: Any) -> Any:
    try:
        return enum_cls[name]
    except KeyError:
        raise NoSuchEnumMemberError(enum_cls, name) from None


def _return_type(func: Any) -> Optional[TypeInfo]:
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError, AttributeError):
        hints = getattr(func, "__annotations__", {})
    annotation = hints.get("return")
    if annotation is None or isinstance(annotation, str):
        return None
    return TypeInfo.of(annotation)


def _takes_no_arguments(func: Any) -> bool:
    try:
        params = list(inspect.signature(func).parameters.values())[1:]
    except (TypeError, ValueError):
        return False
    return all(
        p.default is not inspect.Parameter.empty
        or p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        for p in params
    )


def find_getter(
    cls: type, target: TypeInfo, settings: VerifierSettings = DEFAULT_SETTINGS
) -> Optional[Tuple[str, bool]]:
    """Name of an accessor on `cls` whose declared return type is `target`.

    Properties and methods whose names look like accessors are preferred. Static
    methods, class methods and non-public names are never used. Returns
    ``(name, is_property)``.
    """
    preferred, others = [], []
    for name in sorted(dir(cls)):
        if name.startswith("_"):
            continue
        member = inspect.getattr_static(cls, name)
        if isinstance(member, property):
            func, is_property = member.fget, True
        elif inspect.isfunction(member) and _takes_no_arguments(member):
            func, is_property = member, False
        else:
            continue
        return_type = _return_type(func)
        if return_type is None or not target.assignable_from(return_type):
            continue
        if is_property or settings.is_accessor_name(name):
            preferred.append((name, is_property))
        else:
            others.append((name, is_property))
    candidates = preferred + others
    return candidates[0] if candidates else None

