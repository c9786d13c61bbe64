from __future__ import annotations

from typing import Any, List, Optional, Sequence


class PlausingError(Exception):
    pass


class VerificationFailure(PlausingError, AssertionError):
    """The mapper under test does not behave like a plausible mapper."""


class ConstructionFailure(VerificationFailure):
    pass


class TrainingFailure(VerificationFailure):
    def __init__(self, field_name: str, value: Any) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(
            "Exception while training the mapping using field "
            f"{field_name} with value {value!r}"
        )


class AmbiguousMappingFailure(VerificationFailure):
    def __init__(self, field_name: str, target_fields: Sequence[str]) -> None:
        self.field_name = field_name
        self.target_fields = list(target_fields)
        super().__init__(
            "Source field maps to more than one target fields. "
            f"Mapping error: {field_name} --> [{', '.join(self.target_fields)}]"
        )


class UncoveredTargetFieldsFailure(VerificationFailure):
    def __init__(self, field_names: Sequence[str]) -> None:
        self.field_names = list(field_names)
        super().__init__(f"Unchanged target fields: {', '.join(self.field_names)}")


class ValueMismatchFailure(VerificationFailure):
    def __init__(
        self,
        source_field: str,
        target_field: str,
        source_value: Any,
        expected: Any,
        actual: Any,
        overridden: bool = False,
        reason: str = "",
    ) -> None:
        self.source_field = source_field
        self.target_field = target_field
        self.source_value = source_value
        self.expected = expected
        self.actual = actual
        self.overridden = overridden
        kind = "Error in mapping (with override)" if overridden else "Error in mapping"
        if reason:
            detail = f"source value {source_value!r}: {reason}"
        else:
            detail = (
                f"source value {source_value!r}: "
                f"expected {expected!r} but was {actual!r}"
            )
        super().__init__(f"{kind} {source_field} --> {target_field}, {detail}")


class NoTestDataFailure(PlausingError, LookupError):
    """The catalog could not resolve test values for a field. This is a setup gap."""


class EmptyCollectionError(NoTestDataFailure):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(
            f"Can't infer type parameter because collection {field_name} is empty."
        )


class OracleFailure(PlausingError, ValueError):
    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        self.reasons = list(reasons or [])
        if self.reasons:
            message = f"{message} ({'; '.join(self.reasons)})"
        super().__init__(message)


class NoSuchEnumMemberError(OracleFailure):
    def __init__(self, enum_cls: type, name: Any) -> None:
        self.enum_cls = enum_cls
        self.name = name
        super().__init__(f"{enum_cls.__name__} has no member named {name!r}")


class NoSuitableConstructorError(OracleFailure):
    def __init__(self, cls: type, arg_type: Any, detail: str = "") -> None:
        self.cls = cls
        self.arg_type = arg_type
        arg_name = getattr(arg_type, "__name__", None) or str(arg_type)
        message = f"{cls.__name__} has no suitable constructor taking {arg_name}"
        super().__init__(f"{message}: {detail}" if detail else message)
