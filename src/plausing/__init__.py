from .catalog import TestValueCatalog, generate_test_values
from .converters import (
    INT_TO_FLOAT,
    Converter,
    ConverterRegistry,
    TypePair,
    value_list_converter,
)
from .errors import (
    AmbiguousMappingFailure,
    ConstructionFailure,
    EmptyCollectionError,
    NoSuchEnumMemberError,
    NoSuitableConstructorError,
    NoTestDataFailure,
    OracleFailure,
    PlausingError,
    TrainingFailure,
    UncoveredTargetFieldsFailure,
    ValueMismatchFailure,
    VerificationFailure,
)
from .fields import FieldRef, create_instance, fields_of
from .learner import MappingLearner
from .oracle import expected_value
from .overrides import ANY, Override, OverrideRegistry
from .settings import VerifierSettings
from .typeinfo import TypeInfo
from .verifier import MappingVerifier, verify_mapping

__all__ = [
    "ANY",
    "AmbiguousMappingFailure",
    "ConstructionFailure",
    "Converter",
    "ConverterRegistry",
    "EmptyCollectionError",
    "FieldRef",
    "INT_TO_FLOAT",
    "MappingLearner",
    "MappingVerifier",
    "NoSuchEnumMemberError",
    "NoSuitableConstructorError",
    "NoTestDataFailure",
    "OracleFailure",
    "Override",
    "OverrideRegistry",
    "PlausingError",
    "TestValueCatalog",
    "TrainingFailure",
    "TypeInfo",
    "TypePair",
    "UncoveredTargetFieldsFailure",
    "ValueMismatchFailure",
    "VerificationFailure",
    "VerifierSettings",
    "create_instance",
    "expected_value",
    "fields_of",
    "generate_test_values",
    "value_list_converter",
    "verify_mapping",
]
