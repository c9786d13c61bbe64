from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import structlog

from .catalog import TestValueCatalog
from .errors import AmbiguousMappingFailure, TrainingFailure
from .fields import FieldRef, fields_of, get_adapter
from .settings import VerifierSettings

logger = structlog.get_logger()

FieldMapping = Dict[FieldRef, FieldRef]
Mapper = Callable[[Any], Any]


def values_differ(reference: Any, trial: Any) -> bool:
    if reference is None and trial is None:
        return False
    if reference is None or trial is None:
        return True
    return bool(reference != trial)


class MappingLearner:
    """Learns which target field each source field is mapped to.

    Every source field is perturbed on its own, starting from a fresh source
    instance, and the mapped result is diffed against the reference target.
    The mapper is assumed to be pure, so perturbations are independent.
    """

    def __init__(
        self,
        mapper: Mapper,
        source_factory: Callable[[], Any],
        catalog: TestValueCatalog,
        settings: Optional[VerifierSettings] = None,
    ) -> None:
        self.mapper = mapper
        self.source_factory = source_factory
        self.catalog = catalog
        self.settings = settings or catalog.settings

    def learn(self, source_reference: Any, target_reference: Any) -> FieldMapping:
        target_fields = fields_of(target_reference, self.settings)
        mapping: FieldMapping = {}
        for source_field in fields_of(source_reference, self.settings):
            changed = self.shake(
                source_field, source_reference, target_reference, target_fields
            )
            if len(changed) > 1:
                names = [f.name for f in changed]
                logger.info(
                    "ambiguous_mapping",
                    source_field=source_field.name,
                    target_fields=names,
                )
                raise AmbiguousMappingFailure(source_field.name, names)
            if changed:
                logger.info(
                    "mapping_learned",
                    source_field=source_field.name,
                    target_field=changed[0].name,
                )
                mapping[source_field] = changed[0]
            else:
                logger.info("no_mapping", source_field=source_field.name)
        return mapping

    def perturbation_values(
        self, source_field: FieldRef, source_reference: Any
    ) -> List[Any]:
        catalog = self.catalog
        values = [catalog.get_training_value_for(source_field, source_reference)]
        for value in catalog.get_test_values_for(source_field, source_reference):
            if value not in values:
                values.append(value)
        if catalog.is_non_null(source_field.name):
            values = [v for v in values if v is not None]
        return values

    def shake(
        self,
        source_field: FieldRef,
        source_reference: Any,
        target_reference: Any,
        target_fields: List[FieldRef],
    ) -> List[FieldRef]:
        changed: List[FieldRef] = []
        for value in self.perturbation_values(source_field, source_reference):
            trial = self.apply(source_field, value)
            for target_field in self.changed_target_fields(
                target_reference, trial, target_fields
            ):
                if target_field not in changed:
                    changed.append(target_field)
        return changed

    def apply(self, source_field: FieldRef, value: Any) -> Any:
        try:
            source = self.source_factory()
            get_adapter(source, self.settings).set_value(source, source_field, value)
            return self.mapper(source)
        except Exception as e:  # anything the mapper under test raises
            raise TrainingFailure(source_field.name, value) from e

    def changed_target_fields(
        self, target_reference: Any, trial: Any, target_fields: List[FieldRef]
    ) -> List[FieldRef]:
        reference_adapter = get_adapter(target_reference, self.settings)
        trial_adapter = get_adapter(trial, self.settings)
        return [
            target_field
            for target_field in target_fields
            if values_differ(
                reference_adapter.get_value(target_reference, target_field),
                trial_adapter.get_value(trial, target_field),
            )
        ]
