"""Field-level conflict resolution when folding one party's data into another."""

import logging
from dataclasses import fields, replace
from typing import Any, Dict, Optional, TypeVar

from partyfed.domain.models import (
    IndividualAttributes,
    OrganizationAttributes,
    Party,
    PartyType,
    SourceRecord,
)
from partyfed.errors import InvalidInputError
from partyfed.resolution.config import ConflictConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

HIGHEST_QUALITY = "HIGHEST_QUALITY"

# Fields where the newest non-null value wins outright.
_MOST_RECENT_ORGANIZATION_FIELDS = ("website", "phone_number", "email", "employee_count", "annual_revenue")
_MOST_RECENT_INDIVIDUAL_FIELDS = ("email", "phone_number")

# Fields handled by dedicated rules in _merge_organization.
_SPECIAL_ORGANIZATION_FIELDS = frozenset({"industry_code", "industry", "aml_status"})


class ConflictResolutionService:
    """Merges field values coming from different source systems.

    Stateless apart from its injected tables, so one instance can be shared
    by every batch worker.
    """

    def __init__(self, config: Optional[ConflictConfig] = None):
        self.config = config or ConflictConfig()

    def field_quality(self, source_system: Optional[str], field_name: str) -> float:
        """Quality of ``field_name`` when supplied by ``source_system``.

        Returns:
            The table value; the unknown-source default (0.8) for systems or
            fields missing from the table; the missing-source default (0.5)
            when no system is given
        """
        if not source_system:
            return self.config.missing_source_quality
        scores = self.config.field_quality.get(source_system)
        if scores is None:
            return self.config.unknown_source_quality
        return scores.get(field_name, self.config.unknown_source_quality)

    def master_source_for_field(self, field_name: str) -> str:
        """Name the source system authoritative for ``field_name``.

        Pinned fields name their pinned source. Otherwise the system with the
        highest table quality above the unknown-source default is returned,
        and ``HIGHEST_QUALITY`` when no system stands out.
        """
        pinned = self.config.pinned_fields.get(field_name)
        if pinned:
            return pinned
        best_source, best_quality = HIGHEST_QUALITY, self.config.unknown_source_quality
        for source, scores in self.config.field_quality.items():
            quality = scores.get(field_name)
            if quality is not None and quality > best_quality:
                best_source, best_quality = source, quality
        return best_source

    def merge_field(
        self,
        field_name: str,
        existing_value: Optional[T],
        new_value: Optional[T],
        existing_source: Optional[str],
        new_source: Optional[str],
    ) -> Optional[T]:
        """Resolve one field between the existing and the incoming value.

        Args:
            field_name: Attribute name used for the quality lookup
            existing_value: Value currently on the party
            new_value: Value supplied by the incoming source
            existing_source: System that supplied ``existing_value``
            new_source: System that supplied ``new_value``

        Returns:
            The value to keep
        """
        if existing_value is None:
            return new_value
        if new_value is None or existing_value == new_value:
            return existing_value

        pinned = self.config.pinned_fields.get(field_name)
        if pinned is not None:
            if new_source == pinned:
                LOGGER.debug("Pinned field %s taken from %s", field_name, pinned)
                return new_value
            return existing_value

        existing_quality = self.field_quality(existing_source, field_name)
        new_quality = self.field_quality(new_source, field_name)
        if new_quality > existing_quality:
            LOGGER.debug(
                "Resolving %s conflict: choosing %s (%.2f > %.2f)",
                field_name, new_source, new_quality, existing_quality,
            )
            return new_value
        return existing_value

    def merge_updates(self, existing: Party, updates: Party, new_source: Optional[SourceRecord]) -> Party:
        """Fold ``updates`` into ``existing`` field by field.

        ``existing`` is modified in place (its attribute record replaced) and
        returned. Values on ``existing`` are attributed to its master source.

        Raises:
            InvalidInputError: If the parties carry different attribute kinds
        """
        if (existing.party_type is PartyType.INDIVIDUAL) != (updates.party_type is PartyType.INDIVIDUAL):
            raise InvalidInputError(
                f"cannot merge {updates.party_type.value} data into {existing.party_type.value} party"
            )

        master = existing.master_source
        existing_system = master.source_system if master else None
        new_system = new_source.source_system if new_source else None
        LOGGER.debug("Merging updates from %s into party %s", new_system, existing.id)

        if existing.party_type is PartyType.INDIVIDUAL:
            merged = self._merge_individual(existing.attributes, updates.attributes, existing_system, new_system)
        else:
            merged = self._merge_organization(existing.attributes, updates.attributes, existing_system, new_system)

        existing.attributes = merged
        existing.mark_updated()
        return existing

    def _merge_by_quality(
        self,
        existing: Any,
        updates: Any,
        existing_system: Optional[str],
        new_system: Optional[str],
        skip: frozenset,
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for attribute in fields(existing):
            name = attribute.name
            if name in skip:
                continue
            values[name] = self.merge_field(
                name,
                getattr(existing, name),
                getattr(updates, name),
                existing_system,
                new_system,
            )
        return values

    def _merge_organization(
        self,
        existing: OrganizationAttributes,
        updates: OrganizationAttributes,
        existing_system: Optional[str],
        new_system: Optional[str],
    ) -> OrganizationAttributes:
        skip = _SPECIAL_ORGANIZATION_FIELDS | frozenset(_MOST_RECENT_ORGANIZATION_FIELDS)
        values = self._merge_by_quality(existing, updates, existing_system, new_system, skip)

        for name in _MOST_RECENT_ORGANIZATION_FIELDS:
            incoming = getattr(updates, name)
            values[name] = incoming if incoming is not None else getattr(existing, name)

        # Prefer the more specific industry code (6-digit NAICS over 4-digit).
        industry_code, industry = existing.industry_code, existing.industry
        incoming_code = updates.industry_code
        if industry_code is None and incoming_code is not None:
            industry_code, industry = incoming_code, updates.industry
        elif (
            incoming_code is not None
            and len(incoming_code) > self.config.specific_industry_code_length
            and len(industry_code) < len(incoming_code)
        ):
            industry_code, industry = incoming_code, updates.industry
        if industry is None:
            industry = updates.industry
        values["industry_code"] = industry_code
        values["industry"] = industry

        aml_status = existing.aml_status
        if updates.aml_status is not None and (
            self.field_quality(new_system, "aml_status") >= self.config.aml_min_quality
        ):
            aml_status = updates.aml_status
        values["aml_status"] = aml_status

        return replace(existing, **values)

    def _merge_individual(
        self,
        existing: IndividualAttributes,
        updates: IndividualAttributes,
        existing_system: Optional[str],
        new_system: Optional[str],
    ) -> IndividualAttributes:
        skip = frozenset(_MOST_RECENT_INDIVIDUAL_FIELDS) | {"pep_status"}
        values = self._merge_by_quality(existing, updates, existing_system, new_system, skip)
        for name in _MOST_RECENT_INDIVIDUAL_FIELDS:
            incoming = getattr(updates, name)
            values[name] = incoming if incoming is not None else getattr(existing, name)
        values["pep_status"] = existing.pep_status or updates.pep_status
        return replace(existing, **values)
