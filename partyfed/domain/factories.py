"""Constructors that apply defaults deterministically.

Every factory accepts optional ``party_id`` and ``now`` so callers (and tests)
control identity and timestamps; otherwise a uuid4 and the current UTC time
are used.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from partyfed.domain.models import (
    Address,
    IndividualAttributes,
    OrganizationAttributes,
    Party,
    PartyStatus,
    PartyType,
    SourceRecord,
    payload_checksum,
    utcnow,
)
from partyfed.errors import InvalidInputError


def new_party_id() -> str:
    return str(uuid.uuid4())


def _build_party(
    party_type: PartyType,
    attributes: Any,
    *,
    party_id: Optional[str],
    status: PartyStatus,
    confidence: float,
    source_records: Iterable[SourceRecord],
    now: Optional[datetime],
) -> Party:
    timestamp = now or utcnow()
    party = Party(
        id=party_id or new_party_id(),
        party_type=party_type,
        attributes=attributes,
        status=status,
        confidence=confidence,
        created_at=timestamp,
        updated_at=timestamp,
    )
    for record in source_records:
        party.add_source_record(record)
    return party


def new_organization(
    legal_name: Optional[str],
    *,
    name: Optional[str] = None,
    lei: Optional[str] = None,
    registration_number: Optional[str] = None,
    jurisdiction: Optional[str] = None,
    industry_code: Optional[str] = None,
    industry: Optional[str] = None,
    incorporation_date: Optional[date] = None,
    tier: Optional[str] = None,
    risk_rating: Optional[str] = None,
    aml_status: Optional[str] = None,
    website: Optional[str] = None,
    phone_number: Optional[str] = None,
    email: Optional[str] = None,
    tax_id: Optional[str] = None,
    employee_count: Optional[int] = None,
    annual_revenue: Optional[float] = None,
    registered_address: Optional[Address] = None,
    status: PartyStatus = PartyStatus.ACTIVE,
    confidence: float = 1.0,
    source_records: Iterable[SourceRecord] = (),
    party_id: Optional[str] = None,
    now: Optional[datetime] = None,
    party_type: PartyType = PartyType.ORGANIZATION,
) -> Party:
    """Create an organization party.

    Args:
        legal_name: Registered legal name
        status: Initial lifecycle status (default ``ACTIVE``)
        confidence: Initial confidence in [0, 1]
        source_records: Records to attach; only the first master is kept as master
        party_id: Explicit federated id; a uuid4 string when omitted
        now: Timestamp for ``created_at``/``updated_at``

    Returns:
        The new Party
    """
    if party_type is PartyType.INDIVIDUAL:
        raise InvalidInputError("use new_individual for INDIVIDUAL parties")
    attributes = OrganizationAttributes(
        legal_name=legal_name,
        name=name,
        lei=lei,
        registration_number=registration_number,
        jurisdiction=jurisdiction,
        industry_code=industry_code,
        industry=industry,
        incorporation_date=incorporation_date,
        tier=tier,
        risk_rating=risk_rating,
        aml_status=aml_status,
        website=website,
        phone_number=phone_number,
        email=email,
        tax_id=tax_id,
        employee_count=employee_count,
        annual_revenue=annual_revenue,
        registered_address=registered_address,
    )
    return _build_party(
        party_type,
        attributes,
        party_id=party_id,
        status=status,
        confidence=confidence,
        source_records=source_records,
        now=now,
    )


def new_legal_entity(legal_name: Optional[str], **kwargs: Any) -> Party:
    """Create a LEGAL_ENTITY party; accepts the same fields as :func:`new_organization`."""
    kwargs["party_type"] = PartyType.LEGAL_ENTITY
    return new_organization(legal_name, **kwargs)


def new_individual(
    first_name: Optional[str],
    last_name: Optional[str],
    *,
    middle_name: Optional[str] = None,
    date_of_birth: Optional[date] = None,
    nationality: Optional[str] = None,
    residency: Optional[str] = None,
    email: Optional[str] = None,
    phone_number: Optional[str] = None,
    national_id: Optional[str] = None,
    passport_number: Optional[str] = None,
    residential_address: Optional[Address] = None,
    pep_status: bool = False,
    status: PartyStatus = PartyStatus.ACTIVE,
    confidence: float = 1.0,
    source_records: Iterable[SourceRecord] = (),
    party_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Party:
    attributes = IndividualAttributes(
        first_name=first_name,
        middle_name=middle_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        nationality=nationality,
        residency=residency,
        email=email,
        phone_number=phone_number,
        national_id=national_id,
        passport_number=passport_number,
        residential_address=residential_address,
        pep_status=pep_status,
    )
    return _build_party(
        PartyType.INDIVIDUAL,
        attributes,
        party_id=party_id,
        status=status,
        confidence=confidence,
        source_records=source_records,
        now=now,
    )


def new_source_record(
    source_system: str,
    source_id: str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    quality_score: float = 0.8,
    field_quality: Optional[Mapping[str, float]] = None,
    master_source: bool = False,
    synced_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> SourceRecord:
    """Create a version-1 source record with its checksum computed.

    ``synced_at`` defaults to ``now`` (or the current UTC time).
    """
    if not source_system or not source_id:
        raise InvalidInputError("source_system and source_id are required")
    if not 0.0 <= quality_score <= 1.0:
        raise InvalidInputError(f"quality_score must be within [0, 1], got {quality_score}")
    body = dict(payload or {})
    return SourceRecord(
        source_system=source_system,
        source_id=source_id,
        payload=body,
        checksum=payload_checksum(body),
        synced_at=synced_at or now or utcnow(),
        quality_score=quality_score,
        field_quality=dict(field_quality or {}),
        master_source=master_source,
    )
