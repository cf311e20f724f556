"""Postal address normalization and similarity."""

import re
from types import MappingProxyType
from typing import Mapping, Optional

from partyfed.domain.models import Address
from partyfed.resolution.similarity import levenshtein_ratio

STREET_TYPES: Mapping[str, str] = MappingProxyType({
    "ALLEY": "ALY",
    "AVENUE": "AVE",
    "BOULEVARD": "BLVD",
    "CIRCLE": "CIR",
    "COURT": "CT",
    "DRIVE": "DR",
    "EXPRESSWAY": "EXPY",
    "HIGHWAY": "HWY",
    "LANE": "LN",
    "PARKWAY": "PKWY",
    "PLACE": "PL",
    "ROAD": "RD",
    "SQUARE": "SQ",
    "STREET": "ST",
    "TERRACE": "TER",
    "TRAIL": "TRL",
})

DIRECTIONALS: Mapping[str, str] = MappingProxyType({
    "NORTH": "N",
    "SOUTH": "S",
    "EAST": "E",
    "WEST": "W",
    "NORTHEAST": "NE",
    "NORTHWEST": "NW",
    "SOUTHEAST": "SE",
    "SOUTHWEST": "SW",
})

UNIT_TYPES: Mapping[str, str] = MappingProxyType({
    "APARTMENT": "APT",
    "BUILDING": "BLDG",
    "FLOOR": "FL",
    "SUITE": "STE",
    "ROOM": "RM",
})

US_STATES: Mapping[str, str] = MappingProxyType({
    "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR",
    "CALIFORNIA": "CA", "COLORADO": "CO", "CONNECTICUT": "CT", "DELAWARE": "DE",
    "DISTRICT OF COLUMBIA": "DC", "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI",
    "IDAHO": "ID", "ILLINOIS": "IL", "INDIANA": "IN", "IOWA": "IA",
    "KANSAS": "KS", "KENTUCKY": "KY", "LOUISIANA": "LA", "MAINE": "ME",
    "MARYLAND": "MD", "MASSACHUSETTS": "MA", "MICHIGAN": "MI", "MINNESOTA": "MN",
    "MISSISSIPPI": "MS", "MISSOURI": "MO", "MONTANA": "MT", "NEBRASKA": "NE",
    "NEVADA": "NV", "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM",
    "NEW YORK": "NY", "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND", "OHIO": "OH",
    "OKLAHOMA": "OK", "OREGON": "OR", "PENNSYLVANIA": "PA", "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC", "SOUTH DAKOTA": "SD", "TENNESSEE": "TN", "TEXAS": "TX",
    "UTAH": "UT", "VERMONT": "VT", "VIRGINIA": "VA", "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV", "WISCONSIN": "WI", "WYOMING": "WY",
})

_TOKEN_ABBREVIATIONS: Mapping[str, str] = MappingProxyType({
    **STREET_TYPES,
    **DIRECTIONALS,
    **UNIT_TYPES,
})

_WHITESPACE = re.compile(r"\s+")
_ORDINAL = re.compile(r"\b(\d+)(ST|ND|RD|TH)\b")
_POSTAL_SEPARATORS = re.compile(r"[\s-]")
_ZIP_PLUS_FOUR = re.compile(r"^\d{9}$")


def _collapse(value: str) -> str:
    return _WHITESPACE.sub(" ", value.upper().replace(".", "").replace(",", " ")).strip()


def normalize_street(line: Optional[str]) -> str:
    """Abbreviate street types, directionals and unit types; strip ordinal suffixes.

    >>> normalize_street("350 Fifth Avenue North, Suite 5")
    '350 FIFTH AVE N STE 5'
    """
    if not line:
        return ""
    tokens = [_TOKEN_ABBREVIATIONS.get(token, token) for token in _collapse(line).split(" ")]
    return _ORDINAL.sub(r"\1", " ".join(tokens))


def normalize_city(city: Optional[str]) -> str:
    return _collapse(city) if city else ""


def normalize_state(state: Optional[str]) -> str:
    """Map full US state names to their 2-letter codes; other values are uppercased."""
    if not state:
        return ""
    collapsed = _collapse(state)
    return US_STATES.get(collapsed, collapsed)


def normalize_postal_code(postal_code: Optional[str]) -> str:
    """Remove spaces and hyphens; reduce a 9-digit ZIP+4 to ZIP5."""
    if not postal_code:
        return ""
    compact = _POSTAL_SEPARATORS.sub("", postal_code).upper()
    if _ZIP_PLUS_FOUR.match(compact):
        return compact[:5]
    return compact


def normalize_country(country_code: Optional[str]) -> str:
    return country_code.strip().upper() if country_code else ""


def normalize_address(address: Optional[Address]) -> str:
    """Render ``address`` as a single normalized line, or "" when absent."""
    if address is None:
        return ""
    street = " ".join(
        part for part in (normalize_street(address.line1), normalize_street(address.line2)) if part
    )
    parts = [
        street,
        normalize_city(address.city),
        " ".join(
            part
            for part in (normalize_state(address.state_province), normalize_postal_code(address.postal_code))
            if part
        ),
        normalize_country(address.country_code),
    ]
    return ", ".join(part for part in parts if part)


def address_similarity(a: Optional[Address], b: Optional[Address]) -> float:
    """Fractional agreement between two addresses.

    Postal code, country code, city and state/province each count equally
    when present on both sides. When none of them can be compared, the edit
    distance ratio of the full normalized addresses is used instead.

    Returns:
        Similarity in [0, 1]; 0.0 if either address is ``None``
    """
    if a is None or b is None:
        return 0.0

    pairs = (
        (normalize_postal_code(a.postal_code), normalize_postal_code(b.postal_code)),
        (normalize_country(a.country_code), normalize_country(b.country_code)),
        (normalize_city(a.city), normalize_city(b.city)),
        (normalize_state(a.state_province), normalize_state(b.state_province)),
    )
    comparable = [(left, right) for left, right in pairs if left and right]
    if comparable:
        agreeing = sum(1 for left, right in comparable if left == right)
        return agreeing / len(comparable)

    full_a = normalize_address(a)
    full_b = normalize_address(b)
    if full_a and full_a == full_b:
        return 1.0
    return levenshtein_ratio(full_a, full_b)
