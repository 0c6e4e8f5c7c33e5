"""
Referral code parser

Partner staff codes carry the issuing retailer, the store and the staff
member. Four generations of codes are still in circulation; they are tried
newest first and the first match wins:

    compact      HNCKMDOUG     retailer + store + staff
    store_first  CKMHNDOUG     store + retailer + staff
    hyphenated   HN-CKM-DOUG   retailer-store-staff, or HN-DOUG without a store
    storeless    HNDOUG123     retailer + staff, no store
"""

import re
from typing import Optional

from pydantic import BaseModel

RETAILERS: dict[str, dict] = {
    "HN": {
        "name": "Harvey Norman",
        "stores": {
            "BLA": "Blanchardstown",
            "CKM": "Carrickmines",
            "CRK": "Cork",
            "CAS": "Castlebar",
            "DRO": "Drogheda",
            "FON": "Fonthill",
            "GAL": "Galway",
            "KIN": "Kinsale Road",
            "LIM": "Limerick",
            "LIT": "Little Island",
            "NAA": "Naas",
            "RAT": "Rathfarnham",
            "SLI": "Sligo",
            "SWO": "Swords",
            "TAL": "Tallaght",
            "TRA": "Tralee",
            "WAT": "Waterford",
        },
    },
    "CR": {
        "name": "Currys PC World",
        "stores": {
            "DUB": "Dublin",
            "CRK": "Cork",
            "GAL": "Galway",
            "LIM": "Limerick",
            "WAT": "Waterford",
            "BLA": "Blanchardstown",
            "TAL": "Tallaght",
            "SWO": "Swords",
        },
    },
    "DD": {
        "name": "DID Electrical",
        "stores": {
            "DUB": "Dublin",
            "CRK": "Cork",
            "GAL": "Galway",
            "LIM": "Limerick",
            "WAT": "Waterford",
            "ATH": "Athlone",
            "DRO": "Drogheda",
            "KIL": "Kilkenny",
        },
    },
    "PC": {
        "name": "Power City",
        "stores": {
            "DUB": "Dublin",
            "CRK": "Cork",
            "GAL": "Galway",
            "LIM": "Limerick",
            "WAT": "Waterford",
            "BLA": "Blanchardstown",
            "TAL": "Tallaght",
            "CAS": "Castlebar",
        },
    },
    "AR": {
        "name": "Argos Ireland",
        "stores": {
            "DUB": "Dublin",
            "CRK": "Cork",
            "GAL": "Galway",
            "LIM": "Limerick",
            "WAT": "Waterford",
        },
    },
    "EX": {
        "name": "Expert Electrical",
        "stores": {
            "DUB": "Dublin",
            "CRK": "Cork",
            "GAL": "Galway",
            "LIM": "Limerick",
        },
    },
}

# Precedence order: newest format first
CODE_FORMATS: list[tuple[str, re.Pattern]] = [
    ("compact", re.compile(r"^(?P<issuer>[A-Z]{2})(?P<location>[A-Z]{3})(?P<staff>[A-Z0-9]+)$")),
    ("store_first", re.compile(r"^(?P<location>[A-Z]{3})(?P<issuer>[A-Z]{2})(?P<staff>[A-Z0-9]+)$")),
    (
        "hyphenated",
        re.compile(r"^(?P<issuer>[A-Z]{2})-(?:(?P<location>[A-Z]{3})-)?(?P<staff>[A-Z0-9]+)$"),
    ),
    # Retailer + staff only, e.g. HNDOUG123 from the first staff code generator
    ("storeless", re.compile(r"^(?P<issuer>[A-Z]{2})(?P<staff>[A-Z0-9]+)$")),
]


class ParsedReferralCode(BaseModel):
    valid: bool
    issuer_tag: Optional[str] = None
    location_tag: Optional[str] = None
    staff_tag: Optional[str] = None
    format: Optional[str] = None


def _known(issuer: str, location: Optional[str], retailers: dict[str, dict]) -> bool:
    retailer = retailers.get(issuer)
    if retailer is None:
        return False
    return location is None or location in retailer["stores"]


def known_store(issuer_tag: str, location_tag: str) -> bool:
    return bool(location_tag) and _known(issuer_tag, location_tag, RETAILERS)


def parse_referral_code(code: str, retailers: dict[str, dict] = RETAILERS) -> ParsedReferralCode:
    if not isinstance(code, str):
        return ParsedReferralCode(valid=False)

    normalized = code.strip().upper()
    for name, pattern in CODE_FORMATS:
        match = pattern.match(normalized)
        if not match:
            continue
        issuer, location = match.group("issuer"), match.groupdict().get("location")
        if not _known(issuer, location, retailers):
            continue
        return ParsedReferralCode(
            valid=True,
            issuer_tag=issuer,
            location_tag=location,
            staff_tag=match.group("staff"),
            format=name,
        )

    return ParsedReferralCode(valid=False)


def store_display_name(issuer_tag: str, location_tag: Optional[str] = None) -> str:
    retailer = RETAILERS.get(issuer_tag)
    if retailer is None:
        return "Unknown Store"
    if location_tag and location_tag in retailer["stores"]:
        return f"{retailer['name']} {retailer['stores'][location_tag]}"
    return retailer["name"]


def generate_referral_code(issuer_tag: str, location_tag: str, staff_name: str) -> str:
    """Build a compact-format code, e.g. ("HN", "CKM", "Doug") -> HNCKMDOUG"""
    staff_tag = re.sub(r"[^A-Za-z0-9]", "", staff_name).upper()[:8]
    if not staff_tag:
        raise ValueError("staff name must contain letters or digits")
    return f"{issuer_tag}{location_tag}{staff_tag}".upper()
