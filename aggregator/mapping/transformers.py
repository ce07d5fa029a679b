"""
Value transformers used by field-mapping rules.

Transformers receive a raw source value and return a canonical value, or
None when the input carries no usable information.
"""

import re
from datetime import date, datetime

from aggregator.models import OrganisationStatus, OrganisationType

DISSOLVED_KEYWORDS = ("dissolved", "closed", "defunct", "abolished", "merged")
INACTIVE_KEYWORDS = ("inactive", "dormant", "suspended", "exempted")

GOVUK_TYPES = {
    "ministerial_department": OrganisationType.MINISTERIAL_DEPARTMENT,
    "non_ministerial_department": OrganisationType.GOVERNMENT_DEPARTMENT,
    "executive_agency": OrganisationType.EXECUTIVE_AGENCY,
    "executive_office": OrganisationType.EXECUTIVE_AGENCY,
    "executive_ndpb": OrganisationType.EXECUTIVE_NDPB,
    "advisory_ndpb": OrganisationType.ADVISORY_NDPB,
    "tribunal_ndpb": OrganisationType.TRIBUNAL_NDPB,
    "tribunal": OrganisationType.TRIBUNAL_NDPB,
    "public_corporation": OrganisationType.PUBLIC_CORPORATION,
    "devolved_administration": OrganisationType.DEVOLVED_ADMINISTRATION,
    "special_health_authority": OrganisationType.NHS_TRUST,
    "court": OrganisationType.JUDICIAL_BODY,
}

# Checked in order; more specific phrases first
CLASSIFICATION_PATTERNS = (
    ("unitary authority", OrganisationType.UNITARY_AUTHORITY),
    ("district council", OrganisationType.DISTRICT_COUNCIL),
    ("national park", OrganisationType.NATIONAL_PARK_AUTHORITY),
    ("local authority", OrganisationType.LOCAL_AUTHORITY),
    ("research council", OrganisationType.RESEARCH_COUNCIL),
    ("council", OrganisationType.LOCAL_AUTHORITY),
    ("nhs foundation trust", OrganisationType.NHS_FOUNDATION_TRUST),
    ("nhs trust", OrganisationType.NHS_TRUST),
    ("integrated care board", OrganisationType.INTEGRATED_CARE_BOARD),
    ("health board", OrganisationType.HEALTH_BOARD),
    ("executive agency", OrganisationType.EXECUTIVE_AGENCY),
    ("executive ndpb", OrganisationType.EXECUTIVE_NDPB),
    ("executive non-departmental", OrganisationType.EXECUTIVE_NDPB),
    ("advisory ndpb", OrganisationType.ADVISORY_NDPB),
    ("advisory non-departmental", OrganisationType.ADVISORY_NDPB),
    ("tribunal", OrganisationType.TRIBUNAL_NDPB),
    ("ndpb", OrganisationType.NON_DEPARTMENTAL_PUBLIC_BODY),
    ("non-departmental", OrganisationType.NON_DEPARTMENTAL_PUBLIC_BODY),
    ("ministerial", OrganisationType.MINISTERIAL_DEPARTMENT),
    ("department", OrganisationType.GOVERNMENT_DEPARTMENT),
    ("public corporation", OrganisationType.PUBLIC_CORPORATION),
    ("devolved", OrganisationType.DEVOLVED_ADMINISTRATION),
)

LOCALE_COUNTRIES = {
    "en-gb": "United Kingdom",
    "en-uk": "United Kingdom",
    "en": "United Kingdom",
    "cy-gb": "Wales",
    "cy": "Wales",
    "gd-gb": "Scotland",
    "gd": "Scotland",
}

TEXT_DATE_FORMATS = ("%d %B %Y", "%d %b %Y", "%B %Y")


def map_status(value) -> OrganisationStatus:
    """Map free-text status to active/inactive/dissolved. Unknown means active."""
    if isinstance(value, OrganisationStatus):
        return value
    lower = str(value or "").lower()
    if any(keyword in lower for keyword in DISSOLVED_KEYWORDS):
        return OrganisationStatus.DISSOLVED
    if any(keyword in lower for keyword in INACTIVE_KEYWORDS):
        return OrganisationStatus.INACTIVE
    return OrganisationStatus.ACTIVE


def parse_date(value) -> str | None:
    """
    Parse common date notations to an ISO ``YYYY-MM-DD`` string.

    Accepts ISO dates and datetimes, DD/MM/YYYY, DD-MM-YYYY, "1 April 2019"
    style text, and a bare year (mapped to 1 January). Returns None for
    anything else, including impossible calendar dates.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return None

    cleaned = str(value).strip()
    if not cleaned:
        return None

    try:
        if re.match(r"^\d{4}-\d{2}-\d{2}", cleaned):
            return date.fromisoformat(cleaned[:10]).isoformat()

        match = re.match(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$", cleaned)
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day).isoformat()

        if re.fullmatch(r"\d{4}", cleaned):
            return f"{cleaned}-01-01"
    except ValueError:
        return None

    for fmt in TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue

    return None


def map_govuk_type(value) -> OrganisationType:
    """Map a GOV.UK organisation format/document type to an organisation type."""
    key = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
    if key in GOVUK_TYPES:
        return GOVUK_TYPES[key]
    return OrganisationType.coerce(key)


def infer_type_from_classification(value) -> OrganisationType:
    """Infer an organisation type from a free-text classification."""
    lower = str(value or "").lower()
    for phrase, org_type in CLASSIFICATION_PATTERNS:
        if phrase in lower:
            return org_type
    return OrganisationType.OTHER


def map_locale(value) -> str:
    """Map a locale code to a country name."""
    return LOCALE_COUNTRIES.get(str(value or "").strip().lower(), "United Kingdom")


def split_names(value) -> list[str] | None:
    """Turn an acronym or delimited list of names into a list of names."""
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = re.split(r"[;|]", str(value or ""))
    names = [str(item).strip() for item in items if item is not None and str(item).strip()]
    return names or None
