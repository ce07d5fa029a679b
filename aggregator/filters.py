"""Status filtering and counting over merged organisations."""

from collections import Counter
from collections.abc import Iterable

from aggregator.models import Organisation, OrganisationStatus


def filter_active(organisations: Iterable[Organisation]) -> list[Organisation]:
    """Keep only organisations whose status is active."""
    return [org for org in organisations if org.status is OrganisationStatus.ACTIVE]


def status_counts(organisations: Iterable[Organisation]) -> dict[str, int]:
    """Number of organisations per status, every status present."""
    counts = Counter(org.status.value for org in organisations)
    return {status.value: counts.get(status.value, 0) for status in OrganisationStatus}


def filter_statistics(before: list[Organisation], after: list[Organisation]) -> dict[str, int]:
    """How many organisations an active-only filter removed."""
    return {
        "total": len(before),
        "kept": len(after),
        "removed": len(before) - len(after),
        **{f"removed_{status}": count for status, count in status_counts(before).items() if status != "active"},
    }
