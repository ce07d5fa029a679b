"""
Output writer: the published organisations artifact and its JSON siblings.

The run summary and the merge conflicts are written next to the artifact.

Artifact layout:
    {
      "organisations": [...],
      "metadata": {generatedAt, sourceCounts, fileSizeBytes, complete, summary}
    }

``fileSizeBytes`` is the exact byte size of the file as written. A partial
artifact (``complete: false``) is never written over the final path.
"""

import json
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from aggregator.models import Organisation
from aggregator.filters import status_counts


def atomic_write_bytes(dest_path: Path, content: bytes) -> Path:
    """
    Write bytes to file atomically.

    Args:
        dest_path: Final destination path
        content: Bytes to write

    Returns:
        Path to written file
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = dest_path.with_suffix(dest_path.suffix + ".tmp")

    try:
        temp_path.write_bytes(content)
        temp_path.replace(dest_path)
        return dest_path
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_json(dest_path: Path, data: Any, indent: int = None) -> Path:
    """
    Write JSON data atomically - only replaces target file on success.

    1. Writes to temp file in same directory
    2. Validates JSON is readable
    3. Renames temp to final (atomic on same filesystem)

    Args:
        dest_path: Final destination path
        data: Data to serialize as JSON
        indent: JSON indent (None for compact)

    Returns:
        Path to written file
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = dest_path.with_suffix(dest_path.suffix + ".tmp")

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, default=str, ensure_ascii=False, indent=indent)

        # Verify file is valid JSON
        with open(temp_path, encoding="utf-8") as f:
            json.load(f)

        temp_path.replace(dest_path)
        return dest_path

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def partial_path(path: Path) -> Path:
    """Where a partial/debug artifact for ``path`` is written."""
    path = Path(path)
    return path.with_name(f"{path.stem}.partial{path.suffix or '.json'}")


def summarize(organisations: Sequence[Organisation]) -> dict[str, Any]:
    """Aggregate statistics for the artifact metadata."""
    by_type = Counter(org.type.value for org in organisations)
    contributions = Counter(ref.source.value for org in organisations for ref in org.sources)
    completeness = [org.data_quality.completeness for org in organisations]

    return {
        "totalOrganisations": len(organisations),
        "byType": dict(sorted(by_type.items())),
        "byStatus": status_counts(organisations),
        "averageCompleteness": round(sum(completeness) / len(completeness), 4) if completeness else 0.0,
        "requiresReview": sum(1 for org in organisations if org.data_quality.requires_review),
        "withConflicts": sum(1 for org in organisations if org.data_quality.has_conflicts),
        "mergedRecords": sum(1 for org in organisations if len(org.sources) > 1),
        "sourceContributions": dict(sorted(contributions.items())),
    }


def build_artifact(
    organisations: Sequence[Organisation],
    source_counts: Mapping[str, int],
    generated_at: datetime | None = None,
    complete: bool = True,
) -> dict[str, Any]:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "organisations": [org.to_dict() for org in organisations],
        "metadata": {
            "generatedAt": generated_at.isoformat(),
            "sourceCounts": dict(source_counts),
            "fileSizeBytes": 0,
            "complete": complete,
            "summary": summarize(organisations),
        },
    }


def encode_artifact(artifact: dict[str, Any], indent: int | None = 2) -> bytes:
    """
    Serialise the artifact with ``metadata.fileSizeBytes`` set to its own size.

    The size field is part of the document, so it is iterated to a fixed point.
    """
    size = 0
    for _ in range(10):
        artifact["metadata"]["fileSizeBytes"] = size
        encoded = json.dumps(artifact, ensure_ascii=False, indent=indent, default=str).encode("utf-8")
        if len(encoded) == size:
            return encoded
        size = len(encoded)
    raise RuntimeError("fileSizeBytes did not converge")


def write_artifact(
    organisations: Sequence[Organisation],
    source_counts: Mapping[str, int],
    path: Path,
    generated_at: datetime | None = None,
    complete: bool = True,
    indent: int | None = 2,
) -> tuple[Path, dict[str, Any]]:
    """
    Write the organisations artifact.

    Incomplete artifacts go to the ``.partial`` sibling of ``path``.

    Returns:
        (path written, artifact dict)
    """
    path = Path(path) if complete else partial_path(path)
    artifact = build_artifact(organisations, source_counts, generated_at, complete)
    content = encode_artifact(artifact, indent)

    atomic_write_bytes(path, content)
    logger.info(
        f"Wrote {'complete' if complete else 'PARTIAL'} artifact with "
        f"{len(organisations):,} organisations to {path} ({len(content):,} bytes)"
    )
    return path, artifact


def write_run_summary(summary: Mapping[str, Mapping[str, Any]], path: Path) -> Path:
    """Write the per-source run summary as JSON."""
    path = atomic_write_json(path, {"sources": dict(summary)}, indent=2)
    logger.info(f"Wrote run summary to {path}")
    return path


def build_conflicts(organisations: Sequence[Organisation]) -> list[dict[str, Any]]:
    """One entry per conflicting field, with every disagreeing source's value."""
    return [
        {"organisationId": org.id, "organisationName": org.name, **conflict.to_dict()}
        for org in organisations
        for conflict in org.conflicts
    ]


def write_conflicts(organisations: Sequence[Organisation], path: Path) -> Path:
    """Write the merge conflicts for manual review as JSON."""
    conflicts = build_conflicts(organisations)
    path = atomic_write_json(path, {"totalConflicts": len(conflicts), "conflicts": conflicts}, indent=2)
    logger.info(f"Wrote {len(conflicts):,} conflict(s) to {path}")
    return path
