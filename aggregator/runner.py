"""
End-to-end aggregation run: orchestrate -> resolve -> write.

The resolver does not start until the orchestrator has settled every
source. A run in which no source succeeded is fatal: only a partial
artifact is written and FatalRunError is raised.
"""

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from aggregator.adapters import ADAPTERS, BaseSourceAdapter, build_mapper
from aggregator.cache import RawRecordCache
from aggregator.config import settings
from aggregator.deduplication import EntityResolver, ResolutionReport
from aggregator.errors import FatalRunError
from aggregator.filters import filter_active, filter_statistics
from aggregator.models import Organisation
from aggregator.orchestrator import OrchestrationResult, Orchestrator
from aggregator.writer import write_artifact, write_conflicts, write_run_summary


@dataclass
class RunResult:
    """Everything produced by one aggregation run."""
    orchestration: OrchestrationResult
    organisations: list[Organisation]
    report: ResolutionReport
    artifact_path: Path | None = None
    summary_path: Path | None = None
    conflicts_path: Path | None = None
    complete: bool = False

    def source_summary(self) -> dict[str, dict[str, Any]]:
        return self.orchestration.summary()


def select_adapters(source_ids: Iterable[str] | None = None) -> list[BaseSourceAdapter]:
    """Instantiate registered adapters, all of them when no ids are given."""
    source_ids = list(source_ids or ADAPTERS)
    unknown = [sid for sid in source_ids if sid not in ADAPTERS]
    if unknown:
        raise ValueError(f"Unknown source(s): {', '.join(unknown)}")
    return [ADAPTERS[sid]() for sid in dict.fromkeys(source_ids)]


def summary_path_for(output_path: Path) -> Path:
    output_path = Path(output_path)
    return output_path.with_name(f"{output_path.stem}.summary.json")


def conflicts_path_for(output_path: Path) -> Path:
    output_path = Path(output_path)
    return output_path.with_name(f"{output_path.stem}.conflicts.json")


async def aggregate(
    adapters: Sequence[BaseSourceAdapter],
    output_path: Path | None = None,
    resolver: EntityResolver | None = None,
    active_only: bool = False,
    cache: RawRecordCache | None = None,
    write_partial: bool = True,
    **orchestrator_options,
) -> RunResult:
    """
    Run the full pipeline over ``adapters`` and write the artifact.

    Args:
        adapters: Source adapters to run
        output_path: Final artifact path (default from settings)
        resolver: Entity resolver (default configuration when omitted)
        active_only: Drop organisations that are not active before writing
        cache: Optional raw-record cache
        write_partial: On fatal failure, still write a partial artifact
        **orchestrator_options: Passed to Orchestrator

    Raises:
        FatalRunError: No source succeeded
    """
    output_path = Path(output_path or settings.pipeline.output_path)
    resolver = resolver or EntityResolver()

    orchestrator = Orchestrator(adapters, build_mapper(adapters), cache=cache, **orchestrator_options)
    orchestration = await orchestrator.run()

    organisations, report = resolver.resolve_with_report(orchestration.drafts)
    if active_only:
        active = filter_active(organisations)
        logger.info(f"Active-only filter: {filter_statistics(organisations, active)}")
        organisations = active

    run = RunResult(orchestration=orchestration, organisations=organisations, report=report)
    run.summary_path = write_run_summary(orchestration.summary(), summary_path_for(output_path))
    run.conflicts_path = write_conflicts(organisations, conflicts_path_for(output_path))

    if not orchestration.succeeded_sources:
        if write_partial:
            run.artifact_path, _ = write_artifact(
                organisations, orchestration.source_counts, output_path, complete=False
            )
        raise FatalRunError(
            f"No source succeeded ({len(orchestration.failed_sources)} failed); nothing published",
            result=run,
        )

    run.artifact_path, _ = write_artifact(organisations, orchestration.source_counts, output_path)
    run.complete = True
    return run


def run_aggregation(source_ids: Iterable[str] | None = None, **options) -> RunResult:
    """Synchronous entry point over the registered adapters."""
    return asyncio.run(aggregate(select_adapters(source_ids), **options))
