"""Runs the sync pipeline for every configured registry"""

import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from registry_mirror.config import config
from registry_mirror.models.registry_config import RegistryConfig
from registry_mirror.models.sync_result import RunReport, SourceRunResult
from registry_mirror.services.fetcher import RegistryFetcher
from registry_mirror.services.registry_sync import RegistrySync
from registry_mirror.services.telemetry import TelemetryService, get_telemetry_service

logger = logging.getLogger(__name__)

SyncFactory = Callable[[RegistryConfig, RegistryFetcher, Path], RegistrySync]


class SourceRunError(Exception):
    """Raised (and recorded) when a registry's whole pipeline fails"""

    def __init__(self, registry: str, message: str, cause: Exception | None = None):
        self.registry = registry
        self.message = message
        self.cause = cause
        super().__init__(f"{registry}: {message}")


def default_sync_factory(
    registry: RegistryConfig, fetcher: RegistryFetcher, output_root: Path
) -> RegistrySync:
    """Build a pipeline with the default strategies"""
    return RegistrySync(
        registry,
        fetcher,
        output_dir=registry.output.directory or output_root / registry.name,
    )


class SyncRunner:
    """Sync registries one after another and aggregate the outcome"""

    def __init__(
        self,
        registries: Sequence[RegistryConfig],
        *,
        fetcher: RegistryFetcher | None = None,
        output_root: str | Path | None = None,
        sync_factory: SyncFactory | None = None,
        telemetry: TelemetryService | None = None,
    ):
        """
        Initialize runner

        Args:
            registries: Registries to sync, in order
            fetcher: Shared HTTP fetcher (optional, creates one per run if None)
            output_root: Root of per-registry output directories (default: config.output_root)
            sync_factory: Builds the pipeline for one registry (custom strategies hook)
            telemetry: Telemetry service (default: global instance)
        """
        self.registries = list(registries)
        self.fetcher = fetcher
        self.output_root = Path(output_root or config.output_root)
        self.sync_factory = sync_factory or default_sync_factory
        self.telemetry = telemetry or get_telemetry_service()

    async def run(self, *, dry_run: bool = False) -> RunReport:
        """
        Sync every registry sequentially

        A registry whose pipeline raises is recorded as failed; the run continues.

        Args:
            dry_run: Pass dry-run mode to every pipeline

        Returns:
            RunReport with one entry per registry
        """
        start = time.monotonic()
        logger.info(
            f"Found {len(self.registries)} registries: "
            f"{', '.join(registry.name for registry in self.registries)}"
        )
        if dry_run:
            logger.info("Dry run mode - no files will be written")

        if self.fetcher is not None:
            sources = await self._run_all(self.fetcher, dry_run)
        else:
            async with RegistryFetcher() as fetcher:
                sources = await self._run_all(fetcher, dry_run)

        report = RunReport(sources=sources, duration_ms=int((time.monotonic() - start) * 1000))
        logger.info(
            f"Summary: {report.total} total, {report.succeeded} successful, "
            f"{report.failed} failed, {report.item_failures} item failures, "
            f"{report.index_failures} index failures "
            f"in {report.duration_ms / 1000:.1f}s"
        )
        for source in report.sources:
            if not source.success:
                logger.error(f"  - {source.name}: {source.error}")
        return report

    async def _run_all(self, fetcher: RegistryFetcher, dry_run: bool) -> list[SourceRunResult]:
        sources = []
        for registry in self.registries:
            sources.append(await self.run_one(registry, fetcher, dry_run=dry_run))
        return sources

    async def run_one(
        self,
        registry: RegistryConfig,
        fetcher: RegistryFetcher,
        *,
        dry_run: bool = False,
        only: Sequence[str] | None = None,
    ) -> SourceRunResult:
        """Sync one registry, capturing any pipeline exception"""
        logger.info(f"📦 Syncing {registry.name}...")
        tracer = self.telemetry.get_tracer()
        with tracer.start_as_current_span(f"sync {registry.name}") as span:
            span.set_attribute("registry.name", registry.name)
            span.set_attribute("sync.dry_run", dry_run)
            try:
                sync = self.sync_factory(registry, fetcher, self.output_root)
                result = await sync.sync(dry_run=dry_run, only=only)
            except Exception as e:
                error = SourceRunError(registry.name, str(e), e)
                logger.error(f"✗ Failed to sync {registry.name}: {e}")
                span.record_exception(e)
                self.telemetry.log_sync_result(registry.name, error=error)
                return SourceRunResult(name=registry.name, success=False, error=str(e))

            span.set_attribute("sync.synced", result.stats.synced)
            span.set_attribute("sync.failed", result.stats.failed)
            self.telemetry.log_sync_result(registry.name, result=result)
            logger.info(f"✓ {registry.name} synced")
            return SourceRunResult(name=registry.name, success=True, result=result)
