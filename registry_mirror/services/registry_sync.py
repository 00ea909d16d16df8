"""Registry synchronization pipeline"""

import json
import logging
import os
import time
from collections.abc import Iterable, Sequence
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from registry_mirror.config import config
from registry_mirror.models.registry_config import RegistryConfig
from registry_mirror.models.registry_item import (
    AggregateIndex,
    AggregateItemSummary,
    IndexEntry,
)
from registry_mirror.models.sync_result import FailedItem, SyncResult, SyncStats
from registry_mirror.services.downloader import Downloader
from registry_mirror.services.fetcher import RegistryFetcher
from registry_mirror.services.validator import validate_registry_item
from registry_mirror.utils.timestamps import utc_timestamp

logger = logging.getLogger(__name__)

INDEX_FILENAMES = ("index.json", "registry.json")


class SyncError(Exception):
    """Base class for registry sync errors"""

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class IndexFetchError(SyncError):
    """Raised when the upstream index cannot be fetched or parsed (fatal to the run)"""


class ItemError(SyncError):
    """Per-item failure, recorded in the result and never fatal to the batch"""

    def __init__(self, name: str, message: str, cause: Exception | None = None):
        self.name = name
        super().__init__(message, cause)


class ItemFetchError(ItemError):
    """Raised when an item's detail request fails"""


class ItemValidationError(ItemError):
    """Raised when an item fails validation"""


class WriteError(ItemError):
    """Raised when an output file cannot be written"""


class SyncState(str, Enum):
    """
    Pipeline states; FAILED is only reachable from FETCHING_INDEX

    Items are written as soon as they validate, so PERSISTING is entered with
    the first write while other items may still be downloading.
    """

    IDLE = "idle"
    FETCHING_INDEX = "fetching_index"
    FILTERING = "filtering"
    DOWNLOADING = "downloading"
    PERSISTING = "persisting"
    GENERATING_INDEX = "generating_index"
    DONE = "done"
    FAILED = "failed"


class IndexFetcher(Protocol):
    async def fetch_index(self, registry: RegistryConfig) -> list[IndexEntry]: ...


class DetailFetcher(Protocol):
    async def fetch_item(self, registry: RegistryConfig, entry: IndexEntry) -> Any: ...


class ItemTransformer(Protocol):
    def transform(self, registry: RegistryConfig, item: Any) -> Any: ...


def parse_index_payload(payload: Any) -> list[IndexEntry]:
    """
    Parse an upstream index into entries

    Accepts a registry.json document ({"items": [...]}) or a bare list.
    Only a string name is required per entry; an entry whose other fields
    have an unexpected shape is kept by name and judged by its detail fetch.
    Entries without a usable name are dropped with a warning.

    Raises:
        ValueError: If the payload has an unexpected shape
    """
    if isinstance(payload, dict):
        items = payload.get("items")
    else:
        items = payload
    if not isinstance(items, list):
        raise ValueError("Index has no items array")

    entries = []
    for position, raw in enumerate(items):
        name = raw.get("name") if isinstance(raw, dict) else None
        if not isinstance(name, str) or not name:
            logger.warning(f"⚠ Index entry {position} has no name, ignoring it")
            continue
        try:
            entries.append(IndexEntry.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                f"⚠ {name}: unexpected index entry fields ({e.error_count()} error(s)), "
                "keeping the name only"
            )
            entries.append(IndexEntry(name=name))
    return entries


class DefaultIndexFetcher:
    """GET the registry's index_url with retry"""

    def __init__(self, fetcher: RegistryFetcher):
        self.fetcher = fetcher

    async def fetch_index(self, registry: RegistryConfig) -> list[IndexEntry]:
        payload = await self.fetcher.fetch_json(
            registry.source.index_url,
            retries=registry.sync.retry_count,
            base_delay=registry.sync.retry_delay,
        )
        return parse_index_payload(payload)


class DefaultDetailFetcher:
    """GET the item URL built from the registry's component URL pattern"""

    def __init__(self, fetcher: RegistryFetcher):
        self.fetcher = fetcher

    async def fetch_item(self, registry: RegistryConfig, entry: IndexEntry) -> Any:
        url = registry.source.component_url(entry.name)
        if registry.sync.timeout_ms is not None:
            return await self.fetcher.fetch_json_with_timeout(url, registry.sync.timeout_ms)
        return await self.fetcher.fetch_json(
            url,
            retries=registry.sync.retry_count,
            base_delay=registry.sync.retry_delay,
        )


class DefaultItemTransformer:
    """Identity, except file content is dropped when preserve_content is off"""

    def transform(self, registry: RegistryConfig, item: Any) -> Any:
        if registry.output.preserve_content or not isinstance(item, dict):
            return item
        files = item.get("files")
        if not isinstance(files, list):
            return item
        stripped = [
            {key: value for key, value in file.items() if key != "content"}
            if isinstance(file, dict)
            else file
            for file in files
        ]
        return {**item, "files": stripped}


def dedupe_entries(entries: Iterable[IndexEntry]) -> list[IndexEntry]:
    """Drop entries whose name was already seen, keeping first occurrences in order"""
    seen: set[str] = set()
    unique = []
    for entry in entries:
        if entry.name in seen:
            continue
        seen.add(entry.name)
        unique.append(entry)
    return unique


def filter_entries(
    entries: Sequence[IndexEntry],
    *,
    only: Iterable[str] | None = None,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
) -> tuple[list[IndexEntry], list[str]]:
    """
    Compute the working set

    Applied in order: caller `only` list, registry `include` list (if non-empty),
    registry `exclude` list.

    Returns:
        Tuple of (working_set, excluded_names)
        - excluded_names: names removed by the exclude list
    """
    working = list(entries)
    only_names = set(only or [])
    include_names = set(include or [])
    exclude_names = set(exclude or [])

    if only_names:
        working = [entry for entry in working if entry.name in only_names]
    if include_names:
        working = [entry for entry in working if entry.name in include_names]

    excluded = [entry.name for entry in working if entry.name in exclude_names]
    if exclude_names:
        working = [entry for entry in working if entry.name not in exclude_names]
    return working, excluded


def _to_pretty_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


class RegistrySync:
    """Sync one registry's items into its output directory"""

    def __init__(
        self,
        registry: RegistryConfig,
        fetcher: RegistryFetcher | None = None,
        *,
        output_dir: str | Path | None = None,
        index_fetcher: IndexFetcher | None = None,
        detail_fetcher: DetailFetcher | None = None,
        transformer: ItemTransformer | None = None,
    ):
        """
        Initialize registry sync

        Args:
            registry: Registry configuration
            fetcher: Shared HTTP fetcher (optional, creates and owns one if None)
            output_dir: Output directory override
            index_fetcher: Index strategy (default: GET index_url)
            detail_fetcher: Item strategy (default: GET component URL)
            transformer: Item transform hook (default: identity / content stripping)
        """
        self.registry = registry
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RegistryFetcher()
        self.index_fetcher = index_fetcher or DefaultIndexFetcher(self.fetcher)
        self.detail_fetcher = detail_fetcher or DefaultDetailFetcher(self.fetcher)
        self.transformer = transformer or DefaultItemTransformer()
        self.output_dir = Path(
            output_dir or registry.output.directory or Path(config.output_root) / registry.name
        )
        self.state = SyncState.IDLE
        self.downloader: Downloader | None = None

    async def sync(self, *, dry_run: bool = False, only: Iterable[str] | None = None) -> SyncResult:
        """
        Run the pipeline once

        Args:
            dry_run: Report the working set without fetching items or writing files
            only: Restrict this run to these item names

        Returns:
            SyncResult for this run; an index file write failure is recorded in
            `index_error` rather than raised

        Raises:
            IndexFetchError: If the upstream index cannot be fetched
        """
        start = time.monotonic()
        only = list(only or [])
        logger.info(f"Syncing {self.registry.display_name} from {self.registry.source.base_url}")
        if dry_run:
            logger.info("Dry run mode - no files will be written")

        entries = await self._fetch_index()
        working, excluded = self._filter(entries, only)

        index_error = None
        if dry_run:
            for entry in working:
                logger.info(f"  {entry.name} (dry-run)")
            succeeded = [entry.name for entry in working]
            failures: list[FailedItem] = []
        else:
            written, failures = await self._download(working)
            succeeded = [entry.name for entry in working if entry.name in written]
            try:
                self._generate_index(working, set(succeeded))
            except WriteError as e:
                logger.error(f"✗ {self.registry.name}: {e.message}")
                index_error = e.message

        duration_ms = int((time.monotonic() - start) * 1000)
        result = SyncResult(
            registry=self.registry.name,
            dry_run=dry_run,
            success=succeeded,
            failed=failures,
            skipped=excluded,
            index_error=index_error,
            stats=SyncStats(
                total=len(entries),
                synced=len(succeeded),
                failed=len(failures),
                skipped=len(excluded),
                duration_ms=duration_ms,
            ),
        )
        self.state = SyncState.DONE
        logger.info(
            f"Result for {self.registry.name}: {len(succeeded)} success, "
            f"{len(failures)} failed in {duration_ms / 1000:.1f}s"
        )
        return result

    async def _fetch_index(self) -> list[IndexEntry]:
        self.state = SyncState.FETCHING_INDEX
        logger.info(f"Fetching registry index: {self.registry.source.index_url}")
        try:
            entries = await self.index_fetcher.fetch_index(self.registry)
        except Exception as e:
            self.state = SyncState.FAILED
            logger.error(f"Failed to fetch index for {self.registry.name}: {e}")
            raise IndexFetchError(f"Failed to fetch index for {self.registry.name}: {e}", e) from e

        unique = dedupe_entries(entries)
        if len(unique) != len(entries):
            logger.info(f"Dropped {len(entries) - len(unique)} duplicate index entries")
        logger.info(f"Found {len(unique)} items")
        return unique

    def _filter(
        self, entries: list[IndexEntry], only: list[str]
    ) -> tuple[list[IndexEntry], list[str]]:
        self.state = SyncState.FILTERING
        if only:
            logger.info(f"Filtering to: {', '.join(only)}")
            known = {entry.name for entry in entries}
            for name in only:
                if name not in known:
                    logger.warning(f"Requested item not in index: {name}")

        working, excluded = filter_entries(
            entries,
            only=only,
            include=self.registry.sync.include,
            exclude=self.registry.sync.exclude,
        )
        if excluded:
            logger.info(f"Excluded: {', '.join(excluded)}")
        logger.info(f"Processing {len(working)} items")
        return working, excluded

    async def _download(self, working: list[IndexEntry]) -> tuple[set[str], list[FailedItem]]:
        """Fetch, validate and write every entry; returns written names and failures"""
        self.state = SyncState.DOWNLOADING
        self.downloader = Downloader(self.registry.sync.concurrency, on_progress=_log_progress)
        result = await self.downloader.run(working, self._sync_item)
        return set(result.items), result.failures

    async def _sync_item(self, entry: IndexEntry) -> str:
        """One item through fetch, transform, validate and persist"""
        try:
            detail = await self.detail_fetcher.fetch_item(self.registry, entry)
        except Exception as e:
            raise ItemFetchError(entry.name, str(e), e) from e

        item = self.transformer.transform(self.registry, detail)
        validation = validate_registry_item(item)
        if not validation.valid:
            raise ItemValidationError(entry.name, validation.error or "Unknown validation error")
        for warning in validation.warnings:
            logger.warning(f"⚠ {entry.name}: {warning}")

        if self.state == SyncState.DOWNLOADING:
            self.state = SyncState.PERSISTING
        self._write_item(entry.name, item)
        logger.info(f"✓ {entry.name}")
        return entry.name

    def item_path(self, name: str) -> Path:
        """Output path for one item; names may not escape the output directory"""
        root = self.output_dir.resolve()
        path = (root / f"{name}.json").resolve()
        if root not in path.parents:
            raise WriteError(name, f"Item name escapes output directory: {name}")
        return path

    def _write_item(self, name: str, item: Any) -> None:
        path = self.item_path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(_to_pretty_json(item), encoding="utf-8")
        except OSError as e:
            raise WriteError(name, f"Failed to write {path}: {e}", e) from e

    def build_index(self, working: Sequence[IndexEntry], succeeded: set[str]) -> AggregateIndex:
        """Aggregate index over exactly the succeeded items, in working-set order"""
        items = [
            AggregateItemSummary.from_entry(entry) for entry in working if entry.name in succeeded
        ]
        return AggregateIndex(
            name=self.registry.name,
            homepage=str(self.registry.meta.homepage),
            synced_at=utc_timestamp(),
            item_count=len(items),
            items=items,
        )

    def _generate_index(self, working: Sequence[IndexEntry], succeeded: set[str]) -> None:
        """
        Write index.json and registry.json together

        Both temp files are written before either rename. If a rename fails,
        files already replaced get their previous content back.

        Raises:
            WriteError: If the index files could not be written
        """
        if not self.registry.output.generate_index:
            return
        self.state = SyncState.GENERATING_INDEX
        content = self.build_index(working, succeeded).to_json() + "\n"
        paths = [self.output_dir / filename for filename in INDEX_FILENAMES]
        temp_paths = [path.with_name(f".{path.name}.tmp") for path in paths]
        previous: dict[Path, bytes | None] = {}
        replaced: list[Path] = []
        try:
            for path in paths:
                previous[path] = path.read_bytes() if path.is_file() else None
            self.output_dir.mkdir(parents=True, exist_ok=True)
            for temp_path in temp_paths:
                temp_path.write_text(content, encoding="utf-8")
            for temp_path, path in zip(temp_paths, paths, strict=True):
                os.replace(temp_path, path)
                replaced.append(path)
        except OSError as e:
            for temp_path in temp_paths:
                temp_path.unlink(missing_ok=True)
            for path in replaced:
                _restore(path, previous[path])
            raise WriteError("index", f"Failed to write index files: {e}", e) from e
        logger.info(f"Generated {' and '.join(INDEX_FILENAMES)}")

    async def close(self) -> None:
        """Close the fetcher if this sync created it"""
        if self._owns_fetcher:
            await self.fetcher.close()

    async def __aenter__(self) -> "RegistrySync":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _log_progress(completed: int, total: int) -> None:
    if completed % 10 == 0 or completed == total:
        logger.info(f"  Progress: {completed}/{total} ({completed * 100 // total}%)")


def _restore(path: Path, content: bytes | None) -> None:
    """Put back a file's previous content, or remove it if it did not exist"""
    try:
        if content is None:
            path.unlink(missing_ok=True)
        else:
            path.write_bytes(content)
    except OSError as e:
        logger.error(f"Failed to restore {path}: {e}")
