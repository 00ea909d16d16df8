"""Data models for the registry mirror"""

from registry_mirror.models.global_index import GlobalIndex, RegistryInfo
from registry_mirror.models.registry_config import (
    OutputSettings,
    RegistriesConfig,
    RegistryConfig,
    RegistryMeta,
    RegistrySource,
    SyncSettings,
)
from registry_mirror.models.registry_item import (
    AggregateIndex,
    AggregateItemSummary,
    IndexEntry,
    RegistryFile,
    RegistryItem,
    ValidationResult,
)
from registry_mirror.models.sync_result import (
    FailedItem,
    InvalidFile,
    RunReport,
    SourceRunResult,
    SyncResult,
    SyncStats,
    VerifyResult,
)

__all__ = [
    "AggregateIndex",
    "AggregateItemSummary",
    "FailedItem",
    "GlobalIndex",
    "IndexEntry",
    "InvalidFile",
    "OutputSettings",
    "RegistriesConfig",
    "RegistryConfig",
    "RegistryFile",
    "RegistryInfo",
    "RegistryItem",
    "RegistryMeta",
    "RegistrySource",
    "RunReport",
    "SourceRunResult",
    "SyncResult",
    "SyncSettings",
    "SyncStats",
    "ValidationResult",
    "VerifyResult",
]
