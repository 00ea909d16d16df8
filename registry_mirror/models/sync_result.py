"""Result models for sync, run and verify operations"""

from pydantic import BaseModel, ConfigDict, Field


class FailedItem(BaseModel):
    """An item that could not be synced"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Item name")
    error: str = Field(description="Error message")


class SyncStats(BaseModel):
    """Statistics from one registry sync"""

    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0, description="Items in the upstream index after deduplication")
    synced: int = Field(ge=0, description="Items synced (or that would be, in a dry run)")
    failed: int = Field(ge=0, description="Items that failed to fetch, validate or write")
    skipped: int = Field(ge=0, description="Items dropped by the registry exclude list")
    duration_ms: int = Field(ge=0, description="Sync duration in milliseconds")


class SyncResult(BaseModel):
    """Result of one registry sync pipeline run"""

    model_config = ConfigDict(frozen=True)

    registry: str = Field(description="Registry name")
    dry_run: bool = Field(default=False, description="Whether this was a dry run")
    success: list[str] = Field(default_factory=list, description="Successfully synced items")
    failed: list[FailedItem] = Field(default_factory=list, description="Failed items")
    skipped: list[str] = Field(default_factory=list, description="Excluded items")
    index_error: str | None = Field(
        default=None, description="Error writing index.json and registry.json, if any"
    )
    stats: SyncStats


class SourceRunResult(BaseModel):
    """Outcome of one registry within a multi-registry run"""

    name: str = Field(description="Registry name")
    success: bool = Field(description="Whether the registry pipeline completed")
    error: str | None = Field(default=None, description="Error message if the pipeline raised")
    result: SyncResult | None = Field(default=None, description="Pipeline result if completed")


class RunReport(BaseModel):
    """Aggregate report of a multi-registry run"""

    sources: list[SourceRunResult] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0, description="Total run duration in milliseconds")

    @property
    def total(self) -> int:
        return len(self.sources)

    @property
    def succeeded(self) -> int:
        return sum(1 for source in self.sources if source.success)

    @property
    def failed(self) -> int:
        return sum(1 for source in self.sources if not source.success)

    @property
    def item_failures(self) -> int:
        return sum(len(source.result.failed) for source in self.sources if source.result)

    @property
    def index_failures(self) -> int:
        return sum(1 for source in self.sources if source.result and source.result.index_error)

    def exit_code(self, *, strict: bool = True) -> int:
        """
        Process exit status for this run

        Args:
            strict: Also fail when items failed inside a completed pipeline
                (index file write failures always fail the run)

        Returns:
            0 on success, 1 otherwise
        """
        if self.failed > 0 or self.index_failures > 0:
            return 1
        if strict and self.item_failures > 0:
            return 1
        return 0


class InvalidFile(BaseModel):
    """A persisted item file that failed verification"""

    file: str
    error: str


class VerifyResult(BaseModel):
    """Verification result for one registry output directory"""

    registry: str
    valid: list[str] = Field(default_factory=list)
    invalid: list[InvalidFile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
