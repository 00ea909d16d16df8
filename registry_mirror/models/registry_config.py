"""Models for registries configuration (registries.yaml)"""

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator

DEFAULT_COMPONENT_URL_PATTERN = "{base_url}/{name}.json"


class RegistrySource(BaseModel):
    """Where a registry's index and items are fetched from"""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(description="Base URL for per-item fetches")
    index_url: str = Field(description="URL of the upstream registry index (registry.json)")
    component_url_pattern: str = Field(
        default=DEFAULT_COMPONENT_URL_PATTERN,
        description="Item URL pattern; supports {base_url} and {name} placeholders",
    )

    def component_url(self, name: str) -> str:
        """Build the detail URL for one item"""
        return self.component_url_pattern.replace(
            "{base_url}", self.base_url.rstrip("/")
        ).replace("{name}", name)


class SyncSettings(BaseModel):
    """Retry, concurrency and filtering behavior for one registry"""

    model_config = ConfigDict(frozen=True)

    retry_count: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    retry_delay: int = Field(
        default=1000, ge=0, le=60000, description="Base backoff delay in ms (doubled per retry)"
    )
    concurrency: int = Field(default=5, ge=1, le=50, description="Max concurrent item fetches")
    include: list[str] = Field(default_factory=list, description="Items to include (empty = all)")
    exclude: list[str] = Field(default_factory=list, description="Items to always drop")
    timeout_ms: int | None = Field(
        default=None,
        ge=100,
        description="If set, item fetches are single attempts bounded by this timeout",
    )


class OutputSettings(BaseModel):
    """What the sync writes for one registry"""

    model_config = ConfigDict(frozen=True)

    preserve_content: bool = Field(
        default=True, description="Keep file content in the persisted item JSON"
    )
    generate_index: bool = Field(
        default=True, description="Write index.json and registry.json after a sync"
    )
    directory: str | None = Field(
        default=None, description="Output directory override (default: <output_root>/<name>)"
    )


class RegistryMeta(BaseModel):
    """Descriptive registry metadata"""

    model_config = ConfigDict(frozen=True)

    homepage: HttpUrl = Field(description="Registry homepage")
    repository: HttpUrl | None = Field(default=None, description="Source repository URL")


class RegistryConfig(BaseModel):
    """Configuration for a single mirrored registry"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        min_length=1, pattern=r"^[a-z0-9][a-z0-9._-]*$", description="Unique registry identifier"
    )
    display_name: str = Field(description="Human-readable name")
    description: str = Field(default="", description="Brief description of the registry")
    enabled: bool = Field(default=True, description="Whether this registry is synced")
    source: RegistrySource
    sync: SyncSettings = Field(default_factory=SyncSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    meta: RegistryMeta


class RegistriesConfig(BaseModel):
    """Complete registries configuration"""

    registries: list[RegistryConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "RegistriesConfig":
        seen: set[str] = set()
        for registry in self.registries:
            if registry.name in seen:
                raise ValueError(f"Duplicate registry name: {registry.name}")
            seen.add(registry.name)
        return self

    def get_enabled_registries(self) -> list[RegistryConfig]:
        """Get all enabled registries, in file order"""
        return [registry for registry in self.registries if registry.enabled]

    def get_registry(self, name: str) -> RegistryConfig | None:
        """Look up a registry by name"""
        for registry in self.registries:
            if registry.name == name:
                return registry
        return None
