"""Pydantic models for shadcn-style registry items and indexes"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

REGISTRY_SCHEMA = "https://ui.shadcn.com/schema/registry.json"
REGISTRY_ITEM_SCHEMA = "https://ui.shadcn.com/schema/registry-item.json"

ITEM_TYPE_PREFIX = "registry:"
ITEM_KINDS = ("style", "lib", "example", "block", "component", "ui", "hook", "theme", "page")
VALID_ITEM_TYPES = frozenset(f"{ITEM_TYPE_PREFIX}{kind}" for kind in ITEM_KINDS)


class IndexEntry(BaseModel):
    """Item entry in an upstream registry index (minimal info)"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(min_length=1, description="Item identifier, unique within a registry")
    type: str | None = Field(default=None, description="Item type, e.g. registry:ui")
    title: str | None = Field(default=None, description="Human-readable title")
    description: str | None = Field(default=None, description="Item description")
    dependencies: list[str] | None = Field(default=None, description="NPM dependencies")
    registry_dependencies: list[str] | None = Field(
        default=None,
        alias="registryDependencies",
        description="Other registry items this item depends on",
    )


class RegistryFile(BaseModel):
    """One file belonging to a registry item"""

    model_config = ConfigDict(extra="allow")

    path: str = Field(description="File path within the item")
    type: str = Field(description="File type, e.g. registry:ui")
    content: str | None = Field(default=None, description="File content")
    target: str | None = Field(default=None, description="Target path in the user project")


class CssVars(BaseModel):
    """CSS variable groups"""

    theme: dict[str, str] | None = None
    light: dict[str, str] | None = None
    dark: dict[str, str] | None = None


class RegistryItem(BaseModel):
    """Typed view of a full registry item as fetched from upstream"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_: str | None = Field(default=None, alias="$schema")
    name: str
    type: str
    title: str | None = None
    description: str | None = None
    dependencies: list[str] | None = None
    dev_dependencies: list[str] | None = Field(default=None, alias="devDependencies")
    registry_dependencies: list[str] | None = Field(default=None, alias="registryDependencies")
    files: list[RegistryFile] | None = None
    css_vars: CssVars | None = Field(default=None, alias="cssVars")
    css: dict[str, Any] | None = None
    tailwind: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None
    docs: str | None = None


class AggregateItemSummary(BaseModel):
    """Lightweight item summary stored in the aggregate index"""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str | None = None
    description: str | None = None
    dependencies: list[str] | None = None
    registry_dependencies: list[str] | None = Field(default=None, alias="registryDependencies")

    @classmethod
    def from_entry(cls, entry: IndexEntry) -> "AggregateItemSummary":
        return cls(
            name=entry.name,
            type=entry.type,
            description=entry.description,
            dependencies=entry.dependencies,
            registry_dependencies=entry.registry_dependencies,
        )


class AggregateIndex(BaseModel):
    """Per-registry index written as index.json and registry.json"""

    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field(default=REGISTRY_SCHEMA, alias="$schema")
    name: str = Field(description="Registry name")
    homepage: str = Field(description="Registry homepage")
    synced_at: str = Field(alias="syncedAt", description="UTC ISO-8601 sync timestamp")
    item_count: int = Field(alias="itemCount", ge=0, description="Number of items listed")
    items: list[AggregateItemSummary] = Field(default_factory=list)

    def to_json(self) -> str:
        """Serialize the way it is written to disk"""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class ValidationResult(BaseModel):
    """Outcome of validating one registry item"""

    valid: bool
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
