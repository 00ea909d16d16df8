"""Models for the combined index of all mirrored registries"""

from pydantic import BaseModel, ConfigDict, Field

from registry_mirror.models.registry_item import REGISTRY_SCHEMA


class RegistryInfo(BaseModel):
    """Summary of one mirrored registry"""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(alias="displayName")
    description: str
    homepage: str
    item_count: int = Field(default=0, ge=0, alias="itemCount")
    last_sync: str | None = Field(default=None, alias="lastSync")
    url: str = Field(description="Item URL template relative to the output root")


class GlobalIndex(BaseModel):
    """Top-level index.json listing every registry"""

    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field(default=REGISTRY_SCHEMA, alias="$schema")
    generated_at: str = Field(alias="generatedAt")
    registries: list[RegistryInfo] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(registry.item_count for registry in self.registries)
