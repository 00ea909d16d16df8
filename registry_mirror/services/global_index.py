"""Combined index of all mirrored registries"""

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from registry_mirror.models.global_index import GlobalIndex, RegistryInfo
from registry_mirror.models.registry_config import RegistryConfig
from registry_mirror.utils.timestamps import utc_timestamp

logger = logging.getLogger(__name__)


def _read_registry_index(index_path: Path) -> tuple[int, str | None]:
    """Item count and sync time from a registry's index.json, if present"""
    if not index_path.exists():
        return 0, None
    try:
        data = json.loads(index_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read {index_path}: {e}")
        return 0, None
    return int(data.get("itemCount") or 0), data.get("syncedAt")


def build_global_index(
    registries: Sequence[RegistryConfig], output_root: str | Path
) -> GlobalIndex:
    """
    Collect every registry's aggregate index into one summary

    Registries that were never synced are listed with an item count of 0.
    """
    output_root = Path(output_root)
    infos = []
    for registry in registries:
        output_dir = Path(registry.output.directory or output_root / registry.name)
        item_count, last_sync = _read_registry_index(output_dir / "index.json")
        infos.append(
            RegistryInfo(
                name=registry.name,
                display_name=registry.display_name,
                description=registry.description,
                homepage=str(registry.meta.homepage),
                item_count=item_count,
                last_sync=last_sync,
                url=f"{output_dir.as_posix()}/{{name}}.json",
            )
        )
        logger.info(f"  ✓ {registry.name}: {item_count} components")

    return GlobalIndex(
        generated_at=utc_timestamp(),
        registries=infos,
    )


def write_global_index(index: GlobalIndex, path: str | Path) -> Path:
    """Write the global index as pretty-printed JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        index.model_dump_json(by_alias=True, exclude_none=True, indent=2) + "\n",
        encoding="utf-8",
    )
    logger.info(f"Global index generated: {path}")
    return path
