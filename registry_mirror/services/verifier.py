"""Offline verification of persisted registry items"""

import logging
from pathlib import Path

from pydantic import ValidationError

from registry_mirror.models.registry_item import RegistryItem
from registry_mirror.models.sync_result import InvalidFile, VerifyResult
from registry_mirror.services.registry_sync import INDEX_FILENAMES
from registry_mirror.services.validator import (
    get_missing_file_contents,
    validate_registry_item_json,
)

logger = logging.getLogger(__name__)


def list_item_files(output_dir: Path) -> list[Path]:
    """Persisted item files under an output directory, index files excluded"""
    if not output_dir.is_dir():
        return []
    return sorted(
        path
        for path in output_dir.rglob("*.json")
        if path.is_file() and path.relative_to(output_dir).as_posix() not in INDEX_FILENAMES
    )


def verify_registry_output(
    registry: str, output_dir: str | Path, *, expect_content: bool = False
) -> VerifyResult:
    """
    Re-validate every persisted item of one registry without network access

    Args:
        registry: Registry name (for reporting)
        output_dir: Registry output directory
        expect_content: Warn about files whose content was not inlined

    Returns:
        VerifyResult with valid file names, invalid files and warnings
    """
    output_dir = Path(output_dir)
    result = VerifyResult(registry=registry)

    for path in list_item_files(output_dir):
        file = path.relative_to(output_dir).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            result.invalid.append(InvalidFile(file=file, error=str(e)))
            continue

        validation = validate_registry_item_json(text)
        if not validation.valid:
            result.invalid.append(InvalidFile(file=file, error=validation.error or "Unknown error"))
            continue

        result.valid.append(file)
        warnings = list(validation.warnings)
        if expect_content:
            try:
                missing = get_missing_file_contents(RegistryItem.model_validate_json(text))
            except ValidationError as e:
                missing = []
                warnings.append(f"Unexpected item shape: {e.error_count()} error(s)")
            if missing:
                warnings.append(f"Missing content for: {', '.join(missing)}")
        for warning in warnings:
            logger.warning(f"⚠ {registry}/{file}: {warning}")
            result.warnings.append(f"{file}: {warning}")

    return result
