"""Command line interface: sync, sync-all, verify and build-index"""

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

from registry_mirror.config import config
from registry_mirror.models.registry_config import RegistriesConfig
from registry_mirror.models.sync_result import RunReport, SourceRunResult
from registry_mirror.services.fetcher import RegistryFetcher
from registry_mirror.services.global_index import build_global_index, write_global_index
from registry_mirror.services.sync_runner import SyncRunner
from registry_mirror.services.verifier import verify_registry_output
from registry_mirror.utils.registries_loader import load_registries_config
from registry_mirror.utils.timestamps import format_duration, utc_timestamp

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure logging for CLI (stdout)"""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _parse_only(value: str | None) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _run(ctx: click.Context, coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine; any escaping error becomes exit status 1"""
    try:
        return asyncio.run(coro)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        click.echo(f"✗ {e}", err=True)
        ctx.exit(1)


def _output_root(ctx: click.Context) -> Path:
    return Path(ctx.obj["output_root"])


def _registries(ctx: click.Context) -> RegistriesConfig:
    try:
        return load_registries_config(ctx.obj["config_path"])
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"✗ {e}", err=True)
        ctx.exit(1)


def _print_source(source: SourceRunResult) -> None:
    if not source.success or source.result is None:
        click.echo(f"✗ {source.name}: {source.error}")
        return
    stats = source.result.stats
    click.echo(
        f"📊 {source.name}: {stats.synced} success, {stats.failed} failed, "
        f"{stats.skipped} skipped of {stats.total} ({format_duration(stats.duration_ms)})"
    )
    for failed in source.result.failed:
        click.echo(f"   ✗ {failed.name}: {failed.error}")
    if source.result.index_error:
        click.echo(f"   ✗ index: {source.result.index_error}")


def _report_json(report: RunReport) -> str:
    data = report.model_dump(mode="json")
    data.update(
        total=report.total,
        succeeded=report.succeeded,
        failed=report.failed,
        item_failures=report.item_failures,
        index_failures=report.index_failures,
    )
    return json.dumps(data, indent=2)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=str),
    default=None,
    help="Registries YAML file (default: REGISTRIES_CONFIG_PATH).",
)
@click.option(
    "--output-root",
    type=click.Path(path_type=str),
    default=None,
    help="Root of per-registry output directories (default: OUTPUT_ROOT).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, output_root: str | None) -> None:
    """Mirror component registries into a local static snapshot."""
    if Path(".env").exists():
        load_dotenv()
    setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path or config.registries_config_path
    ctx.obj["output_root"] = output_root or config.output_root


@cli.command()
@click.argument("name")
@click.option("--dry-run", is_flag=True, help="Preview what would be synced without writing.")
@click.option("--only", default=None, help="Only sync these items (comma separated).")
@click.option("--json", "json_output", is_flag=True, help="Print the sync result as JSON.")
@click.pass_context
def sync(ctx: click.Context, name: str, dry_run: bool, only: str | None, json_output: bool) -> None:
    """Sync one registry."""
    registries = _registries(ctx)
    registry = registries.get_registry(name)
    if registry is None:
        available = ", ".join(r.name for r in registries.registries)
        click.echo(f"✗ Registry not found: {name}\nAvailable registries: {available}", err=True)
        ctx.exit(1)

    runner = SyncRunner([registry], output_root=_output_root(ctx))

    async def _sync_one() -> SourceRunResult:
        async with RegistryFetcher() as fetcher:
            return await runner.run_one(
                registry, fetcher, dry_run=dry_run, only=_parse_only(only)
            )

    source = _run(ctx, _sync_one())
    if json_output:
        click.echo(source.model_dump_json(indent=2))
    else:
        _print_source(source)

    if not source.success or (
        source.result and (source.result.failed or source.result.index_error)
    ):
        ctx.exit(1)


@cli.command("sync-all")
@click.option("--dry-run", is_flag=True, help="Preview what would be synced without writing.")
@click.option(
    "--allow-item-failures",
    is_flag=True,
    help="Exit 0 when every registry completed, even if some items failed.",
)
@click.option("--json", "json_output", is_flag=True, help="Print the run report as JSON.")
@click.pass_context
def sync_all(ctx: click.Context, dry_run: bool, allow_item_failures: bool, json_output: bool) -> None:
    """Sync every enabled registry, one after another."""
    registries = _registries(ctx).get_enabled_registries()
    if not registries:
        click.echo("✗ No registries found", err=True)
        ctx.exit(1)

    runner = SyncRunner(registries, output_root=_output_root(ctx))
    report: RunReport = _run(ctx, runner.run(dry_run=dry_run))

    if json_output:
        click.echo(_report_json(report))
    else:
        for source in report.sources:
            _print_source(source)
        click.echo(
            f"\nTotal: {report.total}  Successful: {report.succeeded}  Failed: {report.failed}"
            f"  Duration: {format_duration(report.duration_ms)}  Timestamp: {utc_timestamp()}"
        )

    ctx.exit(report.exit_code(strict=not allow_item_failures))


@cli.command()
@click.argument("name", required=False)
@click.pass_context
def verify(ctx: click.Context, name: str | None) -> None:
    """Re-validate persisted item files without network access."""
    registries = _registries(ctx)
    if name:
        registry = registries.get_registry(name)
        if registry is None:
            click.echo(f"✗ Registry not found: {name}", err=True)
            ctx.exit(1)
        selected = [registry]
    else:
        selected = registries.registries

    total_valid = 0
    invalid: list[str] = []
    for registry in selected:
        output_dir = Path(registry.output.directory or _output_root(ctx) / registry.name)
        result = verify_registry_output(
            registry.name, output_dir, expect_content=registry.output.preserve_content
        )
        total_valid += len(result.valid)
        if not result.valid and not result.invalid:
            click.echo(f"⚠ {registry.name}: No output files found")
        elif not result.invalid:
            click.echo(f"✓ {registry.name}: {len(result.valid)} valid files")
        else:
            click.echo(
                f"✗ {registry.name}: {len(result.valid)} valid, {len(result.invalid)} invalid"
            )
            for bad in result.invalid:
                click.echo(f"   ✗ {bad.file}: {bad.error}")
                invalid.append(f"{registry.name}/{bad.file}: {bad.error}")

    click.echo(f"\nTotal Valid: {total_valid}  Total Invalid: {len(invalid)}")
    if invalid:
        ctx.exit(1)


@cli.command("build-index")
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=str),
    default=None,
    help="Where to write the global index (default: GLOBAL_INDEX_PATH).",
)
@click.pass_context
def build_index(ctx: click.Context, output_path: str | None) -> None:
    """Write a combined index of every registry."""
    registries = _registries(ctx)
    index = build_global_index(registries.registries, _output_root(ctx))
    path = write_global_index(index, output_path or config.global_index_path)
    click.echo(f"✓ Global index generated: {path}")
    click.echo(f"   Total registries: {len(index.registries)}")
    click.echo(f"   Total components: {index.total_items}")


def main() -> None:
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
