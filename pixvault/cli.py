"""CLI commands for pixvault."""

import asyncio
import logging
import mimetypes
from pathlib import Path

import click

from pixvault.auth.gate import StaticGate, issue_admin_token
from pixvault.config import get_settings
from pixvault.db.services.ingest_service import AssetMetadata, RawAsset
from pixvault.gallery import Gallery
from pixvault.lib.imaging import detect_image_content_type
from pixvault.state import AppState


def _run(coro_factory):
    """Build AppState, run one coroutine against a privileged Gallery, clean up."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async def main():
        state = AppState.from_settings(settings)
        try:
            return await coro_factory(state, Gallery(state, StaticGate(True)))
        finally:
            await state.close()

    return asyncio.run(main())


@click.group()
@click.version_option(package_name="pixvault")
def cli():
    """pixvault - image ingestion, catalog and thumbnail cache."""
    pass


@cli.command("init-db")
def init_db():
    """Create catalog tables."""
    _run(lambda state, gallery: state.create_schema())
    click.echo("Catalog tables created")


def _content_type(path: Path, data: bytes) -> str:
    return (
        detect_image_content_type(data)
        or mimetypes.guess_type(path.name)[0]
        or "application/octet-stream"
    )


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--prompt", default=None, help="Prompt/caption for every file")
@click.option("--source", default=None, help="Source category")
@click.option("--style", default=None, help="Style name")
@click.option("--style-ref", default=None, help="Style reference")
def ingest(files, prompt, source, style, style_ref):
    """Ingest image files into the catalog."""
    batch = []
    for path in files:
        data = path.read_bytes()
        batch.append(RawAsset(filename=path.name, data=data, content_type=_content_type(path, data)))
    metadata = [
        AssetMetadata(
            original_filename=path.name,
            prompt=prompt,
            source=source,
            style=style,
            style_ref=style_ref,
        )
        for path in files
    ]

    result = _run(lambda state, gallery: gallery.ingest(batch, metadata))

    for item in result.succeeded:
        click.echo(f"ok    {item.id}\t{item.storage_key}\t{item.width}x{item.height}")
    for failure in result.failed:
        click.echo(f"fail  {failure.item}\t{failure.error}", err=True)
    if result.failed:
        raise SystemExit(1)


@cli.command()
@click.option("--limit", default=None, type=int, help="Maximum number of assets to process")
def backfill(limit):
    """Recompute missing perceptual hashes and dominant colors."""
    result = _run(lambda state, gallery: gallery.backfill_metadata(limit))
    click.echo(f"Updated {len(result.succeeded)} images, {len(result.failed)} failed")
    for failure in result.failed:
        click.echo(f"fail  {failure.item}\t{failure.error}", err=True)


@cli.command()
def shuffle():
    """Re-randomize the shuffled listing order."""
    count = _run(lambda state, gallery: gallery.shuffle())
    click.echo(f"Shuffled {count} images")


@cli.command("empty-trash")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def empty_trash(yes):
    """Permanently delete every trashed image."""
    if not yes:
        click.confirm("Permanently delete all trashed images?", abort=True)
    count = _run(lambda state, gallery: gallery.empty_trash())
    click.echo(f"Deleted {count} images")


@cli.command("clear-cache")
def clear_cache():
    """Remove every cached thumbnail."""
    count = _run(lambda state, gallery: state.thumbnails.clear())
    click.echo(f"Removed {count} cached thumbnails")


@cli.command("issue-token")
def issue_token():
    """Print an admin token signed with the configured admin secret."""
    settings = get_settings()
    if not settings.auth.admin_secret:
        raise click.ClickException("auth.admin_secret is not configured")
    click.echo(issue_admin_token(settings.auth.admin_secret, settings.auth.token_ttl))


if __name__ == "__main__":
    cli()
