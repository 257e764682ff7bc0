"""Flask CLI commands for admin operations."""
import os
import click
from flask import current_app
from imagehub.models.actor import Actor, UPLOADER_TYPES


def _cli_actor(actor_id, name, uploader_type):
    return Actor.create(actor_id, name, uploader_type)


actor_options = [
    click.option("--actor", "actor_id", default="cli", show_default=True),
    click.option("--actor-name", default="Command line", show_default=True),
    click.option(
        "--actor-type",
        default="ADMIN",
        show_default=True,
        type=click.Choice(UPLOADER_TYPES, case_sensitive=False),
    ),
]


def with_actor(func):
    for option in reversed(actor_options):
        func = option(func)
    return func


def _echo_summary(summary):
    click.echo(
        f"Ingested {summary.ingested}: {summary.matched} matched, "
        f"{summary.unmatched} unmatched, {summary.updated} updates, "
        f"{summary.failed} failed"
    )
    for name in summary.failures:
        click.echo(f"  failed: {name}")


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables and seed default settings."""
        from imagehub.extensions import db
        from imagehub.models.settings import Settings, WATERMARK_KEY

        db.create_all()
        if Settings.get(WATERMARK_KEY) is None:
            Settings.set_watermark_settings(Settings.get_watermark_settings())
        click.echo("Database initialized with default settings.")

    @app.cli.command("seed-catalog")
    @click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
    def seed_catalog(csv_path):
        """Upsert catalog items from a part_number,name,brand CSV file."""
        from imagehub.services.catalog_service import import_products_csv

        with open(csv_path, encoding="utf-8-sig") as f:
            written = import_products_csv(f.read())
        click.echo(f"Imported {written} catalog items.")

    @app.cli.command("import-dir")
    @click.argument("path", type=click.Path(exists=True, file_okay=False))
    @with_actor
    def import_dir(path, actor_id, actor_name, actor_type):
        """Ingest every accepted image file in a directory (not recursive)."""
        from imagehub.services import image_record_service, image_service

        actor = _cli_actor(actor_id, actor_name, actor_type)
        names = sorted(
            name
            for name in os.listdir(path)
            if os.path.isfile(os.path.join(path, name))
            and image_service.is_accepted_upload(name)
        )

        def files():
            for name in names:
                with open(os.path.join(path, name), "rb") as f:
                    yield name, f.read()

        with click.progressbar(length=len(names), label="Importing") as bar:
            summary = image_record_service.ingest_batch(
                files(),
                actor,
                progress=lambda processed, total: bar.update(1),
                total=len(names),
            )
        _echo_summary(summary)

    @app.cli.command("import-zip")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @with_actor
    def import_zip(path, actor_id, actor_name, actor_type):
        """Ingest every image inside a zip archive."""
        from imagehub.errors import ArchiveFormatError
        from imagehub.services import image_record_service

        actor = _cli_actor(actor_id, actor_name, actor_type)
        with open(path, "rb") as f:
            data = f.read()
        try:
            summary = image_record_service.ingest_archive(data, actor)
        except ArchiveFormatError as e:
            raise click.ClickException(e.message)
        _echo_summary(summary)

    @app.cli.command("stats")
    @click.option("--refresh", is_flag=True, help="Recompute instead of reading the cache.")
    def stats(refresh):
        """Show image coverage statistics."""
        from imagehub.services.image_record_service import get_stats

        s = get_stats(refresh=refresh)
        click.echo(f"Products: {s.total_products}")
        click.echo(
            f"  with images: {s.products_with_images} ({s.coverage_percent}%)"
        )
        click.echo(f"  without images: {s.products_without_images}")
        click.echo(f"Images: {s.total_images}")
        click.echo(f"  pending approval: {s.pending_approval}")
        click.echo(f"  unmatched: {s.unmatched_images}")
        click.echo(f"  archived: {s.archived_images}")
        for uploader, count in sorted(s.images_by_uploader.items()):
            click.echo(f"  by {uploader}: {count}")

    @app.cli.command("watermark")
    @click.argument("src", type=click.Path(exists=True, dir_okay=False))
    @click.argument("dst", type=click.Path(dir_okay=False, writable=True))
    def watermark(src, dst):
        """Apply the current watermark settings to an image file."""
        from imagehub.models.settings import Settings
        from imagehub.services import image_service, watermark_service

        with open(src, "rb") as f:
            data = f.read()
        result = watermark_service.apply_watermark(
            data,
            Settings.get_watermark_settings(),
            font_path=current_app.config["WATERMARK_FONT_PATH"],
            logo_timeout=current_app.config["LOGO_FETCH_TIMEOUT"],
        )
        with open(dst, "wb") as f:
            f.write(result)
        click.echo(f"Wrote {dst} ({image_service.format_file_size(len(result))})")
