"""Flask CLI commands for the asset combiner."""

import click
from flask import current_app
from flask.cli import AppGroup

combiner_cli = AppGroup("combiner", help="Asset combiner maintenance.")


@combiner_cli.command("reset")
def reset_command():
    """Forget every combined file recorded in the cache."""
    removed = current_app.extensions["combiner"].reset_cache()
    click.echo(f"Combiner cache reset. removed={removed}")


@combiner_cli.command("build")
def build_command():
    """Compile the registered bundles to their destinations."""
    combiner = current_app.extensions["combiner"]
    if not combiner.get_bundles():
        click.echo("No bundles registered.")
        return

    try:
        written = combiner.build_bundles()
    except Exception as exc:
        raise click.ClickException(f"Bundle build failed: {exc}") from exc

    for destination in written:
        click.echo(f"built: {destination}")
    click.echo(f"Bundle build complete. written={len(written)}")
