"""
"toc" command: generate the numbered chapter index of a guide collection.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from guidelint.core.exceptions import GuideLintError
from guidelint.data.guide_loader import GuideLoader
from guidelint.services.toc_service import build_toc, write_toc


@click.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--write", "write_index", is_flag=True, help="Update the index file in place")
@click.option("--title", default="Contents", show_default=True, help="Heading for a new index")
@click.pass_context
def toc(ctx, directory: Path, write_index: bool, title: str):
    """Print (or write) the chapter list for DIRECTORY in filename order."""
    settings = ctx.obj["settings"]

    try:
        collection = GuideLoader(settings).load_directory(directory)
    except GuideLintError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if not collection.chapters:
        click.echo(f"No chapters found in {directory}", err=True)
        sys.exit(1)

    contents = build_toc(collection)
    if not write_index:
        click.echo(contents)
        return

    index_path = collection.directory / settings.index_filename
    if collection.index is not None:
        index_path = collection.index.path

    if write_toc(index_path, contents, title=title):
        click.echo(f"✓ Updated {index_path}")
    else:
        click.echo(f"- {index_path} already up to date")
