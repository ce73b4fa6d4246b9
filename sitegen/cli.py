"""Command-line interface for sitegen.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a starter site.
- build: Build the site into the public directory.
- serve: Build, then watch and serve with hot reload.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import click

from . import __version__

# Path to the starter site copied by ``new``
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


def _site_options(func):
    """Attach the options shared by ``build`` and ``serve``."""
    options = [
        click.option("--site", help="Site root (contains source, data and templates)"),
        click.option("--source", help="Source folder, relative to the site root"),
        click.option("--data", help="Data folder, relative to the site root"),
        click.option("--templates", help="Templates folder, relative to the site root"),
        click.option("--public", help="Output directory"),
        click.option("--base", help="URL prefix the site is served under"),
        click.option("--exclude", help="Regex of directories the watcher skips"),
        click.option("--clean/--no-clean", default=None, help="Wipe the output first"),
        click.option("--minify/--no-minify", default=None, help="Minify output"),
        click.option("--verbose", "-v", is_flag=True, help="Log debug output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(overrides: dict, dev: bool = False):
    from .config import load_config

    overrides = dict(overrides)
    if dev:
        overrides["dev"] = True
    return load_config(Path.cwd(), overrides)


@click.group()
@click.version_option(version=__version__, prog_name="sitegen")
def cli():
    """sitegen static site generator."""


@cli.command()
@click.argument("path")
def new(path: str):
    """Scaffold a starter site."""
    target = Path(path).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New site created at {target}")


@cli.command()
@_site_options
def build(verbose: bool, **overrides):
    """Build the site into the public directory."""
    _setup_logging(verbose)
    from .build import SiteGen

    config = _load(overrides)
    result = SiteGen(config).build_all()
    if result.errors:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        for error in result.errors:
            click.echo(click.style(f"  {error}", fg="yellow"), err=True)
        raise SystemExit(1)
    counts = ", ".join(f"{n} {ext or '(none)'}" for ext, n in sorted(result.counts.items()))
    click.echo(f"Built {result.total} sources into {config.public_path}")
    if counts:
        click.echo(f"  {counts}")


@cli.command()
@_site_options
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides sitegen.yaml)",
)
def serve(verbose: bool, port: int | None, **overrides):
    """Run dev server with hot reload."""
    _setup_logging(verbose)
    from .build import SiteGen
    from .server import DevServer

    config = _load(overrides, dev=True)
    server = DevServer(SiteGen(config), port=port)
    server.start()


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter site into ``root``.

    Args:
        root: Root directory for the new project.
    """
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
