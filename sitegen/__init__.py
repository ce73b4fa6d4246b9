"""Sitegen static site generator.

Renders a tree of content files (pages, assets, data-driven partials) against
Jinja2 templates into a static output tree, and keeps that tree in sync with
the sources while they are being edited.

The build engine lives in a handful of modules:
- content / paths / registry: what a source is and where it ends up.
- templates / functions / pagination: rendering and derived pages.
- build: the pipeline that writes output files.
- watcher / notifier / server: incremental rebuilds and hot reload.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
