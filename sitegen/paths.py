"""Path resolution for sitegen.

Maps a source to its logical (public, URL-facing) path and to the physical
file it is written to under the output root.

Markup sources use directory-style routing: ``news.html`` is served as
``/news`` and written to ``news/index.html``; ``news/index.html`` is served
as ``/news/``. A ``path`` metadata override replaces the derived path.

Key class:
- PathResolver: pure, deterministic logical/physical path mapping.
"""

from __future__ import annotations

import re
from pathlib import Path

from .content import MARKUP_EXTENSIONS, Source

_DUPLICATE_SLASHES_RE = re.compile(r"/{2,}")


class PathResolver:
    """Resolves logical and physical paths for sources.

    Attributes:
        source_root: Absolute source tree root.
        public_root: Absolute output root.
        base_path: Normalized URL prefix (``/`` or ``/a/b/``).
    """

    def __init__(self, source_root: Path, public_root: Path, base_path: str = "/"):
        self.source_root = Path(source_root).resolve()
        self.public_root = Path(public_root).resolve()
        self.base_path = base_path

    def url(self, path: str) -> str:
        """Prefix ``path`` with the base path.

        Examples:
            >>> PathResolver(Path("src"), Path("public"), "/blog/").url("/css/a.css")
            '/blog/css/a.css'
        """
        return self.base_path + path.lstrip("/")

    def resolve(self, source: Source) -> str:
        """Return the logical path of ``source``.

        The ``path`` metadata override is used verbatim behind the base path.
        Otherwise the path is derived from the location under the source root.
        """
        override = source.meta.get("path")
        if override is not None:
            return self.url(str(override))

        try:
            rel = source.local.relative_to(self.source_root).as_posix()
        except ValueError:
            rel = source.local.as_posix()
        path = "/" + rel
        if source.ext in MARKUP_EXTENSIONS:
            path = path.removesuffix(source.local.suffix)
            if path.endswith("/index"):
                path = path[: -len("index")]
        path = path.replace("\\", "/")
        return _DUPLICATE_SLASHES_RE.sub("/", self.url(path))

    def output_path(self, source: Source) -> Path:
        """Return the file ``source`` is written to.

        Markup sources whose logical path does not already name a markup file
        are written as ``<logical path>/index<ext>``.
        """
        rel = source.path.lstrip("/")
        if source.ext in MARKUP_EXTENSIONS:
            if source.path.endswith(MARKUP_EXTENSIONS):
                return self.public_root / rel
            return self.public_root / rel / f"index{source.ext}"
        return self.public_root / rel
