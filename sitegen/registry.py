"""Source registry for sitegen.

The registry is the authoritative map of build units, keyed by absolute
source path. It is populated by scanning the source tree and kept current by
the watcher (add, reload, forget).
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterator
from pathlib import Path

from .content import Source
from .paths import PathResolver
from .values import field_value

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Map of absolute source path to Source.

    Attributes:
        resolver: Resolver used to (re)compute logical paths after a load.
        delimiter: Frontmatter delimiter token.
    """

    def __init__(self, resolver: PathResolver, delimiter: str = "---"):
        self.resolver = resolver
        self.delimiter = delimiter
        self._sources: dict[Path, Source] = {}

    def __iter__(self) -> Iterator[Source]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return Path(path).resolve() in self._sources

    def get(self, path: Path | str) -> Source | None:
        return self._sources.get(Path(path).resolve())

    def list(self) -> list[Source]:
        """All sources ordered by local path."""
        return [self._sources[key] for key in sorted(self._sources)]

    def scan(self) -> int:
        """Register every non-hidden file under the source root.

        Returns:
            Number of sources registered.
        """
        root = self.resolver.source_root
        if not root.exists():
            logger.warning("Source directory %s does not exist", root)
            return 0
        count = 0
        for path in sorted(root.rglob("*")):
            if path.is_dir() or path.name.startswith("."):
                continue
            self.add(path)
            count += 1
        return count

    def add(self, path: Path | str) -> Source:
        """Register ``path`` (or reload it when already registered)."""
        existing = self.get(path)
        if existing is not None:
            return self.reload(existing)
        source = Source.from_path(path)
        self.load(source)
        self._sources[source.local] = source
        return source

    def load(self, source: Source) -> bytes | None:
        """Load ``source`` if needed and refresh its logical path."""
        content = source.load(self.delimiter)
        source.path = self.resolver.resolve(source)
        return content

    def reload(self, source: Source) -> Source:
        source.content = None
        self.load(source)
        return source

    def forget(self, path: Path | str) -> Source | None:
        return self._sources.pop(Path(path).resolve(), None)

    def load_derived(self, path: Path | str) -> Source:
        """Load a source that is not stored in the registry."""
        source = Source.from_path(path)
        self.load(source)
        source.derived = True
        return source

    def glob(self, prop: str, pattern: str) -> list[Source]:
        """Sources whose ``prop`` value matches the shell-style ``pattern``.

        ``*`` also matches ``/``, so ``/news/*`` covers nested paths.
        """
        return [
            source
            for source in self.list()
            if fnmatch.fnmatchcase(field_value(prop, source), pattern)
        ]
