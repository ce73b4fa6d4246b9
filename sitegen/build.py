"""Site building for sitegen.

SiteGen owns the build engine: the source registry, the template engine and
the output tree. It renders or copies one source at a time (``build``),
rebuilds everything (``build_all``) and removes outputs of deleted sources
(``remove``). Calls are serialized with a lock so the watcher's rebuild
threads never render concurrently against the same template cache.

Key names:
- SiteGen: the build engine.
- BuildResult: per-extension counts and collected errors of a full build.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from .commands import CommandRunner
from .config import SiteConfig
from .content import Source
from .errors import BuildError, MinifyError, SiteGenError, SourceNotFoundError
from .functions import SiteFunctions
from .minify import Minifier
from .pagination import BuildContext
from .paths import PathResolver
from .registry import SourceRegistry
from .templates import MARKUP_FORMAT, TEXT_FORMAT, TemplateEngine, needs_parameter

logger = logging.getLogger(__name__)

_FORMAT_BY_PARSE = {"text": TEXT_FORMAT, "html": MARKUP_FORMAT}
_FORMAT_BY_EXTENSION = {".txt": TEXT_FORMAT, ".html": MARKUP_FORMAT, ".htm": MARKUP_FORMAT}


@dataclass
class BuildResult:
    """Result of a full build.

    Attributes:
        counts: Number of sources built per file extension.
        errors: Per-source failures; the build carried on past each of them.
    """

    counts: dict[str, int] = field(default_factory=dict)
    errors: list[SiteGenError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class SiteGen:
    """Static site build engine.

    Attributes:
        config: Site configuration.
        resolver: Logical and physical path mapping.
        registry: Registered sources keyed by absolute path.
        engine: Template engine with the per-format template cache.
        minifier: Minifier, None unless ``config.minify`` is set.
        commands: Runner for ``build``/``serve`` metadata commands.
    """

    def __init__(
        self,
        config: SiteConfig,
        minifier: Minifier | None = None,
        commands: CommandRunner | None = None,
    ):
        self.config = config
        self.resolver = PathResolver(config.source_root, config.public_path, config.base_path)
        self.registry = SourceRegistry(self.resolver, config.delimiter)
        self.minifier = minifier if minifier is not None else (Minifier() if config.minify else None)
        self.commands = commands or CommandRunner(config.site_path)
        self.engine = TemplateEngine(
            config,
            self.registry,
            SiteFunctions(config.data_root, self.resolver, self.registry),
            self.minifier,
        )
        self._lock = threading.RLock()
        self.registry.scan()

    def clear_cache(self) -> None:
        with self._lock:
            self.engine.clear_cache()

    def add_source(self, path: Path | str) -> Source:
        """Register a new source or reload an existing one."""
        with self._lock:
            return self.registry.add(path)

    def build(self, path: Path | str) -> None:
        """Render or copy one registered source to its output location.

        Raises:
            SourceNotFoundError: ``path`` is not registered.
            BuildError: The source (or one of its derived pages) failed.
        """
        with self._lock:
            source = self.registry.get(path)
            if source is None:
                raise SourceNotFoundError(path)
            content = self.registry.load(source)
            if needs_parameter(source):
                return

            fmt = self._format_for(source)
            if fmt is None:
                self._pass_through(source, content)
            else:
                self._render(source, fmt)

    def build_all(self, reload: bool = False) -> BuildResult:
        """Build every registered source.

        Args:
            reload: Re-read every source from disk first.

        Returns:
            Per-extension counts and the errors of sources that failed.
        """
        with self._lock:
            result = BuildResult()
            if self.config.clean and self.config.public_path.exists():
                try:
                    shutil.rmtree(self.config.public_path)
                except OSError as exc:
                    result.errors.append(
                        BuildError(self.config.public_path, f"clean failed: {exc}", exc)
                    )
                    return result
            counts: Counter[str] = Counter()
            for source in self.registry.list():
                if reload:
                    self.registry.reload(source)
                counts[source.ext] += 1
                try:
                    self.build(source.local)
                except (SiteGenError, OSError) as exc:
                    logger.error("Build %s error: %s", source.local, exc)
                    result.errors.append(
                        exc if isinstance(exc, SiteGenError)
                        else BuildError(source.local, str(exc), exc)
                    )
            result.counts = dict(counts)
            return result

    def remove(self, path: Path | str) -> None:
        """Delete the output of ``path`` and forget the source.

        The parent output directory is removed too when it ends up empty.

        Raises:
            SourceNotFoundError: ``path`` is not registered.
        """
        with self._lock:
            source = self.registry.get(path)
            if source is None:
                raise SourceNotFoundError(path)
            target = self.resolver.output_path(source)
            self.registry.forget(path)
            try:
                target.unlink()
            except FileNotFoundError:
                return
            parent = target.parent
            if parent != self.config.public_path and parent.is_dir() and not any(parent.iterdir()):
                parent.rmdir()

    def _format_for(self, source: Source) -> str | None:
        forced = source.meta.get("parse")
        if isinstance(forced, str) and forced in _FORMAT_BY_PARSE:
            return _FORMAT_BY_PARSE[forced]
        return _FORMAT_BY_EXTENSION.get(source.ext)

    def _render(self, source: Source, fmt: str) -> None:
        build = BuildContext()
        source.reset_pagination()
        body = self.engine.render(source, fmt, build)
        if body is None:
            raise BuildError(source.local, "render produced no output")
        self._write(self.resolver.output_path(source), body)

        failed: list[str] = []
        while build:
            derived = build.pop()
            child = self.engine.render(derived, fmt, build)
            if child is None:
                failed.append(derived.path)
                continue
            self._write(self.resolver.output_path(derived), child)
        if failed:
            raise BuildError(source.local, f"derived pages failed: {', '.join(failed)}")

    def _pass_through(self, source: Source, content: bytes | None) -> None:
        if content is None:
            raise BuildError(source.local, "source could not be read")
        serve = source.meta.get("serve")
        build = source.meta.get("build")
        if self.config.dev and serve:
            self.commands.spawn(str(serve))
            return
        if not self.config.dev and build:
            self.commands.run(str(build))
            return
        if self.minifier is not None and source.content_type.is_minifiable:
            try:
                content = self.minifier.minify(source.content_type, content)
            except MinifyError as exc:
                raise BuildError(source.local, f"minify failed: {exc}", exc) from exc
        self._write(self.resolver.output_path(source), content)

    @staticmethod
    def _write(target: Path, body: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(body)
