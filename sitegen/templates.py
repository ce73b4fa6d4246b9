"""Template rendering engine for sitegen.

Sources are rendered with Jinja2 against a template set: every file in the
templates directory with the format's extension (``*.html`` for markup,
``*.txt`` for text). A set is compiled once per format and cached until
``clear_cache`` is called (the watcher does so when a template changes).

A source body targets a named template, its ``template`` metadata or else
its own file name. When the set has that template and the body defines
``{% block %}`` sections, the body is compiled as a child of it and those
sections override the template's blocks. A body without blocks overrides the
template entirely.

Render context: all metadata fields, ``page``/``paginate`` for this render,
and the reserved keys Path, Page, Pages, Dev, Source, BasePath and Today.

Key names:
- TemplateSet: compiled templates of one format.
- TemplateEngine: cache of template sets and the ``render`` call.
- needs_parameter: skip rule for sources that only exist to be ``page()``d.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import DictLoader, Environment, TemplateSyntaxError

from .content import ContentType
from .errors import MinifyError
from .pagination import BuildContext, RenderScope

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import Source
    from .functions import SiteFunctions
    from .minify import Minifier
    from .registry import SourceRegistry

logger = logging.getLogger(__name__)

MARKUP_FORMAT = "html"
TEXT_FORMAT = "txt"

TODAY_FORMAT = "%Y-%m-%d"

# A bare ``Path`` inside a tag, not ``Source.path``-style access or a string.
_PATH_PARAM_RE = re.compile(r"\{[{%][^}]*?(?<![\w.'\"])Path\b")
_EXTENDS_RE = re.compile(r"\{%-?\s*extends\s")
_BLOCK_RE = re.compile(r"\{%-?\s*block\s")


def needs_parameter(source: Source) -> bool:
    """Whether ``source`` expects a page parameter that is not bound."""
    return not source.param and bool(_PATH_PARAM_RE.search(source.text()))


def format_error_message(exc: Exception) -> str:
    """Format a render exception into a user-friendly message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    return f"{error_type}: {error_msg}"


class TemplateSet:
    """Compiled templates of one format.

    Attributes:
        format: Template file extension without the dot.
        env: Jinja2 environment holding the templates and the function library.
        names: Template names in the set.
    """

    def __init__(self, fmt: str, templates_root: Path, functions: dict[str, Any]):
        self.format = fmt
        files = sorted(templates_root.glob(f"*.{fmt}")) if templates_root.exists() else []
        sources = {path.name: path.read_text(encoding="utf-8") for path in files}
        self.names = frozenset(sources)
        self.env = Environment(
            loader=DictLoader(sources),
            autoescape=fmt == MARKUP_FORMAT,
            keep_trailing_newline=True,
        )
        self.env.globals.update(functions)
        for name in sorted(sources):
            self.env.get_template(name)

    def compile(self, body: str, target: str):
        """Compile a source body against the template named ``target``.

        A body made of ``{% block %}`` sections extends the target; any other
        body replaces it and renders on its own.
        """
        if (
            target in self.names
            and _BLOCK_RE.search(body)
            and not _EXTENDS_RE.search(body)
        ):
            body = '{% extends "' + target + '" %}' + body
        return self.env.from_string(body)


class TemplateEngine:
    """Renders sources against cached template sets.

    Attributes:
        config: Site configuration.
        registry: Source registry (loads content, resolves paths).
        functions: Site-bound template function library.
        minifier: Optional minifier applied to markup output.
    """

    def __init__(
        self,
        config: SiteConfig,
        registry: SourceRegistry,
        functions: SiteFunctions,
        minifier: Minifier | None = None,
    ):
        self.config = config
        self.registry = registry
        self.functions = functions
        self.minifier = minifier
        self._cache: dict[str, TemplateSet] = {}

    def template_set(self, fmt: str) -> TemplateSet:
        """Return the cached set for ``fmt``, building it on first use."""
        cached = self._cache.get(fmt)
        if cached is None:
            cached = TemplateSet(fmt, self.config.templates_root, self.functions.as_globals())
            self._cache[fmt] = cached
        return cached

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cached_formats(self) -> list[str]:
        return sorted(self._cache)

    def render(self, source: Source, fmt: str, build: BuildContext) -> bytes | None:
        """Render ``source`` with the ``fmt`` template set.

        Derived pages staged by the render are committed to ``build`` only when
        the render succeeds.

        Returns:
            Rendered bytes, or None when the source has no content, is skipped
            by the page-parameter rule, or fails to render (logged).
        """
        if source.derived:
            content = source.load(self.config.delimiter)
        else:
            content = self.registry.load(source)
        if content is None:
            return None
        if needs_parameter(source):
            logger.debug("%s: skipped, no page parameter bound", source.local)
            return None

        target = str(source.meta.get("template") or source.local.name)
        scope = RenderScope(source, build, self.registry, self.config.source_root)
        unpaginated = source.page == 0
        try:
            template = self.template_set(fmt).compile(source.text(), target)
            rendered = template.render(self._context(source, scope))
            if unpaginated and source.page:
                # Page and Pages are only known once paginate() has run.
                rendered = template.render(self._context(source, scope))
        except Exception as exc:
            logger.error("%s: render failed: %s", source.local, format_error_message(exc))
            return None
        build.commit(scope)

        body = rendered.encode("utf-8")
        if fmt == MARKUP_FORMAT and self.minifier is not None:
            try:
                body = self.minifier.minify(ContentType.HTML, body)
            except MinifyError as exc:
                logger.error("%s: minify failed: %s", source.local, exc)
        return body

    def _context(self, source: Source, scope: RenderScope) -> dict[str, Any]:
        context: dict[str, Any] = dict(source.meta)
        context.update(scope.context())
        context.update(
            {
                "Path": source.param,
                "Page": source.page,
                "Pages": source.pages,
                "Dev": self.config.dev,
                "Source": source,
                "BasePath": self.config.base_path,
                "Today": datetime.now().strftime(TODAY_FORMAT),
            }
        )
        return context
