"""Template function library for sitegen.

These functions are installed as Jinja2 globals on every template set:

    sort(prop, order, list)     stable sort by a field accessor
    limit(n, list)              first n items
    offset(n, list)             items after the first n
    filter(prop, pattern, list) items whose field matches a regex
    select(map)                 mapping as a list of KeyValue pairs
    contains(substr, s)         substring test
    json(value)                 JSON text, safe to embed in <script>
    html(s) / js(s) / css(s)    mark a string as safe
    data(name)                  parsed file from the data directory
    path(p)                     base-path prefixed URL
    sources(prop, pattern)      glob-matched registry entries
    pages(source)               pagination links for a source

``page`` and ``paginate`` are render-scoped and live in pagination.py.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from markupsafe import Markup

from .errors import TemplateFunctionError
from .pagination import pages
from .values import KeyValue, field_value, is_sequence

if TYPE_CHECKING:
    from .paths import PathResolver
    from .registry import SourceRegistry

logger = logging.getLogger(__name__)


def _require_sequence(func: str, value: Any) -> list[Any]:
    if not is_sequence(value):
        raise TemplateFunctionError(
            f"{func} expects a list, got {type(value).__name__}"
        )
    return list(value)


def sort_by(prop: str, order: str, items: Any) -> list[Any]:
    """Stable sort of ``items`` by the string value of ``prop``.

    ``order`` is ``"asc"`` or ``"desc"``.
    """
    values = _require_sequence("sort", items)
    return sorted(
        values, key=lambda item: field_value(prop, item), reverse=order == "desc"
    )


def limit(n: int, items: Any) -> list[Any]:
    values = _require_sequence("limit", items)
    return values[: max(int(n), 0)]


def offset(n: int, items: Any) -> list[Any]:
    values = _require_sequence("offset", items)
    return values[max(int(n), 0) :]


def filter_by(prop: str, pattern: str, items: Any) -> list[Any]:
    """Items whose ``prop`` value matches the regex ``pattern``, in order."""
    values = _require_sequence("filter", items)
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise TemplateFunctionError(f"filter pattern {pattern!r}: {exc}") from exc
    return [item for item in values if regex.search(field_value(prop, item))]


def select(mapping: Any) -> list[KeyValue]:
    if not isinstance(mapping, Mapping):
        raise TemplateFunctionError(
            f"select expects a mapping, got {type(mapping).__name__}"
        )
    return [KeyValue(str(k), v) for k, v in mapping.items()]


def contains(substr: str, s: str) -> bool:
    return str(substr) in str(s)


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, KeyValue):
        return {"Key": value.Key, "Value": value.Value}
    return str(value)


def to_json(value: Any) -> Markup:
    """Serialize ``value`` as JSON for embedding in a script block."""
    try:
        text = json.dumps(value, default=_json_default)
    except (TypeError, ValueError) as exc:
        logger.warning("json failed for %r: %s", value, exc)
        text = ""
    # "</" would close the surrounding <script> element.
    return Markup(text.replace("</", "<\\/"))


def allow_html(s: str) -> Markup:
    return Markup(s)


def load_data_file(path: Path) -> Any:
    """Parse a JSON or YAML data file; None (logged) when it cannot be read."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("load data failed %s: %s", path, exc)
        return None
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(raw)
        return json.loads(raw)
    except (ValueError, yaml.YAMLError) as exc:
        logger.error("load data parse failed %s: %s", path, exc)
        return None


class SiteFunctions:
    """Functions bound to one site: its data directory, base path and registry."""

    def __init__(self, data_root: Path, resolver: PathResolver, registry: SourceRegistry):
        self.data_root = data_root
        self.resolver = resolver
        self.registry = registry

    def data(self, name: str) -> Any:
        return load_data_file(self.data_root / name)

    def path(self, p: str) -> str:
        return self.resolver.url(str(p))

    def sources(self, prop: str, pattern: str) -> list[Any]:
        return self.registry.glob(prop, pattern)

    def as_globals(self) -> dict[str, Any]:
        """The whole library, ready to install on a Jinja2 environment."""
        return {
            "sort": sort_by,
            "limit": limit,
            "offset": offset,
            "filter": filter_by,
            "select": select,
            "contains": contains,
            "json": to_json,
            "html": allow_html,
            "js": allow_html,
            "css": allow_html,
            "pages": pages,
            "data": self.data,
            "path": self.path,
            "sources": self.sources,
        }
