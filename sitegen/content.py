"""Content loading for sitegen.

A Source is one build unit: a file under the source tree (or a page derived
from one during rendering). Text-like files may start with a frontmatter
block delimited by a repeated token (``---`` by default); the block is parsed
as YAML and the rest of the file is the body.

Key names:
- ContentType: content-type tag resolved once from the file extension.
- Source: a build unit with metadata, lazily loaded content and pagination state.
- split_frontmatter: split the metadata block from a file body.
- parse_metadata: parse a metadata block into a dict.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

MARKUP_EXTENSIONS = (".html", ".htm")


class ContentType(Enum):
    """Content-type tag of a source, keyed by MIME type."""

    HTML = "text/html"
    CSS = "text/css"
    JAVASCRIPT = "application/javascript"
    XML = "text/xml"
    TEXT = "text/plain"
    MARKDOWN = "text/markdown"
    JSON = "application/json"
    SVG = "image/svg+xml"
    OTHER = "application/octet-stream"

    @classmethod
    def from_extension(cls, ext: str) -> ContentType:
        return _EXTENSION_TYPES.get(ext.lower(), cls.OTHER)

    @property
    def mime_type(self) -> str:
        return self.value

    @property
    def is_text(self) -> bool:
        """Whether files of this type may carry a frontmatter block."""
        return self in _TEXT_TYPES

    @property
    def is_minifiable(self) -> bool:
        """Whether passed-through files of this type are minified."""
        return self in (ContentType.CSS, ContentType.JAVASCRIPT)


_EXTENSION_TYPES = {
    ".html": ContentType.HTML,
    ".htm": ContentType.HTML,
    ".css": ContentType.CSS,
    ".js": ContentType.JAVASCRIPT,
    ".mjs": ContentType.JAVASCRIPT,
    ".xml": ContentType.XML,
    ".txt": ContentType.TEXT,
    ".md": ContentType.MARKDOWN,
    ".json": ContentType.JSON,
    ".svg": ContentType.SVG,
}

_TEXT_TYPES = frozenset(
    {
        ContentType.HTML,
        ContentType.CSS,
        ContentType.JAVASCRIPT,
        ContentType.XML,
        ContentType.TEXT,
        ContentType.MARKDOWN,
    }
)


def split_frontmatter(raw: bytes, delimiter: str = "---") -> tuple[bytes | None, bytes]:
    """Split a metadata block from a file body.

    Everything between the first and second occurrence of ``delimiter`` is the
    metadata block; the body is the file with ``delimiter + block + delimiter``
    removed. A delimiter that never closes leaves the whole file as body.

    Args:
        raw: File content.
        delimiter: Delimiter token.

    Returns:
        Tuple of (metadata block or None, body).

    Examples:
        >>> split_frontmatter(b"ABC---DEF---GHI")
        (b'DEF', b'ABCGHI')
        >>> split_frontmatter(b"no metadata --- here")
        (None, b'no metadata --- here')
    """
    sep = delimiter.encode("utf-8")
    start = raw.find(sep)
    if start < 0:
        return None, raw
    rest = raw[start + len(sep) :]
    end = rest.find(sep)
    if end < 0:
        return None, raw
    block = rest[:end]
    return block, raw.replace(sep + block + sep, b"")


def parse_metadata(block: bytes, origin: Path | str = "") -> dict[str, Any]:
    """Parse a frontmatter block as a YAML mapping.

    Malformed YAML and non-mapping documents yield an empty dict; the error
    is logged against ``origin``.
    """
    try:
        data = yaml.safe_load(block.decode("utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        logger.warning("%s: metadata error: %s", origin, exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("%s: metadata is not a mapping, ignoring", origin)
        return {}
    return {str(k): v for k, v in data.items()}


@dataclass
class Source:
    """One build unit.

    Attributes:
        local: Absolute path of the file on disk (registry key).
        ext: Lower-cased file extension, including the dot.
        content_type: Content-type tag resolved from ``ext``.
        name: Output file name, e.g. ``about.html`` or ``2.html`` for a page.
        meta: Frontmatter metadata.
        path: Logical (public) path; set by the path resolver on load.
        page: Current page number, 0 until a render paginates.
        pages: Total page count, 0 until a render paginates.
        param: Page parameter bound by ``page()``; empty for registry sources.
        page_root: Logical path of page 1 for pagination siblings.
        derived: True for sources synthesized during a render.
    """

    local: Path
    ext: str = ""
    content_type: ContentType = ContentType.OTHER
    name: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    path: str = ""
    page: int = 0
    pages: int = 0
    param: str = ""
    page_root: str = ""
    derived: bool = False
    content: bytes | None = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Path | str) -> Source:
        local = Path(path).resolve()
        ext = local.suffix.lower()
        return cls(
            local=local,
            ext=ext,
            content_type=ContentType.from_extension(ext),
            name=local.name,
        )

    @property
    def is_loaded(self) -> bool:
        return self.content is not None

    def load(self, delimiter: str = "---") -> bytes | None:
        """Load content and metadata unless already loaded.

        An unreadable file is logged and leaves ``content`` as None with empty
        metadata; the source stays usable.
        """
        if self.content is not None:
            return self.content
        self.reset_pagination()
        self.meta = {}
        try:
            raw = self.local.read_bytes()
        except OSError as exc:
            logger.error("%s: source loading failed: %s", self.local, exc)
            return None
        if self.content_type.is_text:
            block, body = split_frontmatter(raw, delimiter)
            if block is not None:
                self.meta = parse_metadata(block, self.local)
        else:
            body = raw
        self.content = body
        return self.content

    def reload(self, delimiter: str = "---") -> bytes | None:
        self.content = None
        return self.load(delimiter)

    def reset_pagination(self) -> None:
        self.page = 0
        self.pages = 0

    def text(self) -> str:
        """Decoded body, empty when the content could not be loaded."""
        if self.content is None:
            return ""
        return self.content.decode("utf-8", errors="replace")

    def derive(self, path: str, name: str, **changes: Any) -> Source:
        """Return a derived copy of this source with its own logical path.

        Metadata is deep-copied so a derived page cannot leak edits back into
        the registry entry.
        """
        clone = copy.copy(self)
        clone.meta = copy.deepcopy(self.meta)
        clone.path = path
        clone.name = name
        clone.derived = True
        for key, value in changes.items():
            setattr(clone, key, value)
        return clone

    def value(self, prop: str) -> Any:
        """Return the raw value behind a field accessor key.

        Known keys: ``Path``, ``Local``, ``Filename``, ``Name``, ``Ext`` and
        ``Meta.<field>[.<sub>...]``. Unknown keys yield None.
        """
        if prop == "Path":
            return self.path
        if prop == "Local":
            return str(self.local)
        if prop == "Filename":
            return self.local.name
        if prop == "Name":
            return self.name
        if prop == "Ext":
            return self.ext
        if prop.startswith("Meta."):
            value: Any = self.meta
            for part in prop[5:].split("."):
                if not isinstance(value, dict):
                    return None
                value = value.get(part)
            return value
        return None

    # Capitalized names match the accessor keys, so templates can write
    # ``item.Path`` or ``item.Meta.title``.
    @property
    def Path(self) -> str:
        return self.path

    @property
    def Meta(self) -> dict[str, Any]:
        return self.meta

    @property
    def Name(self) -> str:
        return self.name

    @property
    def Local(self) -> str:
        return str(self.local)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Source({self.local}, path={self.path!r}, page={self.page}/{self.pages})"
