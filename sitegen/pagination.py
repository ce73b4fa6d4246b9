"""Pagination and derived pages for sitegen.

A render may synthesize extra output pages:

- ``paginate(limit, list)`` splits a listing; pages 2..N become derived
  sources at ``<path>/<n>``.
- ``page(relPath, subPath)`` renders another source file as a sub-page at
  ``<path>/<subPath>`` and returns that path for linking.

Derived sources are staged on the RenderScope while the render runs and are
committed to the BuildContext queue only when the render succeeds, so a
failed render never leaves half of a page sequence behind. The build drains
the queue (FIFO) right after the primary source.
"""

from __future__ import annotations

import math
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

from .errors import TemplateFunctionError
from .values import is_sequence

if TYPE_CHECKING:
    from .content import Source
    from .registry import SourceRegistry


class PageLink(NamedTuple):
    """One entry of the ``pages()`` listing."""

    Path: str
    Page: int
    Active: bool


def _child_path(parent: str, segment: str) -> str:
    return f"{parent.rstrip('/')}/{segment}"


def pages(source: Source) -> list[PageLink]:
    """Pagination links for ``source``; empty unless it spans several pages."""
    if source.pages <= 1:
        return []
    root = source.page_root or source.path
    return [
        PageLink(
            Path=root if number == 1 else _child_path(root, str(number)),
            Page=number,
            Active=number == source.page,
        )
        for number in range(1, source.pages + 1)
    ]


class BuildContext:
    """State scoped to one ``build`` call: the generation queue.

    Attributes:
        queue: Derived sources waiting to be rendered, FIFO.
        sub_pages: Derived sources created by ``page()``, keyed by sub-path.
    """

    def __init__(self) -> None:
        self.queue: deque[Source] = deque()
        self.sub_pages: dict[str, Source] = {}

    def __len__(self) -> int:
        return len(self.queue)

    def pop(self) -> Source:
        return self.queue.popleft()

    def commit(self, scope: RenderScope) -> None:
        self.queue.extend(scope.staged)
        self.sub_pages.update(scope.staged_pages)
        scope.staged.clear()
        scope.staged_pages.clear()


class RenderScope:
    """Render-scoped ``page`` and ``paginate`` for one source.

    Attributes:
        source: The source being rendered.
        build: Generation queue of the enclosing build.
        registry: Registry used to load ``page()`` sources (not stored there).
        source_root: Root ``page()`` paths are relative to.
        staged: Derived sources produced by this render, not yet committed.
        staged_pages: ``page()`` sources produced by this render, by sub-path.
    """

    def __init__(
        self,
        source: Source,
        build: BuildContext,
        registry: SourceRegistry,
        source_root: Path,
    ):
        self.source = source
        self.build = build
        self.registry = registry
        self.source_root = source_root
        self.staged: list[Source] = []
        self.staged_pages: dict[str, Source] = {}
        self._current_slice: list[Any] | None = None

    def paginate(self, limit: int, items: Any) -> list[Any]:
        """Return the current page's slice of ``items``.

        The first call of a render on an unpaginated source computes the page
        count and stages pages 2..N. Later calls in the same render return the
        slice computed by the first one.
        """
        if self._current_slice is not None:
            return self._current_slice
        if not is_sequence(items):
            raise TemplateFunctionError(
                f"paginate expects a list, got {type(items).__name__}"
            )
        try:
            size = int(limit)
        except (TypeError, ValueError) as exc:
            raise TemplateFunctionError(f"paginate limit {limit!r} is not a number") from exc
        if size <= 0:
            raise TemplateFunctionError(f"paginate limit must be positive, got {size}")

        values = list(items)
        source = self.source
        if source.page == 0:
            source.pages = math.ceil(len(values) / size)
            source.page = 1
            source.page_root = source.path
            for number in range(2, source.pages + 1):
                self.staged.append(
                    source.derive(
                        path=_child_path(source.path, str(number)),
                        name=f"{number}{source.ext}",
                        page=number,
                    )
                )
        start = (source.page - 1) * size
        self._current_slice = values[start : min(start + size, len(values))]
        return self._current_slice

    def page(self, rel_path: str, sub_path: str) -> str:
        """Stage ``rel_path`` as a sub-page at ``<path>/<sub_path>``.

        A sub-path is created once per build; repeated calls return the same
        logical path without queueing the page again.
        """
        sub_path = str(sub_path)
        existing = self.build.sub_pages.get(sub_path) or self.staged_pages.get(sub_path)
        if existing is not None:
            return existing.path
        derived = self.registry.load_derived(self.source_root / str(rel_path))
        derived.path = _child_path(self.source.path, sub_path)
        derived.name = f"{sub_path}{derived.ext}"
        derived.param = sub_path
        self.staged_pages[sub_path] = derived
        self.staged.append(derived)
        return derived.path

    def context(self) -> dict[str, Any]:
        return {"page": self.page, "paginate": self.paginate}
