"""File watching and incremental rebuilds for sitegen.

Filesystem events from watchdog are reduced to ``(op, path)`` pairs, where
``op`` is ``add`` (created or written) or ``del`` (removed or renamed away).
Each pair goes through a small state machine:

    idle -> pending (settle delay) -> building -> idle

An event whose pair is already pending or building is dropped, so a burst of
editor writes to one file produces a single rebuild. After the settle delay:

- directories are subscribed (add) or unsubscribed (del);
- files under the source tree update the registry and rebuild only that
  source (or remove its output on del);
- anything else (templates, data, config) triggers a full build, clearing
  the template cache first when a template changed.

When the rebuild is done the pair is cleared, spawned ``serve`` commands are
awaited, and hot-reload clients are notified.

Key names:
- Scheduler: dedup, settle delay and classification of events.
- Watcher: watchdog observer with one non-recursive watch per directory.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import SiteGenError

if TYPE_CHECKING:
    from .build import SiteGen
    from .notifier import Notifier

logger = logging.getLogger(__name__)

ADD = "add"
DEL = "del"


def translate_event(event: FileSystemEvent) -> list[tuple[str, str]]:
    """Reduce a watchdog event to ``(op, path)`` pairs."""
    kind = event.event_type
    src = os.fsdecode(event.src_path)
    if kind == "created":
        return [(ADD, src)]
    if kind == "modified":
        # Directory mtimes change whenever a child does; children report themselves.
        return [] if event.is_directory else [(ADD, src)]
    if kind == "deleted":
        return [(DEL, src)]
    if kind == "moved":
        return [(DEL, src), (ADD, os.fsdecode(event.dest_path))]
    return []


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class Scheduler:
    """Debounces, deduplicates and dispatches ``(op, path)`` events.

    Attributes:
        site: Build engine the rebuilds run against.
        notifier: Hot-reload notifier signaled after every rebuild.
        watcher: Directory subscriptions; None disables directory handling.
        settle_delay: Seconds to wait before handling an event.
    """

    def __init__(
        self,
        site: SiteGen,
        notifier: Notifier | None = None,
        watcher: Watcher | None = None,
        settle_delay: float | None = None,
    ):
        self.site = site
        self.notifier = notifier
        self.watcher = watcher
        self.settle_delay = (
            site.config.settle_delay if settle_delay is None else settle_delay
        )
        self._lock = threading.Lock()
        self._pending: set[tuple[str, str]] = set()

    @property
    def pending(self) -> frozenset[tuple[str, str]]:
        with self._lock:
            return frozenset(self._pending)

    def dispatch(self, op: str, path: str | Path) -> threading.Thread | None:
        """Schedule handling of one event.

        Returns:
            The worker thread, or None when the event was ignored or coalesced.
        """
        path = str(path)
        if os.path.basename(path).startswith("."):
            return None
        key = (op, path)
        with self._lock:
            if key in self._pending:
                logger.debug("Coalesced %s %s", op, path)
                return None
            self._pending.add(key)
        worker = threading.Thread(
            target=self._run, args=(key,), name=f"sitegen-{op}", daemon=True
        )
        worker.start()
        return worker

    def _run(self, key: tuple[str, str]) -> None:
        op, path = key
        if self.settle_delay:
            time.sleep(self.settle_delay)
        try:
            self.process(op, Path(path))
        except (SiteGenError, OSError) as exc:
            logger.error("Rebuild after %s %s failed: %s", op, path, exc)
        finally:
            with self._lock:
                self._pending.discard(key)
        self.site.commands.wait()
        if self.notifier is not None:
            self.notifier.broadcast()

    def process(self, op: str, path: Path) -> None:
        """Handle one settled event."""
        path = path.resolve()
        config = self.site.config

        if self.watcher is not None:
            if op == ADD and path.is_dir():
                self.watcher.add(path)
                return
            if op == DEL and self.watcher.is_watched(path):
                self.watcher.remove(path)
                return
        if op == ADD and path.is_dir():
            return

        rel = path.relative_to(config.site_path) if _is_under(path, config.site_path) else path
        if _is_under(path, config.source_root):
            if op == ADD:
                self.site.add_source(path)
                self.site.build(path)
                logger.info("Rebuilt: %s", rel)
            elif path in self.site.registry:
                self.site.remove(path)
                logger.info("Deleted: %s", rel)
            return

        if _is_under(path, config.templates_root):
            self.site.clear_cache()
        result = self.site.build_all()
        logger.info(
            "Rebuilt %d source(s) after change to %s (%d error(s))",
            result.total,
            rel,
            len(result.errors),
        )


class _EventHandler(FileSystemEventHandler):
    def __init__(self, scheduler: Scheduler):
        super().__init__()
        self.scheduler = scheduler

    def on_any_event(self, event: FileSystemEvent) -> None:
        for op, path in translate_event(event):
            self.scheduler.dispatch(op, path)


class Watcher:
    """Watchdog observer holding one non-recursive watch per site directory.

    Attributes:
        site: Build engine.
        scheduler: Event scheduler the watches feed.
        observer: Watchdog observer (injectable for tests).
    """

    def __init__(
        self,
        site: SiteGen,
        notifier: Notifier | None = None,
        observer: Any | None = None,
    ):
        self.site = site
        self.observer = observer if observer is not None else Observer()
        self.scheduler = Scheduler(site, notifier, self)
        self.handler = _EventHandler(self.scheduler)
        self._exclude = re.compile(site.config.exclude)
        self._watches: dict[Path, Any] = {}
        self._lock = threading.Lock()

    def excluded(self, path: Path) -> bool:
        """Whether a directory is skipped: hidden, excluded by pattern, or output."""
        config = self.site.config
        if _is_under(path, config.public_path):
            return True
        try:
            rel = path.relative_to(config.site_path).as_posix()
        except ValueError:
            return True
        if rel.startswith("."):
            return True
        return bool(self._exclude.search(rel))

    def is_watched(self, path: Path) -> bool:
        with self._lock:
            return path in self._watches

    @property
    def watched(self) -> list[Path]:
        with self._lock:
            return sorted(self._watches)

    def add(self, path: Path) -> bool:
        """Subscribe to ``path``; logged and skipped on failure or exclusion."""
        path = path.resolve()
        if self.is_watched(path) or self.excluded(path):
            return False
        try:
            self._schedule(path)
        except OSError as exc:
            logger.error("Watch dir %s error: %s", path, exc)
            return False
        return True

    def remove(self, path: Path) -> None:
        with self._lock:
            watch = self._watches.pop(path.resolve(), None)
        if watch is None:
            return
        try:
            self.observer.unschedule(watch)
        except (KeyError, OSError) as exc:
            logger.error("Watch stop dir %s error: %s", path, exc)

    def start(self) -> None:
        """Subscribe the site root and every directory under it, then start.

        Raises:
            OSError: The site root itself cannot be watched.
        """
        root = self.site.config.site_path
        self._schedule(root)
        for current, dirnames, _ in os.walk(root):
            kept = []
            for name in sorted(dirnames):
                directory = Path(current) / name
                if not self.excluded(directory):
                    kept.append(name)
                    self.add(directory)
            dirnames[:] = kept
        self.observer.start()
        logger.debug("Watching %d director(ies)", len(self._watches))

    def stop(self) -> None:
        self.observer.stop()
        self.observer.join()

    def _schedule(self, path: Path) -> None:
        watch = self.observer.schedule(self.handler, str(path), recursive=False)
        with self._lock:
            self._watches[path] = watch
