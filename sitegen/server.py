"""Development server for sitegen.

Serves the output tree with hot reload:
- ``/__hotreload`` is a text/event-stream; each finished build pushes
  ``data: updated``.
- HTML responses get a script injected before ``</body>`` that reloads the
  page on ``updated`` and reconnects after an error.
- Directories serve their ``index.html``; missing paths serve
  ``<base>404.html`` when present.
- The watcher rebuilds on source changes and signals the notifier.

Key classes:
- DevServer: builds, watches and serves until interrupted.
- _ReloadHandler: HTTP request handler with script injection and the event stream.
"""

from __future__ import annotations

import functools
import logging
import mimetypes
import queue
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .build import SiteGen
from .notifier import Notifier
from .watcher import Watcher

logger = logging.getLogger(__name__)

HOT_RELOAD_PATH = "/__hotreload"

HOT_RELOAD_SCRIPT = """<script>
function initHotReload() {
  if (typeof(EventSource) !== "undefined") {
    const es = new EventSource("/__hotreload");
    es.onmessage = function(event) {
      if (event.data === "updated") {
        location.reload();
      }
    };
    es.onerror = function(err) {
      console.error("ES:", err);
      es.close();
      setTimeout(initHotReload, 5000);
    };
  }
}
initHotReload();
</script>"""


def inject_reload_script(content: str, script: str = HOT_RELOAD_SCRIPT) -> str:
    """Insert ``script`` before ``</body>``; content without one is unchanged."""
    if "</body>" not in content:
        return content
    return content.replace("</body>", f"{script}</body>")


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Static file handler with hot reload.

    Attributes:
        notifier: Notifier the event stream subscribes to.
        base_path: Site base path, used to locate 404.html.
        keepalive: Seconds between keep-alive comments on the event stream.
    """

    notifier: Notifier | None = None
    base_path = "/"
    keepalive = 15.0

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002 - signature from the base class
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def do_GET(self):
        if self.path.split("?", 1)[0] == HOT_RELOAD_PATH:
            self._stream_events()
            return
        super().do_GET()

    def _stream_events(self) -> None:
        if self.notifier is None:
            self.send_error(503, "Hot reload unavailable")
            return
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Connection", "keep-alive")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        subscriber = self.notifier.subscribe()
        try:
            while True:
                try:
                    event = subscriber.get(timeout=self.keepalive)
                    chunk = f"data: {event}\n\n"
                except queue.Empty:
                    chunk = ": keepalive\n\n"
                self.wfile.write(chunk.encode("utf-8"))
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError):
            pass
        finally:
            self.notifier.unregister(subscriber)

    def _send_html(self, status: int, content: str) -> None:
        encoded = inject_reload_script(content).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / self.base_path.lstrip("/") / "404.html"
        if error_page.exists():
            logger.info("%s not found in %s", self.path, self.directory)
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        url_path = self.path.split("?", 1)[0]
        if url_path.endswith("/index.html"):
            self.send_response(301)
            self.send_header("Location", "./")
            self.end_headers()
            return None

        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            if not url_path.endswith("/"):
                self.send_response(301)
                self.send_header("Location", url_path.rsplit("/", 1)[-1] + "/")
                self.end_headers()
                return None
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix in (".html", ".htm"):
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()

    def guess_type(self, path):
        guessed, _ = mimetypes.guess_type(str(path))
        return guessed or super().guess_type(path)


class DevServer:
    """Development server: initial build, watcher, notifier and HTTP server.

    Attributes:
        site: Build engine (``config.dev`` should be set).
        port: HTTP port.
        notifier: Hot-reload notifier.
        watcher: Filesystem watcher feeding incremental rebuilds.
    """

    def __init__(self, site: SiteGen, port: int | None = None):
        self.site = site
        self.port = int(port or site.config.port)
        self.notifier = Notifier()
        self.watcher = Watcher(site, self.notifier)
        self._httpd: ThreadingHTTPServer | None = None

    def handler_class(self) -> type[_ReloadHandler]:
        return type(
            "_ReloadHandlerForSite",
            (_ReloadHandler,),
            {"notifier": self.notifier, "base_path": self.site.config.base_path},
        )

    def start(self) -> None:  # pragma: no cover - integration path
        result = self.site.build_all()
        for error in result.errors:
            logger.error("%s", error)
        self.notifier.start()
        self.watcher.start()
        handler = functools.partial(
            self.handler_class(), directory=str(self.site.config.public_path)
        )
        self._httpd = ThreadingHTTPServer(("", self.port), handler)
        self._httpd.daemon_threads = True
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        logger.info(
            "Serving %s at http://localhost:%d%s",
            self.site.config.public_path,
            self.port,
            self.site.config.base_path,
        )
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        self.watcher.stop()
        self.notifier.stop()
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
