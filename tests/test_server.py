import io
import queue

from sitegen.build import SiteGen
from sitegen.notifier import UPDATED, Notifier
from sitegen.server import HOT_RELOAD_SCRIPT, DevServer, _ReloadHandler, inject_reload_script


def _handler(tmp_path, path, cls=_ReloadHandler):
    handler = cls.__new__(cls)
    handler.path = path
    handler.directory = str(tmp_path)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()
    handler.codes = []
    handler.sent_headers = []
    handler.send_response = lambda code, message=None: handler.codes.append(code)
    handler.send_header = lambda key, value: handler.sent_headers.append((key, value))
    handler.end_headers = lambda: None
    handler.send_error = lambda code, message=None: handler.codes.append(("error", code))
    return handler


def test_inject_reload_script():
    assert inject_reload_script("<body>x</body>", "<s/>") == "<body>x<s/></body>"
    assert inject_reload_script("no body", "<s/>") == "no body"
    assert "EventSource" in HOT_RELOAD_SCRIPT
    assert "/__hotreload" in HOT_RELOAD_SCRIPT


def test_directory_serves_index_with_script(tmp_path):
    (tmp_path / "news").mkdir()
    (tmp_path / "news" / "index.html").write_text("<html><body>News</body></html>", encoding="utf-8")
    handler = _handler(tmp_path, "/news/")
    assert _ReloadHandler.send_head(handler) is None
    body = handler.wfile.getvalue()
    assert handler.codes == [200]
    assert b"News" in body
    assert b"EventSource" in body


def test_directory_without_slash_redirects(tmp_path):
    (tmp_path / "news").mkdir()
    handler = _handler(tmp_path, "/news")
    _ReloadHandler.send_head(handler)
    assert handler.codes == [301]
    assert ("Location", "news/") in handler.sent_headers


def test_index_html_redirects_to_directory(tmp_path):
    handler = _handler(tmp_path, "/news/index.html")
    _ReloadHandler.send_head(handler)
    assert handler.codes == [301]
    assert ("Location", "./") in handler.sent_headers


def test_missing_path_serves_custom_404(tmp_path):
    (tmp_path / "404.html").write_text("<html><body>oops</body></html>", encoding="utf-8")
    handler = _handler(tmp_path, "/missing")
    assert _ReloadHandler.send_head(handler) is None
    assert handler.codes == [404]
    assert b"oops" in handler.wfile.getvalue()


def test_404_under_base_path(tmp_path):
    (tmp_path / "blog").mkdir()
    (tmp_path / "blog" / "404.html").write_text("<body>lost</body>", encoding="utf-8")
    handler = _handler(tmp_path, "/blog/missing")
    handler.base_path = "/blog/"
    _ReloadHandler.send_head(handler)
    assert handler.codes == [404]
    assert b"lost" in handler.wfile.getvalue()


def test_missing_path_without_404_page(tmp_path):
    handler = _handler(tmp_path, "/missing")
    _ReloadHandler.send_head(handler)
    assert handler.codes == [("error", 404)]


def test_static_files_fall_back(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = _handler(tmp_path, "/style.css")
    result = _ReloadHandler.send_head(handler)
    assert result is not None
    assert result.read() == b"body{}"
    result.close()


def test_event_stream_without_notifier(tmp_path):
    handler = _handler(tmp_path, "/__hotreload")
    _ReloadHandler._stream_events(handler)
    assert handler.codes == [("error", 503)]


def test_event_stream_pushes_updates(tmp_path):
    events = queue.Queue()
    events.put(UPDATED)

    class StubNotifier:
        def __init__(self):
            self.unregistered = []

        def subscribe(self):
            return events

        def unregister(self, subscriber):
            self.unregistered.append(subscriber)

    class ClosingWriter(io.BytesIO):
        def flush(self):
            if self.getvalue():
                raise BrokenPipeError

    notifier = StubNotifier()
    handler = _handler(tmp_path, "/__hotreload")
    handler.notifier = notifier
    handler.keepalive = 0.01
    handler.wfile = ClosingWriter()
    _ReloadHandler._stream_events(handler)

    assert handler.codes == [200]
    assert ("Content-Type", "text/event-stream") in handler.sent_headers
    assert handler.wfile.getvalue() == b"data: updated\n\n"
    assert notifier.unregistered == [events]


def test_dev_server_handler_class(make_config):
    config = make_config(base_path="/blog/", port=9001)
    server = DevServer(SiteGen(config))
    assert server.port == 9001
    assert DevServer(SiteGen(config), port=5050).port == 5050

    handler_cls = server.handler_class()
    assert issubclass(handler_cls, _ReloadHandler)
    assert handler_cls.notifier is server.notifier
    assert isinstance(server.notifier, Notifier)
    assert handler_cls.base_path == "/blog/"
    assert _ReloadHandler.notifier is None


def test_dev_server_stop(make_config):
    server = DevServer(SiteGen(make_config()))
    calls = []

    class DummyObserver:
        def stop(self):
            calls.append("stop")

        def join(self):
            calls.append("join")

    server.watcher.observer = DummyObserver()
    server.notifier.start()
    server.stop()
    assert calls == ["stop", "join"]
    assert not server.notifier.is_running
