"""Minification for sitegen.

Wraps the minifier libraries behind one call,
``Minifier.minify(content_type, data) -> bytes``:

- JavaScript: rjsmin
- CSS: csscompressor
- HTML: minify-html (inline CSS and JS included)
- JSON: re-serialized without whitespace
"""

from __future__ import annotations

import json

import csscompressor
import minify_html
from rjsmin import jsmin

from .content import ContentType
from .errors import MinifyError


class Minifier:
    """Minifies bytes by content type; other types pass through unchanged."""

    def supports(self, content_type: ContentType) -> bool:
        return content_type in (
            ContentType.HTML,
            ContentType.CSS,
            ContentType.JAVASCRIPT,
            ContentType.JSON,
        )

    def minify(self, content_type: ContentType, data: bytes) -> bytes:
        """Return the minified form of ``data``.

        Raises:
            MinifyError: The input could not be decoded or minified.
        """
        if not self.supports(content_type):
            return data
        try:
            text = data.decode("utf-8")
            if content_type is ContentType.JAVASCRIPT:
                result = jsmin(text)
            elif content_type is ContentType.CSS:
                result = csscompressor.compress(text)
            elif content_type is ContentType.JSON:
                result = json.dumps(json.loads(text), separators=(",", ":"))
            else:
                result = minify_html.minify(
                    text,
                    minify_css=True,
                    minify_js=True,
                    keep_html_and_head_opening_tags=True,
                    keep_closing_tags=True,
                )
        except Exception as exc:
            raise MinifyError(f"{content_type.mime_type}: {exc}") from exc
        return result.encode("utf-8")
