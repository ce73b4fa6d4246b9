"""Site configuration for sitegen.

Configuration comes from three layers, later ones winning:
built-in defaults, an optional ``sitegen.yaml`` in the project root, and
explicit overrides (usually CLI options).

Key names:
- SiteConfig: resolved settings shared by every build component.
- load_config: merges the layers and resolves paths.
- normalize_base_path: canonical URL prefix form.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "sitegen.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "site": "./site",
    "source": "src",
    "data": "data",
    "templates": "templates",
    "public": "./public",
    "base": "/",
    "exclude": "^(node_modules|bower_components)",
    "clean": False,
    "minify": False,
    "port": 8888,
    "settle_delay": 0.5,
    "delimiter": "---",
}


@dataclass
class SiteConfig:
    """Resolved site settings.

    Attributes:
        site_path: Absolute site root (contains source, data and templates).
        source_dir: Source folder name relative to the site root.
        data_dir: Data folder name relative to the site root.
        templates_dir: Templates folder name relative to the site root.
        public_path: Absolute output root.
        base_path: URL prefix, always ``/`` or ``/a/b/``.
        exclude: Regex of site-relative directories the watcher skips.
        clean: Wipe the output root before a full build.
        minify: Minify rendered markup and passed-through assets.
        dev: Dev mode (``serve`` commands instead of ``build`` commands).
        port: Dev server port.
        settle_delay: Seconds the watcher waits before handling an event.
        delimiter: Frontmatter delimiter token.
    """

    site_path: Path
    public_path: Path
    source_dir: str = "src"
    data_dir: str = "data"
    templates_dir: str = "templates"
    base_path: str = "/"
    exclude: str = DEFAULT_CONFIG["exclude"]
    clean: bool = False
    minify: bool = False
    dev: bool = False
    port: int = 8888
    settle_delay: float = 0.5
    delimiter: str = "---"

    def __post_init__(self) -> None:
        self.site_path = Path(self.site_path).resolve()
        self.public_path = Path(self.public_path).resolve()
        self.base_path = normalize_base_path(self.base_path)

    @property
    def source_root(self) -> Path:
        return self.site_path / self.source_dir

    @property
    def data_root(self) -> Path:
        return self.site_path / self.data_dir

    @property
    def templates_root(self) -> Path:
        return self.site_path / self.templates_dir


def normalize_base_path(base: str | None) -> str:
    """Return ``base`` as a URL prefix with exactly one leading and trailing slash.

    Examples:
        >>> normalize_base_path("")
        '/'
        >>> normalize_base_path("blog")
        '/blog/'
    """
    if not base:
        return "/"
    base = base.replace("\\", "/").strip("/")
    if not base:
        return "/"
    return f"/{base}/"


def load_config(
    project_root: Path, overrides: dict[str, Any] | None = None
) -> SiteConfig:
    """Build a SiteConfig from defaults, ``sitegen.yaml`` and overrides.

    Args:
        project_root: Directory relative paths are resolved against.
        overrides: Values that win over the file; ``None`` values are ignored.

    Returns:
        The resolved configuration.
    """
    config = DEFAULT_CONFIG.copy()
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update({k: v for k, v in loaded.items() if k in DEFAULT_CONFIG})
    if overrides:
        config.update({k: v for k, v in overrides.items() if v is not None})

    return SiteConfig(
        site_path=project_root / str(config["site"]),
        public_path=project_root / str(config["public"]),
        source_dir=str(config["source"]),
        data_dir=str(config["data"]),
        templates_dir=str(config["templates"]),
        base_path=str(config["base"] or "/"),
        exclude=str(config["exclude"]),
        clean=bool(config["clean"]),
        minify=bool(config["minify"]),
        dev=bool(config.get("dev", False)),
        port=int(config["port"]),
        settle_delay=float(config["settle_delay"]),
        delimiter=str(config["delimiter"]),
    )
