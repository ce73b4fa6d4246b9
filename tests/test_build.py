import logging

import pytest

from sitegen.build import BuildResult, SiteGen
from sitegen.errors import BuildError, MinifyError, SourceNotFoundError


def _read(path):
    return path.read_text(encoding="utf-8")


@pytest.fixture
def project(make_config, write):
    config = make_config()
    src = config.source_root
    write(config.templates_root / "index.html", "<html>{% block content %}{% endblock %}</html>")
    write(src / "index.html", "---\ntitle: Home\n---\n{% block content %}<h1>{{ title }}</h1>{% endblock %}")
    write(src / "about.html", "---\npath: /custom\n---\n<p>About</p>")
    write(
        src / "news.html",
        "{% for item in paginate(2, sources('Path', '/news/*')) %}"
        "{{ item.meta.title }};{% endfor %}|{{ Page }}/{{ Pages }}"
        "{% for link in pages(Source) %} {{ link.Path }}{% endfor %}",
    )
    for name in ("a", "b", "c"):
        write(src / "news" / f"{name}.html", f"---\ntitle: {name.upper()}\n---\n{name}")
    write(src / "css" / "site.css", "body {\n  color: red;\n}\n")
    return config


def test_build_all_writes_outputs(project):
    site = SiteGen(project)
    result = site.build_all()
    public = project.public_path

    assert result.ok
    assert result.counts == {".html": 6, ".css": 1}
    assert result.total == 7
    assert _read(public / "index.html") == "<html><h1>Home</h1></html>"
    assert _read(public / "custom" / "index.html") == "\n<p>About</p>"
    assert not (public / "about").exists()
    assert _read(public / "news" / "a" / "index.html") == "\na"
    assert _read(public / "css" / "site.css") == "body {\n  color: red;\n}\n"


def test_pagination_writes_derived_pages(project):
    SiteGen(project).build_all()
    public = project.public_path
    assert _read(public / "news" / "index.html") == "A;B;|1/2 /news /news/2"
    assert _read(public / "news" / "2" / "index.html") == "C;|2/2 /news /news/2"


def test_rebuild_is_repeatable(project):
    site = SiteGen(project)
    site.build_all()
    site.build(project.source_root / "news.html")
    assert _read(project.public_path / "news" / "index.html") == "A;B;|1/2 /news /news/2"
    assert not (project.public_path / "news" / "3").exists()


def test_sub_pages_are_written(project, write):
    src = project.source_root
    write(src / "tags.html", "{{ page('tag.html', 'python') }} {{ page('tag.html', 'python') }}")
    write(src / "tag.html", "---\ntitle: Topic\n---\n{{ title }}: {{ Path }}")
    site = SiteGen(project)
    site.build(src / "tags.html")

    assert _read(project.public_path / "tags" / "index.html") == "/tags/python /tags/python"
    assert _read(project.public_path / "tags" / "python" / "index.html") == "\nTopic: python"


def test_source_waiting_for_parameter_is_not_written(project, write):
    write(project.source_root / "tag.html", "{{ Path }}")
    site = SiteGen(project)
    site.build(project.source_root / "tag.html")
    assert not (project.public_path / "tag").exists()


def test_build_unknown_source(project):
    site = SiteGen(project)
    with pytest.raises(SourceNotFoundError):
        site.build(project.source_root / "missing.html")


def test_failed_render_keeps_previous_output(project, write, caplog):
    site = SiteGen(project)
    site.build_all()
    target = project.public_path / "index.html"

    write(project.source_root / "index.html", "{% block content %}{{ missing() }}{% endblock %}")
    site.add_source(project.source_root / "index.html")
    with caplog.at_level(logging.ERROR), pytest.raises(BuildError, match="render produced no output"):
        site.build(project.source_root / "index.html")
    assert _read(target) == "<html><h1>Home</h1></html>"


def test_build_all_collects_errors(project, write):
    write(project.source_root / "broken.html", "{% if %}")
    result = SiteGen(project).build_all()
    assert not result.ok
    assert len(result.errors) == 1
    assert result.errors[0].source_path.name == "broken.html"
    assert (project.public_path / "index.html").exists()


def test_failed_derived_page_is_reported(project, write):
    src = project.source_root
    write(src / "tags.html", "{{ page('tag.html', 'python') }}")
    write(src / "tag.html", "{{ Path }}{{ 1 // 0 }}")
    site = SiteGen(project)
    with pytest.raises(BuildError, match="/tags/python"):
        site.build(src / "tags.html")
    assert (project.public_path / "tags" / "index.html").exists()
    assert not (project.public_path / "tags" / "python").exists()


def test_clean_removes_stale_output(make_config, project):
    stale = project.public_path / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")

    SiteGen(project).build_all()
    assert stale.exists()

    SiteGen(make_config(clean=True)).build_all()
    assert not stale.exists()
    assert (project.public_path / "index.html").exists()


def test_build_all_reload(project, write):
    site = SiteGen(project)
    site.build_all()
    write(project.source_root / "css" / "site.css", "p{}")
    site.build_all()
    assert _read(project.public_path / "css" / "site.css") == "body {\n  color: red;\n}\n"
    site.build_all(reload=True)
    assert _read(project.public_path / "css" / "site.css") == "p{}"


def test_remove_deletes_output_and_empty_directory(project):
    site = SiteGen(project)
    site.build_all()
    news_a = project.source_root / "news" / "a.html"

    site.remove(news_a)
    assert not (project.public_path / "news" / "a").exists()
    assert news_a not in site.registry
    with pytest.raises(SourceNotFoundError):
        site.remove(news_a)


def test_remove_keeps_public_root(project):
    site = SiteGen(project)
    site.build_all()
    site.remove(project.source_root / "css" / "site.css")
    assert not (project.public_path / "css" / "site.css").exists()
    assert not (project.public_path / "css").exists()

    site.remove(project.source_root / "index.html")
    assert project.public_path.is_dir()


def test_remove_without_output(project):
    site = SiteGen(project)
    site.remove(project.source_root / "index.html")
    assert project.source_root / "index.html" not in site.registry


class FakeCommands:
    def __init__(self):
        self.ran = []
        self.spawned = []

    def run(self, command):
        self.ran.append(command)
        return 0

    def spawn(self, command):
        self.spawned.append(command)

    def wait(self):
        pass


def test_build_command_replaces_copy(make_config, write):
    config = make_config()
    write(config.source_root / "app.js", "---\nbuild: npm run prod\nserve: npm run dev\n---\nx")
    commands = FakeCommands()
    SiteGen(config, commands=commands).build_all()
    assert commands.ran == ["npm run prod"]
    assert commands.spawned == []
    assert not (config.public_path / "app.js").exists()


def test_serve_command_in_dev_mode(make_config, write):
    config = make_config(dev=True)
    write(config.source_root / "app.js", "---\nbuild: npm run prod\nserve: npm run dev\n---\nx")
    commands = FakeCommands()
    SiteGen(config, commands=commands).build_all()
    assert commands.spawned == ["npm run dev"]
    assert commands.ran == []


def test_minify_pass_through_assets(make_config, write):
    config = make_config(minify=True)
    write(config.source_root / "site.css", "body {\n  color: red;\n}\n")
    write(config.source_root / "app.js", "function  add(a, b) {\n  return a + b;\n}\n")
    write(config.source_root / "logo.svg", "<svg>  </svg>")
    SiteGen(config).build_all()
    public = config.public_path
    assert _read(public / "site.css") == "body{color:red}"
    assert "\n  " not in _read(public / "app.js")
    assert _read(public / "logo.svg") == "<svg>  </svg>"


def test_minify_failure_is_a_build_error(make_config, write):
    class BrokenMinifier:
        def minify(self, content_type, data):
            raise MinifyError("boom")

    config = make_config()
    write(config.source_root / "site.css", "body{}")
    result = SiteGen(config, minifier=BrokenMinifier()).build_all()
    assert "minify failed" in str(result.errors[0])


def test_build_result_defaults():
    result = BuildResult()
    assert result.ok and result.total == 0
