"""End-to-end builds through the command line entry point."""

import pytest

from babysteps.cli import main

BASE_TEMPLATE = """<html><head><title>{{title}}</title>
{{alternate_links}}
{{extra_head}}</head>
<body><nav>{{nav}}</nav><aside>{{pinned}}</aside><main>{{content}}</main></body></html>
"""


@pytest.fixture
def project(tmp_path, monkeypatch, fake_aafigure):
    command, _ = fake_aafigure
    monkeypatch.chdir(tmp_path)
    (tmp_path / "templates").mkdir()
    (tmp_path / "templates" / "base.html").write_text(BASE_TEMPLATE, encoding="utf-8")
    content = tmp_path / "content"
    (content / "posts").mkdir(parents=True)
    (content / "about.md").write_text("---\ntitle: About\ntype: main\n---\nWho I am.\n", encoding="utf-8")
    (content / "posts" / "first.md").write_text(
        "---\ntitle: First\ndate: 2024-01-01\npinned: yes\n---\n"
        "{% aafigure -s 0.8 %}\n+--+\n{% endaafigure %}\n",
        encoding="utf-8",
    )
    (content / "posts" / "second.md").write_text(
        "---\ntitle: Second\ndate: 2024-02-01\n---\n```mermaid\ngraph TD; A-->B\n```\n",
        encoding="utf-8",
    )
    (tmp_path / "site.toml").write_text(
        'title = "Baby Steps"\n'
        'base_url = "https://example.com/babysteps"\n'
        f"aafigure = {command!r}\n"
        "build_workers = 1\n",
        encoding="utf-8",
    )
    return tmp_path


def test_build_writes_pages_home_and_feeds(project, capsys):
    main([])

    out = project / "public"
    first = (out / "posts" / "first" / "index.html").read_text(encoding="utf-8")
    second = (out / "posts" / "second" / "index.html").read_text(encoding="utf-8")
    home = (out / "index.html").read_text(encoding="utf-8")

    assert "<title>First · Baby Steps</title>" in first
    assert '<div><svg style="width:100%" width="100" height="50"><rect/></svg>' in first
    assert "<script" not in first
    assert second.count('<script type="module">') == 1
    assert "<title>Baby Steps</title>" in home
    assert 'href="/babysteps/about/">About</a>' in home
    assert 'href="/babysteps/posts/first/">First</a>' in home.split("<aside>")[1]
    assert (out / "about" / "index.html").exists()
    assert (out / "404.html").exists()
    assert (out / "css" / "pygments.css").exists()
    assert "https://example.com/babysteps/posts/second/" in (out / "rss.xml").read_text(encoding="utf-8")
    assert (out / "atom.xml").exists()
    assert "Build completed" in capsys.readouterr().out


def test_build_without_base_url_skips_feeds(project):
    main(["--base-url", ""])
    out = project / "public"
    assert (out / "index.html").exists()
    assert not (out / "rss.xml").exists()
    assert "alternate" not in (out / "index.html").read_text(encoding="utf-8")


def test_missing_renderer_fails_the_build(project, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--aafigure", str(project / "missing-aafigure")])
    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Build failed: posts/first.md, aafigure block 1" in err
    assert not (project / "public" / "posts" / "first" / "index.html").exists()


def test_missing_content_directory(project, capsys):
    with pytest.raises(SystemExit):
        main(["--content", "nowhere"])
    assert "Content directory not found" in capsys.readouterr().err


def test_unparseable_config_exits(project, capsys):
    (project / "site.toml").write_text("title = \n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1
    assert "Cannot parse config file site.toml" in capsys.readouterr().err


def test_clean_refuses_directory_outside_project(project, tmp_path_factory, capsys):
    outside = tmp_path_factory.mktemp("elsewhere")
    (outside / "keep.txt").write_text("x", encoding="utf-8")
    with pytest.raises(SystemExit):
        main(["--output", str(outside)])
    assert "Build failed: Refusing to clean" in capsys.readouterr().err
    assert (outside / "keep.txt").exists()


def test_skipped_draft_with_broken_diagram_does_not_fail(project):
    (project / "content" / "posts" / "wip.md").write_text(
        "---\ntitle: WIP\ndraft: true\n---\n{% aafigure %}\n+\n{% endaafigure %}\n",
        encoding="utf-8",
    )
    (project / "content" / "posts" / "first.md").unlink()
    main(["--aafigure", str(project / "missing-aafigure")])
    assert not (project / "public" / "posts" / "wip" / "index.html").exists()
    assert (project / "public" / "posts" / "second" / "index.html").exists()
