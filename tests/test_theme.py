import subprocess

import pytest

from quire.theme import BUNDLED_THEMES_DIR, Theme, ThemeError, ThemeNotFoundError, update_theme


def test_bundled_default_theme_resolves(tmp_path):
    theme = Theme.resolve(tmp_path, "default")
    assert theme.bundled is True
    assert theme.root == BUNDLED_THEMES_DIR / "default"
    assert (theme.layouts_dir / "post.html.jinja").exists()


def test_project_theme_takes_precedence(tmp_path):
    local = tmp_path / "themes" / "default"
    (local / "layouts").mkdir(parents=True)
    theme = Theme.resolve(tmp_path, "default")
    assert theme.bundled is False
    assert theme.root == local


def test_empty_submodule_directory_is_an_error(tmp_path):
    (tmp_path / "themes" / "paper").mkdir(parents=True)
    with pytest.raises(ThemeNotFoundError) as exc_info:
        Theme.resolve(tmp_path, "paper")
    assert "empty directory" in str(exc_info.value)
    assert "git submodule update" in str(exc_info.value)


def test_unknown_theme_lists_searched_paths(tmp_path):
    with pytest.raises(ThemeNotFoundError) as exc_info:
        Theme.resolve(tmp_path, "missing")
    assert exc_info.value.searched_paths[0] == tmp_path / "themes" / "missing"


def test_site_overrides_come_first(tmp_path):
    (tmp_path / "layouts" / "partials").mkdir(parents=True)
    (tmp_path / "layouts" / "partials" / "header.html.jinja").write_text("custom", encoding="utf-8")
    (tmp_path / "static" / "css").mkdir(parents=True)
    (tmp_path / "static" / "css" / "style.css").write_text("body{}", encoding="utf-8")
    (tmp_path / "static" / "extra.txt").write_text("x", encoding="utf-8")
    theme = Theme.resolve(tmp_path, "default")

    dirs = theme.template_dirs()
    assert dirs[0] == tmp_path / "layouts"
    assert dirs.index(tmp_path / "layouts") < dirs.index(theme.layouts_dir)
    assert theme.static_dirs() == [theme.static_dir, tmp_path / "static"]
    assert theme.overridden_files() == [
        "layouts/partials/header.html.jinja",
        "static/css/style.css",
    ]


def test_update_theme_runs_git_submodule(monkeypatch, tmp_path):
    calls = {}

    def fake_run(cmd, cwd=None, capture_output=False, text=False):
        calls["cmd"] = cmd
        calls["cwd"] = cwd
        return subprocess.CompletedProcess(cmd, 0, stdout="Submodule path 'themes/paper': checked out\n", stderr="")

    monkeypatch.setattr("quire.theme.shutil.which", lambda name: "/usr/bin/git")
    monkeypatch.setattr("quire.theme.subprocess.run", fake_run)

    output = update_theme(tmp_path, "paper")
    assert output == "Submodule path 'themes/paper': checked out"
    assert calls["cmd"] == [
        "/usr/bin/git", "submodule", "update", "--init", "--recursive", "--remote", "themes/paper"
    ]
    assert calls["cwd"] == tmp_path

    update_theme(tmp_path, "paper", remote=False)
    assert "--remote" not in calls["cmd"]


def test_update_theme_reports_failures(monkeypatch, tmp_path):
    monkeypatch.setattr("quire.theme.shutil.which", lambda name: None)
    with pytest.raises(ThemeError, match="git executable not found"):
        update_theme(tmp_path, "paper")

    monkeypatch.setattr("quire.theme.shutil.which", lambda name: "/usr/bin/git")
    monkeypatch.setattr(
        "quire.theme.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="fatal: no submodule\n"),
    )
    with pytest.raises(ThemeError, match="fatal: no submodule"):
        update_theme(tmp_path, "paper")
