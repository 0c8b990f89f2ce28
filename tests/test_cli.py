import subprocess

import yaml
from click.testing import CliRunner

from conftest import HIGHLIGHTER_JS, write_post
from quire.build import BuildResult
from quire.cli import _extract_slug, _get_content_folders, _get_existing_slugs, _titleize, cli
from quire.frontmatter import parse_post_file

SKIP_GIT = {"QUIRE_SKIP_GIT_INIT": "1"}


def _answers(monkeypatch, values):
    responses = iter(values)

    class Question:
        def ask(self):
            return next(responses)

    def prompt(*args, **kwargs):
        return Question()

    for name in ("select", "text", "confirm"):
        monkeypatch.setattr(f"quire.cli.questionary.{name}", prompt)


def test_new_scaffolds_buildable_project(tmp_path, monkeypatch):
    runner = CliRunner()
    target = tmp_path / "my-blog"
    result = runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code == 0, result.output
    config = yaml.safe_load((target / "quire.yaml").read_text(encoding="utf-8"))
    assert config["title"] == "My Blog"
    assert config["highlighter"]["integrity"].startswith("sha384-")
    assert (target / "content" / "posts" / "hello-world.md").exists()
    assert not (target / ".git").exists()

    monkeypatch.chdir(target)
    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 0, result.output
    assert "Built 1 posts" in result.output
    assert (target / "public" / "posts" / "hello-world" / "index.html").exists()

    (target / "extra.txt").write_text("x", encoding="utf-8")
    result = runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_commands_require_project_root(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code != 0
    assert "No quire.yaml" in result.output


def test_build_failure_names_file(project, monkeypatch):
    monkeypatch.chdir(project)
    write_post(project / "content", "posts/oops.md", "---\ntitle: Oops\n---\n")
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "content/posts/oops.md" in result.output
    assert "missing required field 'date'" in result.output


def test_build_and_serve_pass_options(project, monkeypatch):
    monkeypatch.chdir(project)
    called = {}

    def fake_build_site(root, include_drafts=False, **kwargs):
        called["drafts"] = include_drafts
        return BuildResult(posts=[], output_dir=root / "public", config={}, pages=[])

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["ports"] = (http_port, ws_port)

        def start(self, include_drafts=False):
            called["serve_drafts"] = include_drafts

    monkeypatch.setattr("quire.build.build_site", fake_build_site)
    monkeypatch.setattr("quire.server.DevServer", DummyServer)
    runner = CliRunner()

    result = runner.invoke(cli, ["build", "--drafts"], catch_exceptions=False)
    assert result.exit_code == 0
    assert called["drafts"] is True

    result = runner.invoke(cli, ["serve", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False)
    assert result.exit_code == 0
    assert called["ports"] == (5050, 5051)
    assert called["serve_drafts"] is False


def test_check_reports_and_exits(project, monkeypatch):
    monkeypatch.chdir(project)
    runner = CliRunner()
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0
    assert "Checked 1 files: 0 errors, 0 warnings" in result.output

    write_post(project / "content", "posts/_wip.md", "---\ntitle: ''\ndate: 2024-01-01\n---\n")
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 1
    assert "error: content/posts/_wip.md: 'title' must be a non-empty string" in result.output

    result = runner.invoke(cli, ["check", "--no-drafts"])
    assert result.exit_code == 0


def test_integrity_command_records_checksum(project, monkeypatch):
    monkeypatch.chdir(project)
    runner = CliRunner()
    result = runner.invoke(cli, ["integrity"])
    assert result.exit_code == 0
    assert "Checksum unchanged" in result.output

    (project / "static" / "js" / "highlight.min.js").write_text(HIGHLIGHTER_JS + "\n", encoding="utf-8")
    assert runner.invoke(cli, ["build"]).exit_code == 1
    result = runner.invoke(cli, ["integrity", "--algorithm", "sha512"])
    assert result.exit_code == 0
    assert "Recorded sha512-" in result.output
    assert "comments in it were not kept" in result.output
    assert runner.invoke(cli, ["build"]).exit_code == 0


def test_theme_update_command(project, monkeypatch):
    monkeypatch.chdir(project)
    commands = []

    def fake_run(cmd, **kwargs):
        commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("quire.theme.shutil.which", lambda name: "git")
    monkeypatch.setattr("quire.theme.subprocess.run", fake_run)
    runner = CliRunner()

    result = runner.invoke(cli, ["theme", "update"])
    assert result.exit_code == 0
    assert "Theme 'default' is up to date" in result.output
    assert commands[-1][-2:] == ["--remote", "themes/default"]

    runner.invoke(cli, ["theme", "update", "--pinned"])
    assert "--remote" not in commands[-1]

    monkeypatch.setattr("quire.theme.shutil.which", lambda name: None)
    result = runner.invoke(cli, ["theme", "update"])
    assert result.exit_code != 0
    assert "git executable not found" in result.output


def test_post_command_creates_valid_post(project, monkeypatch):
    monkeypatch.chdir(project)
    _answers(monkeypatch, ["posts", "Second Thoughts", "Ada, Grace", "python, ideas", "More notes.", False])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 0, result.output

    created = [p for p in (project / "content" / "posts").glob("*second-thoughts.md")]
    assert len(created) == 1
    assert not created[0].name.startswith("_")
    metadata = parse_post_file(created[0])
    assert metadata.title == "Second Thoughts"
    assert metadata.authors == ["Ada", "Grace"]
    assert metadata.tags == ["python", "ideas"]
    assert metadata.description == "More notes."


def test_post_command_drafts_and_duplicates(project, monkeypatch):
    monkeypatch.chdir(project)
    _answers(monkeypatch, ["posts", "First Post", "", "", "", True])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "A post with slug 'first-post' already exists" in result.output

    _answers(monkeypatch, [". (root)", "Later", "", "", "", True])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 0
    drafts = list((project / "content").glob("_*-later.md"))
    assert len(drafts) == 1
    assert parse_post_file(drafts[0], default_author="Default Author").authors == ["Default Author"]


def test_post_command_aborts_on_cancel(project, monkeypatch):
    monkeypatch.chdir(project)
    _answers(monkeypatch, [None])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 1


def test_post_helpers(tmp_path):
    (tmp_path / "posts").mkdir()
    (tmp_path / "_drafts").mkdir()
    assert _get_content_folders(tmp_path) == [". (root)", "posts"]

    (tmp_path / "posts" / "2024-01-01-first-post.md").write_text("x", encoding="utf-8")
    (tmp_path / "posts" / "_second.md").write_text("x", encoding="utf-8")
    assert _get_existing_slugs(tmp_path / "posts") == {
        "first-post": "2024-01-01-first-post.md",
        "second": "_second.md",
    }
    assert _extract_slug("_2024-12-18-Hello-World.md") == "hello-world"
    assert _titleize("my_new-blog") == "My New Blog"


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "quire" in result.output
