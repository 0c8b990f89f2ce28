from pathlib import Path

from conftest import HIGHLIGHTER_JS, make_project, write_post
from quire.checks import ERROR, WARNING, Problem, check_site


def test_clean_project_has_no_problems(project):
    report = check_site(project)
    assert report.ok
    assert report.problems == []
    assert report.checked_files == 1


def test_collects_every_invalid_file(project):
    content = project / "content"
    write_post(content, "posts/no-title.md", "---\ndate: 2024-01-01\n---\n")
    write_post(content, "posts/bad-author.md", "---\ntitle: X\ndate: 2024-01-01\nauthors: ['']\n---\n")
    write_post(content, "posts/_draft-no-date.md", "---\ntitle: Draft\n---\n")
    (content / "posts" / "latin1.md").write_bytes("---\ntitle: Caf\xe9\n---\n".encode("latin-1"))

    report = check_site(project)
    assert not report.ok
    assert report.checked_files == 5
    messages = {p.path.name: p.message for p in report.errors}
    assert messages["no-title.md"] == "missing required field 'title'"
    assert "non-empty" in messages["bad-author.md"]
    assert messages["_draft-no-date.md"] == "missing required field 'date'"
    assert "UTF-8" in messages["latin1.md"]

    published_only = check_site(project, include_drafts=False)
    assert "_draft-no-date.md" not in {p.path.name for p in published_only.errors}


def test_reports_checksum_and_duplicates(project):
    (project / "static" / "js" / "highlight.min.js").write_text(HIGHLIGHTER_JS + "//", encoding="utf-8")
    write_post(project / "content", "notes/copy.md", "---\ntitle: my first post\ndate: 2024-01-16\n---\n")
    write_post(project / "content", "posts/first-post.md", "---\ntitle: Clash\ndate: 2024-01-17\n---\n")

    report = check_site(project)
    errors = [p.message for p in report.errors]
    assert any("checksum mismatch" in m for m in errors)
    assert any("share the URL /posts/first-post/" in m for m in errors)
    assert len(report.warnings) == 1
    assert "my first post" in report.warnings[0].message.lower()


def test_missing_content_dir_and_theme(tmp_path):
    root = make_project(tmp_path / "blog", extra_config="theme: nowhere\n")
    import shutil

    shutil.rmtree(root / "content")
    report = check_site(root)
    messages = [p.message for p in report.errors]
    assert any("Theme 'nowhere' not found" in m for m in messages)
    assert "content directory does not exist" in messages


def test_problem_format_relative_to_project(tmp_path):
    problem = Problem(WARNING, tmp_path / "content" / "a.md", "oops")
    assert problem.format(tmp_path) == f"warning: {Path('content/a.md')}: oops"
    assert Problem(ERROR, Path("/elsewhere/b.md"), "bad").format(tmp_path) == "error: /elsewhere/b.md: bad"
