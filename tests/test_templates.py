from datetime import datetime

from markupsafe import Markup

from conftest import make_project
from quire.collections import TaxonomyCollection
from quire.config import load_config
from quire.content import ContentProcessor
from quire.renderers import Heading
from quire.templates import TemplateEngine, render_toc
from quire.theme import Theme


def _engine(root, root_url=""):
    config = load_config(root)
    posts = ContentProcessor(root / "content", default_author=config["author"]).load()
    engine = TemplateEngine(Theme.resolve(root, "default"), config, root_url=root_url)
    engine.update_collections(
        posts,
        TaxonomyCollection.from_posts("tags", posts, "tags"),
        TaxonomyCollection.from_posts("authors", posts, "authors"),
    )
    return engine, posts


def test_render_post_uses_theme_layout(project):
    engine, posts = _engine(project)
    html = engine.render_post(posts[0])
    assert "<title>My First Post · Test Blog</title>" in html
    assert '<a class="author" href="/authors/ada-lovelace/">Ada Lovelace</a>' in html
    assert 'href="/tags/python/"' in html
    assert "January 15, 2024" in html
    assert '<code class="language-python">' in html
    assert 'integrity="sha384-' in html


def test_render_index_and_taxonomy(project):
    engine, posts = _engine(project)
    index = engine.render_index()
    assert 'href="/posts/first-post/"' in index
    taxonomy = TaxonomyCollection.from_posts("tags", posts, "tags")
    page = engine.render_taxonomy(taxonomy, "python")
    assert "Posts tagged" in page
    assert "My First Post" in page


def test_site_layout_overrides_theme_partial(project):
    (project / "layouts" / "partials").mkdir(parents=True)
    (project / "layouts" / "partials" / "header.html.jinja").write_text(
        '<header class="custom">{{ site.title | upper }}</header>', encoding="utf-8"
    )
    engine, posts = _engine(project)
    html = engine.render_post(posts[0])
    assert '<header class="custom">TEST BLOG</header>' in html
    assert "post-meta" in html


def test_url_for_applies_root_url(project):
    engine, _ = _engine(project, root_url="http://localhost:4000/")
    assert engine.render_string("{{ url_for('/tags/x/') }}", {}) == "http://localhost:4000/tags/x/"
    assert engine.render_string("{{ url_for('https://cdn.example/a.js') }}", {}) == "https://cdn.example/a.js"


def test_pygments_css_only_in_server_mode(tmp_path):
    root = make_project(tmp_path / "blog", extra_config="highlight_mode: server\n")
    engine, posts = _engine(root)
    assert ".highlight" in engine.render_string("{{ pygments_css() }}", {})
    client, _ = _engine(make_project(tmp_path / "other"))
    assert client.render_string("{{ pygments_css() }}", {}) == ""


def test_missing_layouts_fall_back_to_content(tmp_path):
    theme_root = tmp_path / "themes" / "bare"
    (theme_root / "layouts").mkdir(parents=True)
    config = load_config(tmp_path)
    engine = TemplateEngine(Theme.resolve(tmp_path, "bare"), config)
    _, posts = _engine(make_project(tmp_path / "blog"))
    assert engine.render_post(posts[0]) == posts[0].content


def test_render_toc_nests_levels():
    from pathlib import Path

    from quire.content import Post

    post = Post(
        title="T", date=datetime(2024, 1, 1), authors=[], tags=[], description="", body="",
        content="", slug="t", url="/t/", section="", path=Path("t.md"),
        toc=[Heading("a", "A & B", 2), Heading("b", "B", 3), Heading("c", "C", 2)],
    )
    html = render_toc(post)
    assert isinstance(html, Markup)
    assert html == (
        '<ul><li><a href="#a">A &amp; B</a><ul><li><a href="#b">B</a></li></ul>'
        '</li><li><a href="#c">C</a></li></ul>'
    )
