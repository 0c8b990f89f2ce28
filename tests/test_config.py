import yaml

from quire.config import DEFAULT_CONFIG, load_config, update_config_value


def test_defaults_without_config_file(tmp_path):
    config = load_config(tmp_path)
    assert config == DEFAULT_CONFIG
    config["highlighter"]["integrity"] = "changed"
    assert DEFAULT_CONFIG["highlighter"]["integrity"] == ""


def test_nested_keys_merge_with_defaults(tmp_path):
    (tmp_path / "quire.yaml").write_text(
        "title: Mine\nhighlighter:\n  integrity: sha384-abc\n", encoding="utf-8"
    )
    config = load_config(tmp_path)
    assert config["title"] == "Mine"
    assert config["highlighter"]["integrity"] == "sha384-abc"
    assert config["highlighter"]["script"] == "static/js/highlight.min.js"
    assert config["port"] == 4000


def test_non_mapping_highlighter_falls_back(tmp_path):
    (tmp_path / "quire.yaml").write_text("highlighter: off\n", encoding="utf-8")
    assert load_config(tmp_path)["highlighter"] == DEFAULT_CONFIG["highlighter"]


def test_update_config_value_keeps_other_keys(tmp_path):
    (tmp_path / "quire.yaml").write_text("title: Mine\nhighlighter: {script: lib.js}\n", encoding="utf-8")
    update_config_value(tmp_path, ("highlighter", "integrity"), "sha384-xyz")
    data = yaml.safe_load((tmp_path / "quire.yaml").read_text(encoding="utf-8"))
    assert data == {"title": "Mine", "highlighter": {"script": "lib.js", "integrity": "sha384-xyz"}}
