"""CLI tests using Typer's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from quill import __version__
from quill.blocks import Block
from quill.cli import app, load_blocks
from quill.config import Config

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(isolated_config: Config) -> None:
    """Keep log lines out of captured command output."""
    isolated_config.general.log_level = "WARNING"


@pytest.fixture
def post_file(tmp_path: Path, sample_blocks: list[Block]) -> Path:
    path = tmp_path / "post.json"
    path.write_text(json.dumps(sample_blocks), encoding="utf-8")
    return path


def _flat(output: str) -> str:
    return output.replace("\n", "")


class TestLoadBlocks:
    def test_json_wrapper_object(self, tmp_path: Path) -> None:
        path = tmp_path / "post.json"
        path.write_text(json.dumps({"content": [{"type": "paragraph", "content": "Hi"}, "junk"]}), encoding="utf-8")
        assert load_blocks(path) == [{"type": "paragraph", "content": "Hi"}]

    def test_markdown(self, tmp_path: Path) -> None:
        path = tmp_path / "post.md"
        path.write_text("# Title\n\nBody text.\n", encoding="utf-8")
        blocks = load_blocks(path)
        assert [b["type"] for b in blocks] == ["heading", "paragraph"]


class TestCommands:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"Quill version {__version__}" in result.output

    def test_analyze_json(self, post_file: Path) -> None:
        result = runner.invoke(app, ["analyze", str(post_file), "--title", "Python Guide", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["structure"]["stats"]["total_words"] == 38
        assert data["seo"]["overall_score"] == 7

    def test_analyze_table(self, post_file: Path) -> None:
        result = runner.invoke(app, ["analyze", str(post_file)])
        assert result.exit_code == 0, result.output
        assert "Words" in result.output
        assert "38" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["analyze", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["analyze", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_fallback(self, post_file: Path) -> None:
        result = runner.invoke(app, ["fallback", str(post_file), "-i", "change the title to Hello World"])

        assert result.exit_code == 0, result.output
        assert "update_title" in result.output
        assert "Hello World" in result.output

    def test_fallback_apply_and_diff(self, post_file: Path) -> None:
        result = runner.invoke(app, ["fallback", str(post_file), "-i", "delete paragraph 2", "--apply", "--diff"])

        assert result.exit_code == 0, result.output
        assert "--- post.json" in result.output
        assert "-Python is a popular programming language." in result.output

    def test_modify_without_llm_exits(self, post_file: Path) -> None:
        result = runner.invoke(app, ["modify", str(post_file), "-i", "expand it", "--provider", "carrier-pigeon"])
        assert result.exit_code == 1
        assert "Unknown LLM provider" in _flat(result.output)

    def test_restructure(self, post_file: Path) -> None:
        result = runner.invoke(app, ["restructure", str(post_file), "-t", "story"])
        assert result.exit_code == 0, result.output
        assert "## The Beginning" in result.output

    def test_restructure_unknown_template(self, post_file: Path) -> None:
        result = runner.invoke(app, ["restructure", str(post_file), "-t", "poem"])
        assert result.exit_code == 2
        assert "Unknown template" in result.output


class TestConfigCommands:
    def test_path_and_init(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        expected = tmp_path / "xdg" / "quill" / "config.toml"

        result = runner.invoke(app, ["config", "path"])
        assert str(expected) in _flat(result.output)

        assert runner.invoke(app, ["config", "init"]).exit_code == 0
        assert expected.exists()

        again = runner.invoke(app, ["config", "init"])
        assert again.exit_code == 1
        assert runner.invoke(app, ["config", "init", "--force"]).exit_code == 0

    def test_show_json(self) -> None:
        result = runner.invoke(app, ["config", "show", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["llm"]["provider"] == "ollama"

    def test_providers(self) -> None:
        result = runner.invoke(app, ["providers"])
        assert result.exit_code == 0
        assert "anthropic" in result.output
