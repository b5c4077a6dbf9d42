from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import yaml

from vendortal_cli.formatters.json_formatter import JsonFormatter
from vendortal_cli.formatters.markdown_formatter import MarkdownFormatter
from vendortal_cli.formatters.yaml_formatter import YamlFormatter
from vendortal_cli.models.risks import RiskFactor


class TestJsonFormatter:
    def test_file_extension(self) -> None:
        assert JsonFormatter().file_extension() == ".json"

    def test_write_and_parse_back(self, tmp_path: Path) -> None:
        data = {"id": "v1", "name": "Acme", "tags": ["a", "b"]}
        path = tmp_path / "out.json"
        JsonFormatter().write(data, path)
        assert json.loads(path.read_text(encoding="utf-8")) == data

    def test_dataclasses_are_serialized(self, tmp_path: Path) -> None:
        path = tmp_path / "factors.json"
        JsonFormatter().write([RiskFactor(id="a", name="A", weight=1, score=50)], path)
        parsed = json.loads(path.read_text(encoding="utf-8"))
        assert parsed[0]["weight"] == 1
        assert parsed[0]["evidence"] == []

    def test_no_ascii_escape_and_trailing_newline(self, tmp_path: Path) -> None:
        path = tmp_path / "out.json"
        JsonFormatter().write({"title": "Ärger mit Ümlauten"}, path)
        content = path.read_text(encoding="utf-8")
        assert "Ärger" in content
        assert content.endswith("\n")


class TestYamlFormatter:
    def test_dump_keeps_key_order(self) -> None:
        assert YamlFormatter.dump({"zeta": 1, "alpha": 2}).splitlines() == ["zeta: 1", "alpha: 2"]

    def test_dump_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / "factors.yaml"
        path.write_text(YamlFormatter.dump({"factors": [{"name": "Ärger", "weight": 1}]}), encoding="utf-8")
        assert YamlFormatter.load(path) == {"factors": [{"name": "Ärger", "weight": 1}]}

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "in.yaml"
        path.write_text("factors:\n  - name: A\n", encoding="utf-8")
        assert YamlFormatter.load(path) == {"factors": [{"name": "A"}]}

    def test_load_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "in.yaml"
        path.write_text("", encoding="utf-8")
        assert YamlFormatter.load(path) == {}


class TestMarkdownFormatter:
    def test_file_extension(self) -> None:
        assert MarkdownFormatter().file_extension() == ".md"

    def test_render_full(self) -> None:
        result = MarkdownFormatter.render(
            title="Acme Cloud",
            body="Some content here.",
            frontmatter={"id": "VND-1", "risk_level": "low"},
        )
        assert result.startswith("---\n")
        fm = yaml.safe_load(result.split("---\n")[1])
        assert fm == {"id": "VND-1", "risk_level": "low"}
        assert "# Acme Cloud" in result
        assert "Some content here." in result

    def test_render_no_frontmatter(self) -> None:
        result = MarkdownFormatter.render(title="Title", body="Body text.")
        assert "---" not in result
        assert "# Title" in result

    def test_render_empty(self) -> None:
        assert MarkdownFormatter.render(title="", body="") == ""

    def test_write_string_data(self, tmp_path: Path) -> None:
        path = tmp_path / "out.md"
        MarkdownFormatter().write("raw markdown content", path)
        assert path.read_text(encoding="utf-8") == "raw markdown content"

    def test_render_wraps_long_plain_lines(self) -> None:
        result = MarkdownFormatter.render(title="", body=("word " * 40).strip())
        body_lines = [line for line in result.splitlines() if line]
        assert body_lines
        assert all(len(line) <= 120 for line in body_lines)

    def test_render_preserves_long_table_rows(self) -> None:
        row = "| " + "x" * 150 + " | 1 |"
        result = MarkdownFormatter.render(title="", body=row)
        assert row in result

    def test_table(self) -> None:
        lines = MarkdownFormatter.table(("Section", "Score"), [("Access | Identity", 90)])
        assert lines == [
            "| Section | Score |",
            "| --- | --- |",
            "| Access \\| Identity | 90 |",
        ]

    def test_write_dataclass_data(self, tmp_path: Path) -> None:
        @dataclass
        class Doc:
            title: str
            body: str
            metadata: dict

        path = tmp_path / "doc.md"
        MarkdownFormatter().write(
            Doc(title="Dataclass Title", body="Dataclass body.", metadata={"id": "ASM-1"}),
            path,
        )
        content = path.read_text(encoding="utf-8")
        assert content.startswith("---\n")
        assert "id: ASM-1" in content
        assert "# Dataclass Title" in content

    def test_write_dict_generates_frontmatter_from_extra_fields(self, tmp_path: Path) -> None:
        path = tmp_path / "generated.md"
        MarkdownFormatter().write(
            {"title": "Generated FM", "body": "Body", "vendor_id": "v1", "version": 2}, path,
        )
        content = path.read_text(encoding="utf-8")
        assert "vendor_id: v1" in content
        assert "version: 2" in content
