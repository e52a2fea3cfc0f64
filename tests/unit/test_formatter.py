"""Unit tests for pickle_compiler.formatter."""

import json

from pickle_compiler.formatter import feature_to_ir, render_doc_string, render_feature, render_table
from pickle_compiler.models import DocString
from pickle_compiler.parser import parse_feature_string


class TestRenderTable:
    def test_columns_aligned(self) -> None:
        assert render_table((("a", "bbb"), ("cc", "d")), "  ") == [
            "  | a  | bbb |",
            "  | cc | d   |",
        ]

    def test_cells_escaped(self) -> None:
        assert render_table((("a|b", "c\nd"),), "") == ["| a\\|b | c\\nd |"]


class TestRenderDocString:
    def test_plain(self) -> None:
        assert render_doc_string(DocString("x\n\ny", "text"), "  ") == [
            '  """text', "  x", "", "  y", '  """',
        ]

    def test_content_with_quotes_uses_backticks(self) -> None:
        lines = render_doc_string(DocString('a """ b'), "")
        assert lines[0] == "```"
        assert lines[-1] == "```"


class TestRenderFeature:
    def test_sample_renders_canonically(self, sample_feature_content: str) -> None:
        rendered = render_feature(parse_feature_string(sample_feature_content))
        assert rendered == sample_feature_content

    def test_round_trip_with_arguments(self) -> None:
        content = (
            "@a @b\n"
            "Feature: Everything\n"
            "  Background: setup\n"
            "    Given a table\n"
            "      | x \\| y | z |\n"
            "  Scenario: doc\n"
            "    When a body\n"
            '      """xml\n'
            "      <a>\n"
            '        """ inside\n'
            "      </a>\n"
            '      """\n'
        )
        content = content.replace('        """ inside', '        \\"\\"\\" inside')
        first = parse_feature_string(content)
        second = parse_feature_string(render_feature(first))
        assert second == first

    def test_language_header_kept(self) -> None:
        content = "# language: fr\nFonctionnalité: Panier\n\n  Scénario: Ajout\n    Soit un panier\n"
        doc = parse_feature_string(content)
        rendered = render_feature(doc)
        assert rendered.startswith("# language: fr\nFonctionnalité: Panier\n")
        assert parse_feature_string(rendered) == doc


class TestFeatureIR:
    def test_ir_is_json_ready(self, sample_feature_content: str) -> None:
        ir = feature_to_ir(parse_feature_string(sample_feature_content, source_file="cart.feature"))
        json.dumps(ir)
        assert ir["name"] == "Shopping cart"
        assert ir["source_file"] == "cart.feature"
        assert ir["background"] == [
            {"keyword": "Given", "text": "the app is launched", "line": 6},
        ]
        outline = ir["scenarios"][1]
        assert outline["outline"] is True
        assert outline["examples"][0]["rows"] == [["1"], ["3"]]
