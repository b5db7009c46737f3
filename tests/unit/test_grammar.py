"""Tests for the grammar engine: parse, draft and normalize."""

from __future__ import annotations

import pytest

from pactum.core.clause import ClauseInstance
from pactum.core.errors import DraftError, GrammarMismatchError, GrammarSyntaxError
from pactum.core.ir import Document, FormulaRun
from pactum.core.template import Template
from pactum.grammar import DraftOptions, draft, normalize, parse
from pactum.grammar.template_parser import parse_grammar

EXPECTED_TEXT = (
    "Late Delivery and Penalty. In case of delayed delivery except for Force Majeure cases, "
    "the Seller shall pay to the Buyer for every 9 days of delay penalty amounting to 7.0% "
    "of the total value of the Equipment whose delivery has been delayed. Any fractional part "
    "of a days is to be considered a full days. The total amount of penalty shall not however, "
    "exceed 2.0% of the total value of the Equipment involved in late delivery. If the delay is "
    "more than 2 weeks, the Buyer is entitled to terminate this Contract."
)


# =============================================================================
# Parse
# =============================================================================


class TestParse:
    def test_sample_parses_into_model_data(self, template: Template, sample_text: str) -> None:
        result = parse(template, sample_text)
        assert result["$class"] == "org.accordproject.latedeliveryandpenalty.TemplateModel"
        assert result["forceMajeure"] is True
        assert result["penaltyDuration"] == {
            "$class": "org.accordproject.time.Duration",
            "amount": 9,
            "unit": "days",
        }
        assert result["penaltyPercentage"] == 7.0
        assert result["capPercentage"] == 2.0
        assert result["termination"]["amount"] == 2
        assert result["termination"]["unit"] == "weeks"
        assert result["fractionalPart"] == "days"

    def test_parse_assigns_a_fresh_identifier(self, template: Template, sample_text: str) -> None:
        first = parse(template, sample_text)
        second = parse(template, sample_text)
        assert first["clauseId"] == first["$identifier"]
        assert first["clauseId"] != second["clauseId"]

    def test_missing_conditional_text_is_false(self, template: Template, sample_text: str) -> None:
        text = sample_text.replace(" except for Force Majeure cases,", "")
        assert parse(template, text)["forceMajeure"] is False

    def test_whitespace_is_flexible(self, template: Template, sample_text: str) -> None:
        text = "\n  " + sample_text.replace(" the Seller", "\n   the Seller") + "\n\n"
        assert parse(template, text)["penaltyPercentage"] == 7.0

    def test_mismatch_reports_location(self, template: Template, template_dir) -> None:
        text = (template_dir / "sample_err.md").read_text(encoding="utf-8")
        with pytest.raises(GrammarMismatchError) as exc:
            parse(template, text, "sample_err.md")
        context = exc.value.context
        assert context is not None
        assert context.line == 1
        assert context.column == text.index("nine") + 1

    def test_inconsistent_repeated_variable(self, template: Template, sample_text: str) -> None:
        text = sample_text.replace("a full days", "a full weeks")
        with pytest.raises(GrammarMismatchError, match="Inconsistent value for 'fractionalPart'"):
            parse(template, text)


# =============================================================================
# Draft
# =============================================================================


class TestDraft:
    def test_draft_text(self, template: Template, data: dict) -> None:
        assert draft(template, data) == EXPECTED_TEXT

    def test_draft_without_force_majeure(self, template: Template, data: dict) -> None:
        data["forceMajeure"] = False
        assert "except for Force Majeure" not in draft(template, data)

    def test_draft_invalid_data(self, template: Template, template_dir) -> None:
        import json

        bad = json.loads((template_dir / "data_err.json").read_text(encoding="utf-8"))
        with pytest.raises(DraftError, match="Invalid data"):
            draft(template, bad)

    def test_tree_format(self, template: Template, data: dict) -> None:
        tree = draft(template, data, DraftOptions(format="tree"))
        assert isinstance(tree, dict)

    def test_html_format(self, template: Template, data: dict) -> None:
        html = draft(template, data, DraftOptions(format="html"))
        assert isinstance(html, str)
        assert "Late Delivery and Penalty" in html

    def test_unknown_format(self) -> None:
        with pytest.raises(DraftError, match="Unknown draft format"):
            DraftOptions(format="docx")


# =============================================================================
# Normalize and round trips
# =============================================================================


class TestNormalize:
    def test_normalize_is_idempotent(self, template: Template, sample_text: str) -> None:
        messy = sample_text.replace(". ", ".   ")
        once = normalize(template, messy)
        assert once == EXPECTED_TEXT
        assert normalize(template, once) == once

    def test_parse_of_draft_gives_back_the_data(self, template: Template, data: dict) -> None:
        reparsed = parse(template, draft(template, data))
        assert ClauseInstance(template, reparsed) == ClauseInstance(template, data)


class TestClauseInstance:
    def test_from_data_keeps_identifier(self, template: Template, data: dict) -> None:
        instance = ClauseInstance.from_data(template, data)
        assert instance.clause_id == data["clauseId"]

    def test_from_text_draft(self, template: Template, sample_text: str) -> None:
        assert ClauseInstance.from_text(template, sample_text).draft() == EXPECTED_TEXT


class TestGrammarSyntax:
    def test_unclosed_block(self) -> None:
        with pytest.raises(GrammarSyntaxError, match="Unclosed"):
            parse_grammar("Text {{#if flag}} more", "org.example.Model")

    def test_unknown_variable(self, template: Template) -> None:
        from pactum.grammar.matcher import compile_grammar

        spec = parse_grammar("Pay {{missing}} now.", template.root_type)
        with pytest.raises(GrammarSyntaxError, match="Unknown variable 'missing'"):
            compile_grammar(spec, template.model_manager)

    def test_unsupported_block_tags(self) -> None:
        for tag in ("{{#ulist items}}", "{{#olist items}}", "{{#join items}}", "{{#clause delivery}}"):
            with pytest.raises(GrammarSyntaxError, match="Invalid tag"):
                parse_grammar(f"Items: {tag} done.", "org.example.Model")

    def test_conditional_without_text(self, template: Template) -> None:
        from pactum.grammar.matcher import compile_grammar

        for source in (
            "Terms{{#if forceMajeure}}{{/if}} apply.",
            "Terms{{#if forceMajeure}} {{else}}  {{/if}} apply.",
        ):
            spec = parse_grammar(source, template.root_type)
            with pytest.raises(GrammarSyntaxError, match="no text to tell true from false"):
                compile_grammar(spec, template.model_manager)

    def test_conditional_with_only_else_text(self, template: Template) -> None:
        from pactum.grammar.matcher import compile_grammar

        spec = parse_grammar(
            "Terms{{#if forceMajeure}}{{else}} without exceptions{{/if}} apply.", template.root_type
        )
        assert compile_grammar(spec, template.model_manager) is not None


# =============================================================================
# Formulas
# =============================================================================


class TestFormulas:
    def _draft(self, template: Template, grammar: str, data: dict) -> Document:
        from pactum.grammar.drafter import draft_document
        from pactum.grammar.matcher import compile_grammar

        compiled = compile_grammar(parse_grammar(grammar, template.root_type), template.model_manager)
        return draft_document(compiled, data)

    def test_formula_value(self, template: Template, data: dict) -> None:
        document = self._draft(template, "Double: {{% penaltyPercentage * 2 %}}.", data)
        formulas = [run for run in document.blocks[0].children if isinstance(run, FormulaRun)]
        assert [run.value for run in formulas] == ["14.0"]

    def test_formula_type_error_is_a_draft_error(self, template: Template, data: dict) -> None:
        with pytest.raises(DraftError, match=r"Formula 'penaltyDuration \* 2' failed"):
            self._draft(template, "Twice {{% penaltyDuration * 2 %}}.", data)
