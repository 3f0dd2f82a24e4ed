# tests/unit/prompts/test_unit_renderer.py - v1
"""Tests for prompts/renderer.py."""

from __future__ import annotations

from mediaseo.prompts.renderer import format_value, is_truthy, render_template


class TestIsTruthy:
    def test_falsy(self):
        for value in (None, False, "", "0", 0, 0.0, [], {}):
            assert not is_truthy(value), value

    def test_truthy(self):
        for value in ("x", 1, 0.5, ["a"], True):
            assert is_truthy(value), value


class TestFormatValue:
    def test_values(self):
        assert format_value(True) == "true"
        assert format_value(False) == "false"
        assert format_value(3) == "3"
        assert format_value(["a", "b"]) == "a, b"
        assert format_value({"k": 1}) is None


class TestRenderTemplate:
    def test_substitution(self):
        assert render_template("Hi {{name}}!", {"name": "Ana"}) == "Hi Ana!"

    def test_list_joined(self):
        assert render_template("{{tags}}", {"tags": ["a", "b"]}) == "a, b"

    def test_conditional_true(self):
        assert render_template("{{#if tags}}{{tags}}{{/if}}", {"tags": ["a", "b"]}) == "a, b"

    def test_conditional_false(self):
        assert render_template("{{#if tags}}{{tags}}{{/if}}", {"tags": []}) == ""
        assert render_template("{{#if tags}}{{tags}}{{/if}}", {}) == ""

    def test_multiline_conditional(self):
        tpl = "A\n{{#if x}}line1\nline2\n{{/if}}B"
        assert render_template(tpl, {"x": "y"}) == "A\nline1\nline2\nB"

    def test_unknown_token_kept(self):
        assert render_template("{{missing}} {{a}}", {"a": "1"}) == "{{missing}} 1"

    def test_unformattable_kept(self):
        assert render_template("{{obj}}", {"obj": {"k": 1}}) == "{{obj}}"

    def test_idempotent(self):
        tpl = "{{#if a}}A={{a}} {{/if}}{{b}} {{unknown}}"
        data = {"a": "x", "b": ["p", "q"]}
        once = render_template(tpl, data)
        assert render_template(once, data) == once
