"""Unit tests for TemplateRenderer."""

import pytest

from infrastructure.notifications.exceptions import TemplateRenderError
from infrastructure.notifications.templates import MAX_TEMPLATE_LENGTH, TemplateRenderer


@pytest.fixture
def renderer():
    return TemplateRenderer()


@pytest.mark.unit
class TestRender:
    """Tests for placeholder substitution."""

    def test_substitutes_known_variables(self, renderer):
        result = renderer.render("Hi {{ name }}, you have {{count}} alerts", {"name": "Ada", "count": 3})

        assert result == "Hi Ada, you have 3 alerts"

    def test_missing_variables_are_left_literal(self, renderer):
        """Rendering is best-effort: unknown placeholders survive untouched."""
        result = renderer.render("Hi {{ name }} from {{ team }}", {"name": "Ada"})

        assert result == "Hi Ada from {{ team }}"

    def test_none_values_are_left_literal(self, renderer):
        assert renderer.render("Hi {{ name }}", {"name": None}) == "Hi {{ name }}"

    def test_dotted_paths_walk_nested_mappings(self, renderer):
        result = renderer.render("Hi {{ user.name }}", {"user": {"name": "Ada"}})

        assert result == "Hi Ada"

    def test_flat_dotted_key_takes_precedence(self, renderer):
        result = renderer.render("{{ user.name }}", {"user.name": "flat", "user": {"name": "nested"}})

        assert result == "flat"

    def test_substituted_values_are_not_rendered_again(self, renderer):
        """A value containing a placeholder stays as given."""
        result = renderer.render("{{ a }}", {"a": "{{ b }}", "b": "boom"})

        assert result == "{{ b }}"

    def test_non_string_template_raises(self, renderer):
        with pytest.raises(TemplateRenderError, match="must be a string"):
            renderer.render(None, {})

    def test_non_mapping_variables_raise(self, renderer):
        with pytest.raises(TemplateRenderError, match="must be a mapping"):
            renderer.render("{{ a }}", ["a"])

    def test_compile_returns_reusable_renderer(self, renderer):
        greet = renderer.compile("Hi {{ name }}")

        assert greet({"name": "Ada"}) == "Hi Ada"
        assert greet({"name": "Grace"}) == "Hi Grace"


@pytest.mark.unit
class TestValidateTemplate:
    """Tests for template validation."""

    def test_valid_template(self, renderer):
        assert renderer.validate_template("Hello {{ user.name }}") == (True, [])

    def test_empty_variable_name(self, renderer):
        is_valid, errors = renderer.validate_template("Hello {{ }}")

        assert is_valid is False
        assert "Empty variable name found" in errors

    def test_invalid_variable_name(self, renderer):
        is_valid, errors = renderer.validate_template("Hello {{ 1name }}")

        assert is_valid is False
        assert any("Invalid variable name: 1name" in e for e in errors)

    def test_mismatched_brackets(self, renderer):
        is_valid, errors = renderer.validate_template("Hello {{ name }")

        assert is_valid is False
        assert "Mismatched brackets in template" in errors

    @pytest.mark.parametrize(
        "content",
        [
            "<script>alert(1)</script>",
            "<a href='javascript:void(0)'>x</a>",
            "<img onerror=alert(1)>",
            "<iframe src='x'>",
        ],
    )
    def test_dangerous_content(self, renderer, content):
        is_valid, errors = renderer.validate_template(content)

        assert is_valid is False
        assert "Template contains potentially dangerous content" in errors

    def test_too_long(self, renderer):
        is_valid, errors = renderer.validate_template("a" * (MAX_TEMPLATE_LENGTH + 1))

        assert is_valid is False
        assert any("too long" in e for e in errors)


@pytest.mark.unit
class TestExtractVariables:
    """Tests for variable discovery."""

    def test_returns_unique_names_in_order(self, renderer):
        names = renderer.extract_variables("{{ b }} {{a}} {{ b }} {{ user.name }}")

        assert names == ["b", "a", "user.name"]

    @pytest.mark.parametrize(
        "name,expected",
        [("name", True), ("_private", True), ("user.name", True), ("1st", False), ("a-b", False)],
    )
    def test_is_valid_variable_name(self, name, expected):
        assert TemplateRenderer.is_valid_variable_name(name) is expected
