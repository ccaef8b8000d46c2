"""
Design token and {{path}} interpolation tests.
"""

from uiruntime.utils.templates import (
    build_context,
    collect_token_references,
    get_nested_value,
    interpolate,
    resolve_template,
    resolve_token,
    validate_token_references,
)

TOKENS = {"primary": "#6200ee", "spacing": 8, "brace": "{{session.user.email}}"}


# ============================================================================
# Design tokens
# ============================================================================


class TestTokens:

    def test_known_token_resolves(self):
        assert resolve_token("$primary", TOKENS) == "#6200ee"

    def test_token_keeps_value_type(self):
        assert resolve_token("$spacing", TOKENS) == 8

    def test_unknown_token_returned_unchanged(self):
        assert resolve_token("$missing", TOKENS) == "$missing"

    def test_non_token_values_untouched(self):
        assert resolve_token("primary", TOKENS) == "primary"
        assert resolve_token(12, TOKENS) == 12
        assert resolve_token("$primary", None) == "$primary"

    def test_token_value_is_not_interpolated(self):
        assert resolve_token("$brace", TOKENS) == "{{session.user.email}}"

    def test_missing_references_reported_once(self):
        value = {"a": "$primary", "b": ["$nope", "$nope", "$other"]}
        assert collect_token_references(value) == ["primary", "nope", "nope", "other"]
        assert validate_token_references(value, TOKENS) == ["nope", "other"]


# ============================================================================
# Interpolation
# ============================================================================


class TestInterpolation:

    def setup_method(self):
        self.context = {
            "title": "Groceries",
            "count": 3,
            "done": False,
            "session": {"user": {"email": "ann@example.com", "tags": ["a", "b"]}, "isLoggedIn": True},
        }

    def test_nested_path(self):
        assert interpolate("Signed in as {{session.user.email}}", self.context) == "Signed in as ann@example.com"

    def test_whitespace_inside_braces(self):
        assert interpolate("{{ title }}!", self.context) == "Groceries!"

    def test_unresolved_path_renders_empty(self):
        assert interpolate("Hello {{session.user.name}}.", self.context) == "Hello ."
        assert interpolate("{{nothing.here}}", {}) == ""

    def test_scalars_are_stringified(self):
        assert interpolate("{{count}} items, done={{done}}", self.context) == "3 items, done=false"

    def test_list_index_in_path(self):
        assert get_nested_value(self.context, "session.user.tags.1") == "b"
        assert get_nested_value(self.context, "session.user.tags.9", "x") == "x"

    def test_path_through_scalar_gives_default(self):
        assert get_nested_value(self.context, "title.length", "d") == "d"

    def test_interpolated_dollar_value_is_not_a_token(self):
        assert interpolate("{{value}}", {"value": "$primary"}) == "$primary"

    def test_single_placeholder_keeps_type(self):
        assert resolve_template("{{count}}", self.context) == 3
        assert resolve_template("{{session.user}}", self.context)["email"] == "ann@example.com"

    def test_single_missing_placeholder_renders_empty(self):
        assert resolve_template("{{missing}}", self.context) == ""

    def test_mixed_template_is_interpolated(self):
        assert resolve_template("#{{count}}", self.context) == "#3"


def test_build_context_defaults_to_logged_out():
    context = build_context(None, {"title": "Milk"})
    assert context["title"] == "Milk"
    assert context["session"] == {"user": None, "isLoggedIn": False}
