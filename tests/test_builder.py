"""Unit tests for value parsing and argument vector construction."""

import os

import pytest

from quocli.domain.builder import (
    ArgumentVector,
    BuildError,
    InvalidValueError,
    MissingRequiredError,
    SecretPlaceholder,
    build,
    format_value,
    parse_value,
)
from quocli.models import CommandSpec, FieldSpec, SecretValue


def _curl() -> CommandSpec:
    return CommandSpec(
        identity=("curl",),
        fields=(
            FieldSpec(name="url", required=True, positional=True, order=0),
            FieldSpec(name="request", kind="enum", flag="-X", choices=("GET", "POST")),
            FieldSpec(name="user", kind="password", flag="-u"),
            FieldSpec(name="timeout", kind="numeric"),
            FieldSpec(name="location", kind="flag", flag="-L"),
        ),
    )


class TestParseValue:
    def test_numeric_prefers_int(self):
        field = FieldSpec(name="n", kind="numeric")
        assert parse_value(field, "3") == 3
        assert isinstance(parse_value(field, "3"), int)
        assert parse_value(field, " 2.5 ") == 2.5

    @pytest.mark.parametrize("text", ["abc", "inf", "nan", ""])
    def test_numeric_rejects_non_numbers(self, text: str):
        with pytest.raises(InvalidValueError) as exc_info:
            parse_value(FieldSpec(name="n", kind="numeric"), text)
        assert exc_info.value.field == "n"

    def test_flag_words(self):
        field = FieldSpec(name="v", kind="flag")
        assert parse_value(field, "yes") is True
        assert parse_value(field, "off") is False
        with pytest.raises(InvalidValueError):
            parse_value(field, "maybe")

    def test_enum_must_be_a_choice(self):
        field = FieldSpec(name="mode", kind="enum", choices=("a", "b"))
        assert parse_value(field, "b") == "b"
        with pytest.raises(InvalidValueError, match="not one of a, b"):
            parse_value(field, "c")

    def test_sensitive_text_is_wrapped(self):
        value = parse_value(FieldSpec(name="pw", kind="password"), "hunter2")
        assert isinstance(value, SecretValue)
        assert value.reveal() == "hunter2"

    def test_format_value_refuses_secrets(self):
        assert format_value(True) == "true"
        assert format_value(4) == "4"
        with pytest.raises(TypeError):
            format_value(SecretValue("x"))


class TestBuild:
    def test_missing_required_field_is_refused(self):
        """
        Given a required url and a set timeout
        When build is called with the url empty
        Then MissingRequiredError names the url
        """
        with pytest.raises(MissingRequiredError) as exc_info:
            build(_curl(), {"timeout": 5})
        assert exc_info.value.field == "url"

    def test_non_strict_skips_missing(self):
        argv = build(_curl(), {"timeout": 5}, strict=False)
        assert argv.args == ("--timeout", "5")

    def test_positionals_follow_declared_order(self):
        """
        Given positionals x (order 1) and y (order 0)
        When build is called
        Then y's value comes first
        """
        spec = CommandSpec(
            identity=("tool",),
            fields=(
                FieldSpec(name="x", positional=True, order=1),
                FieldSpec(name="y", positional=True, order=0),
            ),
        )
        assert build(spec, {"x": "x-value", "y": "y-value"}).args == ("y-value", "x-value")

    def test_named_fields_and_flags(self):
        argv = build(_curl(), {"url": "https://x", "request": "POST", "location": True})
        assert argv.program == ("curl",)
        assert argv.args == ("https://x", "-X", "POST", "-L")

    def test_false_flag_contributes_nothing(self):
        argv = build(_curl(), {"url": "https://x", "location": False})
        assert argv.args == ("https://x",)

    def test_named_first_when_configured(self):
        spec = _curl().model_copy(update={"positionals_first": False})
        argv = build(spec, {"url": "https://x", "location": True})
        assert argv.args == ("-L", "https://x")

    def test_sensitive_value_becomes_placeholder(self):
        """
        Given a filled password field
        When build is called
        Then the argv holds a placeholder, not the secret
        """
        argv = build(_curl(), {"url": "https://x", "user": SecretValue("me:pw")})
        assert SecretPlaceholder("user") in argv.args
        assert "me:pw" not in argv.display()
        assert argv.display() == "curl https://x -u ***"
        assert argv.placeholders == ("user",)

    def test_resolve_substitutes_secrets(self):
        argv = build(_curl(), {"url": "https://x", "user": SecretValue("me:pw")})
        assert argv.resolve({"user": "me:pw"}) == ["curl", "https://x", "-u", "me:pw"]

    def test_resolve_without_secret_raises(self):
        argv = build(_curl(), {"url": "https://x", "user": SecretValue("me:pw")})
        with pytest.raises(BuildError):
            argv.resolve({})

    def test_display_quotes_for_the_shell(self):
        argv = ArgumentVector(program=("echo",), args=("a b", "$HOME"))
        assert argv.display() == "echo 'a b' '$HOME'"

    def test_path_expands_home(self):
        spec = CommandSpec(
            identity=("cat",), fields=(FieldSpec(name="file", kind="path", positional=True),)
        )
        assert build(spec, {"file": "~/notes.txt"}).args == (os.path.expanduser("~/notes.txt"),)

    def test_non_bool_flag_value_is_invalid(self):
        with pytest.raises(InvalidValueError):
            build(_curl(), {"url": "https://x", "location": "yes"})

    def test_invalid_numeric_text_is_invalid(self):
        with pytest.raises(InvalidValueError):
            build(_curl(), {"url": "https://x", "timeout": "soon"})

    def test_enum_value_outside_choices_is_invalid(self):
        with pytest.raises(InvalidValueError):
            build(_curl(), {"url": "https://x", "request": "PATCH"})

    def test_build_is_idempotent(self):
        values = {"url": "https://x", "timeout": 2.5}
        assert build(_curl(), values) == build(_curl(), values)
