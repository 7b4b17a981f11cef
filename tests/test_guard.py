"""Unit tests for the sensitivity and danger policy."""

import pytest

from quocli.domain.guard import (
    assess_danger,
    display_value,
    is_dangerous,
    is_sensitive,
    redact,
    redact_values,
)
from quocli.models import CommandSpec, FieldSpec, SecretValue


class TestIsSensitive:
    def test_password_kind(self):
        assert is_sensitive(FieldSpec(name="pw", kind="password"))

    def test_explicit_flag(self):
        assert is_sensitive(FieldSpec(name="header", sensitive=True))

    @pytest.mark.parametrize("name", ["api_key", "api-key", "token", "client-secret", "passphrase"])
    def test_secret_like_names(self, name: str):
        """
        Given a text field whose name looks like a secret
        When is_sensitive is called
        Then it is sensitive even though the parser did not say so
        """
        assert is_sensitive(FieldSpec(name=name))

    def test_plain_field(self):
        assert not is_sensitive(FieldSpec(name="url"))

    def test_flag_named_like_secret_is_not_sensitive(self):
        assert not is_sensitive(FieldSpec(name="show-token", kind="flag"))

    def test_unclassifiable_field_fails_closed(self):
        """
        Given something that is not a field at all
        When is_sensitive is called
        Then it is treated as sensitive
        """
        assert is_sensitive(object())  # type: ignore[arg-type]


class TestRedaction:
    def test_redact_is_a_fixed_mask(self):
        assert redact("hunter2") == "***"
        assert redact("") == "***"

    def test_display_value(self):
        assert display_value(FieldSpec(name="v", kind="flag"), True) == "on"
        assert display_value(FieldSpec(name="v", kind="flag"), False) == "off"
        assert display_value(FieldSpec(name="pw", kind="password"), SecretValue("x")) == "***"
        assert display_value(FieldSpec(name="pw", kind="password"), SecretValue()) == ""
        assert display_value(FieldSpec(name="url"), None) == ""
        assert display_value(FieldSpec(name="n", kind="numeric"), 3) == "3"

    def test_redact_values_masks_only_sensitive(self):
        spec = CommandSpec(
            identity=("curl",),
            fields=(FieldSpec(name="url"), FieldSpec(name="user", kind="password")),
        )
        redacted = redact_values(spec, {"url": "https://x", "user": SecretValue("me:pw")})
        assert redacted == {"url": "https://x", "user": "***"}


class TestAssessDanger:
    def test_destructive_command(self):
        spec = assess_danger(CommandSpec(identity=("rm",)))
        assert is_dangerous(spec)
        assert spec.warning is not None and "rm" in spec.warning

    def test_destructive_subcommand(self):
        assert is_dangerous(assess_danger(CommandSpec(identity=("git", "branch", "delete"))))

    def test_destructive_option(self):
        """
        Given a command with a --force option
        When assess_danger is called
        Then the spec is marked dangerous
        """
        spec = CommandSpec(identity=("git", "push"), fields=(FieldSpec(name="force", kind="flag"),))
        assert is_dangerous(assess_danger(spec))

    def test_help_text_warning(self):
        spec = CommandSpec(identity=("tool",))
        marked = assess_danger(spec, "Note: this operation cannot be undone.")
        assert marked.dangerous
        assert "cannot be undone" in (marked.warning or "")

    def test_benign_command(self):
        spec = CommandSpec(identity=("ls",), fields=(FieldSpec(name="format"),))
        assert not is_dangerous(assess_danger(spec, "list directory contents"))

    def test_already_dangerous_is_unchanged(self):
        spec = CommandSpec(identity=("deploy",), dangerous=True, warning="Production!")
        assert assess_danger(spec) is spec

    def test_explicit_warning_is_kept(self):
        spec = CommandSpec(identity=("rm",), warning="Deletes files.")
        assert assess_danger(spec).warning == "Deletes files."
