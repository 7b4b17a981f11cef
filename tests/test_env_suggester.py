"""Unit tests for $NAME completion in edit inputs."""

from quocli.widgets.env_suggester import EnvVarSuggester

NAMES = ["HOME", "HOSTNAME", "PATH"]


class TestEnvVarSuggester:
    async def test_completes_reference_at_end(self):
        """
        Given environment variables HOME, HOSTNAME and PATH
        When the input ends with "$HO"
        Then the first matching name is completed in place
        """
        suggestion = await EnvVarSuggester(NAMES).get_suggestion("--data $HO")
        assert suggestion == "--data $HOME"

    async def test_bare_dollar_suggests_first_name(self):
        assert await EnvVarSuggester(NAMES).get_suggestion("$") == "$HOME"

    async def test_no_dollar_no_suggestion(self):
        assert await EnvVarSuggester(NAMES).get_suggestion("HO") is None

    async def test_reference_not_at_end_is_ignored(self):
        assert await EnvVarSuggester(NAMES).get_suggestion("$HO/bin") is None

    async def test_complete_name_is_not_repeated(self):
        assert await EnvVarSuggester(NAMES).get_suggestion("$PATH") is None

    async def test_matching_is_case_sensitive(self):
        assert await EnvVarSuggester(NAMES).get_suggestion("$ho") is None

    async def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("QUOCLI_TEST_ONLY_VAR", "1")
        suggestion = await EnvVarSuggester().get_suggestion("$QUOCLI_TEST_ONLY_V")
        assert suggestion == "$QUOCLI_TEST_ONLY_VAR"
