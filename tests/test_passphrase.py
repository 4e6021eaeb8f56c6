"""Tests for passphrase providers."""
from unittest import mock

from secenv.secrets.domains import passphrase
from secenv.secrets.domains.passphrase import (
    PASSPHRASE_ENV_VAR,
    ChainPassphraseProvider,
    EnvPassphraseProvider,
    PromptPassphraseProvider,
    StaticPassphraseProvider,
    default_passphrase_provider,
)

FINGERPRINT = "0123456789ABCDEF0123456789ABCDEF01234567"


class TestEnvPassphraseProvider:

    def test_reads_variable(self):
        provider = EnvPassphraseProvider(environ={PASSPHRASE_ENV_VAR: "pw"})
        assert provider.get_passphrase(FINGERPRINT) == "pw"

    def test_unset_or_empty(self):
        assert EnvPassphraseProvider(environ={}).get_passphrase(FINGERPRINT) is None
        assert EnvPassphraseProvider(environ={PASSPHRASE_ENV_VAR: ""}).get_passphrase(FINGERPRINT) is None


class TestPromptPassphraseProvider:

    def test_no_prompt_without_terminal(self):
        with mock.patch.object(passphrase.sys, "stdin") as stdin, \
                mock.patch.object(passphrase.getpass, "getpass") as getpass:
            stdin.isatty.return_value = False
            assert PromptPassphraseProvider().get_passphrase(FINGERPRINT) is None
        getpass.assert_not_called()

    def test_answer_is_remembered_per_key(self):
        provider = PromptPassphraseProvider()
        with mock.patch.object(passphrase.sys, "stdin") as stdin, \
                mock.patch.object(passphrase.getpass, "getpass", return_value="pw") as getpass:
            stdin.isatty.return_value = True
            assert provider.get_passphrase(FINGERPRINT) == "pw"
            assert provider.get_passphrase(FINGERPRINT) == "pw"
            provider.get_passphrase("FEDCBA")
        assert getpass.call_count == 2

    def test_eof_means_no_passphrase(self):
        with mock.patch.object(passphrase.sys, "stdin") as stdin, \
                mock.patch.object(passphrase.getpass, "getpass", side_effect=EOFError):
            stdin.isatty.return_value = True
            assert PromptPassphraseProvider().get_passphrase(FINGERPRINT) is None


class TestChainPassphraseProvider:

    def test_first_answer_wins(self):
        chain = ChainPassphraseProvider([
            StaticPassphraseProvider(None),
            StaticPassphraseProvider("second"),
            StaticPassphraseProvider("third"),
        ])
        assert chain.get_passphrase(FINGERPRINT) == "second"

    def test_default_without_prompt(self, monkeypatch):
        monkeypatch.delenv(PASSPHRASE_ENV_VAR, raising=False)
        provider = default_passphrase_provider(prompt=False)
        assert [type(p) for p in provider.providers] == [EnvPassphraseProvider]
        assert provider.get_passphrase(FINGERPRINT) is None

    def test_default_prefers_environment(self, monkeypatch):
        monkeypatch.setenv(PASSPHRASE_ENV_VAR, "from-env")
        with mock.patch.object(passphrase.getpass, "getpass") as getpass:
            assert default_passphrase_provider().get_passphrase(FINGERPRINT) == "from-env"
        getpass.assert_not_called()
