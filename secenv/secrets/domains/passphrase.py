"""Passphrase sources for protected PGP keys.

The decryption engine asks a provider only after it found the key to be
protected. Providers return None when they have nothing to offer.
"""
import getpass
import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence

logger = logging.getLogger(__name__)

PASSPHRASE_ENV_VAR = "SECENV_PGP_PASSPHRASE"


class PassphraseProvider(ABC):
    """Supplies the passphrase of a protected private key."""

    @abstractmethod
    def get_passphrase(self, fingerprint: str) -> Optional[str]:
        pass


class StaticPassphraseProvider(PassphraseProvider):
    """Returns a fixed passphrase, for programmatic callers."""

    def __init__(self, passphrase: Optional[str]):
        self._passphrase = passphrase

    def get_passphrase(self, fingerprint: str) -> Optional[str]:
        return self._passphrase


class EnvPassphraseProvider(PassphraseProvider):
    """Reads the passphrase from an environment variable."""

    def __init__(self, variable: str = PASSPHRASE_ENV_VAR, environ=None):
        self.variable = variable
        self._environ = os.environ if environ is None else environ

    def get_passphrase(self, fingerprint: str) -> Optional[str]:
        value = self._environ.get(self.variable)
        if value:
            logger.debug(f"Using passphrase from {self.variable} for key {fingerprint[:16]}")
            return value
        return None


class PromptPassphraseProvider(PassphraseProvider):
    """
    Prompts on the terminal.

    Answers are remembered per fingerprint for the lifetime of this object,
    which is a single invocation, so a key used by several entries is only
    asked for once. Nothing is prompted when stdin is not a terminal.
    """

    def __init__(self, stream=None):
        self._stream = stream
        self._answers: Dict[str, str] = {}

    def get_passphrase(self, fingerprint: str) -> Optional[str]:
        if fingerprint in self._answers:
            return self._answers[fingerprint]
        if not sys.stdin or not sys.stdin.isatty():
            logger.debug("stdin is not a terminal, not prompting for a passphrase")
            return None
        try:
            answer = getpass.getpass(f"Enter passphrase for PGP key {fingerprint[:16]}: ", stream=self._stream)
        except EOFError:
            return None
        if not answer:
            return None
        self._answers[fingerprint] = answer
        return answer


class ChainPassphraseProvider(PassphraseProvider):
    """Asks each provider in order and returns the first answer."""

    def __init__(self, providers: Sequence[PassphraseProvider]):
        self.providers = list(providers)

    def get_passphrase(self, fingerprint: str) -> Optional[str]:
        for provider in self.providers:
            passphrase = provider.get_passphrase(fingerprint)
            if passphrase is not None:
                return passphrase
        return None


def default_passphrase_provider(prompt: bool = True) -> PassphraseProvider:
    """Environment variable first, then the terminal prompt unless disabled."""
    providers = [EnvPassphraseProvider()]
    if prompt:
        providers.append(PromptPassphraseProvider())
    return ChainPassphraseProvider(providers)
