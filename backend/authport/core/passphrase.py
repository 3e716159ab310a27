import getpass
import logging
import os
from typing import Callable, Mapping, Optional

from authport.core.crypto import EmptyPassphraseError
from authport.core.errors import AuthportError
from authport.core.messages import ENGLISH, Messages

logger = logging.getLogger(__name__)

DEFAULT_PASSPHRASE_ENV = "AUTHPORT_PASSPHRASE"


class PassphraseError(AuthportError):
    pass


class PassphraseUnavailableError(PassphraseError):
    pass


class PassphraseMismatchError(PassphraseError):
    def __init__(self):
        super().__init__("passphrases do not match")


def _from_env(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    return value if value else None


def resolve_passphrase(
    explicit_env: Optional[str] = None,
    allow_prompt: bool = True,
    confirm: bool = False,
    default_env: str = DEFAULT_PASSPHRASE_ENV,
    environ: Optional[Mapping[str, str]] = None,
    prompt: Optional[Callable[[str], str]] = None,
    messages: Optional[Messages] = None,
) -> str:
    """
    Resolve the export/import passphrase.

    Order: the variable named by explicit_env, then default_env, then an
    interactive prompt with echo disabled (only if allow_prompt). The value
    itself is never logged or put into an exception message.
    """
    environ = os.environ if environ is None else environ

    if explicit_env:
        value = _from_env(environ, explicit_env)
        if value is not None:
            logger.debug("passphrase taken from %s", explicit_env)
            return value
        logger.warning("environment variable %s is not set or empty", explicit_env)

    value = _from_env(environ, default_env)
    if value is not None:
        logger.debug("passphrase taken from %s", default_env)
        return value

    if not allow_prompt:
        raise PassphraseUnavailableError(
            "no passphrase available: pass --passphrase-env <VAR> naming a variable that holds it, "
            f"set {default_env}, or allow an interactive prompt with --passphrase-prompt"
        )
    return prompt_passphrase(confirm=confirm, prompt=prompt, messages=messages)


def prompt_passphrase(
    confirm: bool = False,
    prompt: Optional[Callable[[str], str]] = None,
    messages: Optional[Messages] = None,
) -> str:
    prompt = prompt or getpass.getpass
    messages = messages or ENGLISH
    try:
        value = prompt(messages.get("prompt.passphrase"))
        if not value:
            raise EmptyPassphraseError()
        if confirm and prompt(messages.get("prompt.passphrase_confirm")) != value:
            raise PassphraseMismatchError()
    except (EOFError, KeyboardInterrupt) as exc:
        raise PassphraseUnavailableError("passphrase prompt aborted") from exc
    return value
