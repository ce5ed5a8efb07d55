"""
pwfile - Configuration

Defaults, overridable through environment variables:

    PW_FILE               Encrypted password file (default ~/pw.scrypt)
    PW_PASSWORD_LENGTH    Generated password length (default 16)
    PW_PASSWORD_CHARSET   Generated password charset
    PW_BACKEND            "scrypt" (external utility) or "builtin"
    PW_PASSPHRASE         Passphrase for the builtin backend (skips the prompt)

Command line options win over the environment.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import InvalidArgument

# ==============================================================
# Defaults
# ==============================================================
DEFAULT_FILE = os.path.join(os.path.expanduser("~"), "pw.scrypt")
DEFAULT_PASSWORD_LENGTH = 16
DEFAULT_PASSWORD_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-"

BACKEND_SCRYPT = "scrypt"
BACKEND_BUILTIN = "builtin"
BACKENDS = (BACKEND_SCRYPT, BACKEND_BUILTIN)
DEFAULT_BACKEND = BACKEND_SCRYPT

PASSPHRASE_ENV = "PW_PASSPHRASE"


@dataclass
class Settings:
    file: str = DEFAULT_FILE
    password_length: int = DEFAULT_PASSWORD_LENGTH
    password_charset: str = DEFAULT_PASSWORD_CHARSET
    backend: str = DEFAULT_BACKEND
    passphrase: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the defaults plus any PW_* variables.

        Raises:
            InvalidArgument: If PW_PASSWORD_LENGTH is not an integer or
                PW_BACKEND is not a known backend
        """
        env = os.environ if environ is None else environ
        settings = cls()

        if env.get("PW_FILE"):
            settings.file = env["PW_FILE"]
        if env.get("PW_PASSWORD_LENGTH"):
            try:
                settings.password_length = int(env["PW_PASSWORD_LENGTH"])
            except ValueError as e:
                raise InvalidArgument(
                    f"PW_PASSWORD_LENGTH must be an integer: {env['PW_PASSWORD_LENGTH']!r}"
                ) from e
        if "PW_PASSWORD_CHARSET" in env:
            settings.password_charset = env["PW_PASSWORD_CHARSET"]
        if env.get("PW_BACKEND"):
            if env["PW_BACKEND"] not in BACKENDS:
                raise InvalidArgument(
                    f"PW_BACKEND must be one of {', '.join(BACKENDS)}: {env['PW_BACKEND']!r}"
                )
            settings.backend = env["PW_BACKEND"]
        settings.passphrase = env.get(PASSPHRASE_ENV)
        return settings
