"""
pwfile - Encrypted Password File

A small password manager that keeps (name, username, password) records
in a single encrypted file.

Key Features:
- One file, fully re-encrypted on every change, mode 0600
- Pluggable encryption: the `scrypt` utility or built-in scrypt + AES-256-GCM
- Unbiased password generation from any charset

Components:
- errors.py: Error kinds raised by every operation
- crypto.py: Password generator and encryption delegates
- records.py: Record type and its JSON encoding
- store.py: init/get/list/add/update/remove on a password file
- config.py: Defaults and PW_* environment variables
- cli.py: Command-line interface (uses built-in argparse)

Usage:
    pw init                     # Create ~/pw.scrypt
    pw add github alice         # Generate, store and copy a password
    pw get github               # Print username, copy password
    pw list                     # List names and usernames
"""

from .crypto import EncryptionDelegate, PassphraseCipher, ScryptTool, generate_password
from .errors import (AlreadyExists, ClipboardError, DelegateError, ErrorKind, InvalidArgument,
                     InvalidFormat, IOFailure, NotFound, PwError, StoreFileNotFound)
from .records import Record, decode_records, encode_records
from .store import PasswordStore

__version__ = "0.1.0"
