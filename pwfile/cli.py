"""
pwfile - Command Line Interface

    pw [options] init
    pw [options] get <name>
    pw [options] list
    pw [options] add <name> <username>
    pw [options] update <name> <username>
    pw [options] remove <name>
    pw [options] generate

Passwords are never printed: `get`, `add`, `update` and `generate` put
them on the clipboard. Any error prints "Error: ..." on stderr and exits 1.
"""

import argparse
import getpass
import logging
import sys
from typing import List, Optional

import pyperclip

from . import config
from .crypto import PassphraseCipher, ScryptTool, generate_password
from .errors import ClipboardError, InvalidArgument, PwError
from .records import Record
from .store import PasswordStore

logger = logging.getLogger(__name__)

COMMANDS_HELP = """\
Commands:
  init      Create an empty encrypted passwords file
  get       Lookup a password
  list      List all passwords
  add       Add a password
  update    Update a password
  remove    Remove a password
  generate  Generates a password without storing it
"""


# =============================================================================
# Helpers
# =============================================================================

def prompt_passphrase(confirm: bool) -> str:
    """Ask for the passphrase on the terminal (twice when creating a file)."""
    passphrase = getpass.getpass("Passphrase: ")
    if confirm and getpass.getpass("Confirm passphrase: ") != passphrase:
        raise InvalidArgument("passphrases don't match")
    return passphrase


def make_store(settings: config.Settings) -> PasswordStore:
    if settings.backend == config.BACKEND_BUILTIN:
        if settings.passphrase is not None:
            fixed = settings.passphrase
            return PasswordStore(PassphraseCipher(lambda confirm: fixed))
        return PasswordStore(PassphraseCipher(prompt_passphrase))
    return PasswordStore(ScryptTool())


def copy_to_clipboard(text: str) -> None:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(f"unable to access clipboard: {e}") from e


# =============================================================================
# Commands
# =============================================================================

def cmd_init(store, settings, args):
    store.init(settings.file)
    print(f"{settings.file} initialized")


def cmd_get(store, settings, args):
    record = store.get(settings.file, args.name)
    if record.username:
        print(record.username)
    copy_to_clipboard(record.password)


def cmd_list(store, settings, args):
    for record in store.list(settings.file):
        print(f"{record.name}: {record.username}")


def cmd_add(store, settings, args):
    password = generate_password(settings.password_length, settings.password_charset)
    store.add(settings.file, Record(args.name, args.username, password))
    copy_to_clipboard(password)


def cmd_update(store, settings, args):
    password = generate_password(settings.password_length, settings.password_charset)
    store.update(settings.file, Record(args.name, args.username, password))
    copy_to_clipboard(password)


def cmd_remove(store, settings, args):
    store.remove(settings.file, args.name)


def cmd_generate(store, settings, args):
    copy_to_clipboard(generate_password(settings.password_length, settings.password_charset))


# =============================================================================
# Parser
# =============================================================================

def build_parser(defaults: config.Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pw",
        description="A command line password manager.",
        epilog=COMMANDS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-f", "--file", default=defaults.file,
                   help="The encrypted password file (default: %(default)s)")
    p.add_argument("--password-length", type=int, default=defaults.password_length,
                   help="Password length (default: %(default)s)")
    p.add_argument("--password-charset", default=defaults.password_charset,
                   help="Password charset (default: %(default)s)")
    p.add_argument("--backend", choices=config.BACKENDS, default=defaults.backend,
                   help="Encryption backend (default: %(default)s)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = p.add_subparsers(dest="cmd", metavar="command")

    sub.add_parser("init", help="Create an empty encrypted passwords file").set_defaults(func=cmd_init)

    p_get = sub.add_parser("get", help="Lookup a password")
    p_get.add_argument("name")
    p_get.set_defaults(func=cmd_get)

    sub.add_parser("list", help="List all passwords").set_defaults(func=cmd_list)

    p_add = sub.add_parser("add", help="Add a password")
    p_add.add_argument("name")
    p_add.add_argument("username")
    p_add.set_defaults(func=cmd_add)

    p_upd = sub.add_parser("update", help="Update a password")
    p_upd.add_argument("name")
    p_upd.add_argument("username")
    p_upd.set_defaults(func=cmd_update)

    p_rm = sub.add_parser("remove", help="Remove a password")
    p_rm.add_argument("name")
    p_rm.set_defaults(func=cmd_remove)

    sub.add_parser("generate", help="Generates a password without storing it").set_defaults(func=cmd_generate)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = config.Settings.from_env()
    except PwError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if args.cmd is None:
        parser.print_help(sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings.file = args.file
    settings.password_length = args.password_length
    settings.password_charset = args.password_charset
    settings.backend = args.backend

    try:
        args.func(make_store(settings), settings, args)
    except PwError as e:
        logger.debug("%s failed", args.cmd, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
