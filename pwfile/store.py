"""
pwfile - Store Module

This file handles:
- Creating an empty password file
- Looking up, listing, adding, updating and removing records

There is no long-lived state: every call decrypts the whole file, works
on the record list in memory and, for mutations, encrypts the whole list
back. The file on disk is the only source of truth.

Known limitations:
- No locking. Two processes modifying the same file at once can lose
  an update.
- No temp-file-plus-rename here; whether a failed write leaves the old
  file intact is up to the delegate (PassphraseCipher does replace the
  file atomically, the scrypt utility does not).
"""

import logging
import os
import stat
from typing import List

from .crypto import EncryptionDelegate
from .errors import (AlreadyExists, InvalidArgument, IOFailure, NotFound,
                     StoreFileNotFound)
from .records import Record, decode_records, encode_records

logger = logging.getLogger(__name__)

# Owner read/write only, re-applied after every write
FILE_MODE = 0o600


class PasswordStore:
    """
    Password file operations on top of an encryption delegate.

    Usage:
        store = PasswordStore(ScryptTool())
        store.init("pw.scrypt")
        store.add("pw.scrypt", Record("github", "alice", "s3cret"))
        store.get("pw.scrypt", "github").password    # "s3cret"
    """

    def __init__(self, delegate: EncryptionDelegate):
        self.delegate = delegate

    def init(self, path: str) -> None:
        """
        Create a new empty password file.

        Raises:
            AlreadyExists: If anything already exists at `path`
        """
        _require_path(path)
        if os.path.lexists(path):
            raise AlreadyExists(f"password file already exists: {path}")
        self._write(path, [])

    def get(self, path: str, name: str) -> Record:
        """
        Fetch a record by name.

        Raises:
            NotFound: If no record has this name
        """
        _require_path(path)
        for record in self._read(path):
            if record.name == name:
                return record
        raise NotFound(name)

    def list(self, path: str) -> List[Record]:
        """Return all records in file order."""
        _require_path(path)
        return self._read(path)

    def add(self, path: str, record: Record) -> None:
        """
        Append a new record.

        Raises:
            AlreadyExists: If a record with the same name exists (the file
                is not rewritten)
        """
        _require_path(path)
        _require_record(record)
        records = self._read(path)
        if any(r.name == record.name for r in records):
            raise AlreadyExists(f"password already exists: {record.name}")
        records.append(record)
        self._write(path, records)

    def update(self, path: str, record: Record) -> None:
        """
        Replace the record with the same name, keeping its position.

        Raises:
            NotFound: If no record has this name
        """
        _require_path(path)
        _require_record(record)
        records = self._read(path)
        for i, existing in enumerate(records):
            if existing.name == record.name:
                records[i] = record
                break
        else:
            raise NotFound(record.name)
        self._write(path, records)

    def remove(self, path: str, name: str) -> None:
        """
        Remove the record(s) with this name; the rest keep their order.

        Raises:
            NotFound: If no record has this name
        """
        _require_path(path)
        records = self._read(path)
        kept = [r for r in records if r.name != name]
        if len(kept) == len(records):
            raise NotFound(name)
        self._write(path, kept)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _read(self, path: str) -> List[Record]:
        """Decrypt and decode the whole file."""
        try:
            st = os.stat(path)
        except FileNotFoundError as e:
            raise StoreFileNotFound(path) from e
        except OSError as e:
            raise IOFailure(f"unable to access {path}: {e}") from e
        if stat.S_ISDIR(st.st_mode):
            raise IOFailure(f"{path} is a directory")

        records = decode_records(self.delegate.decrypt(path))
        logger.debug("read %d records from %s", len(records), path)
        return records

    def _write(self, path: str, records: List[Record]) -> None:
        """Encode, encrypt and restrict permissions to the owner."""
        data = encode_records(records)
        try:
            self.delegate.encrypt(data, path)
        except OSError as e:
            raise IOFailure(f"unable to write {path}: {e}") from e

        try:
            os.chmod(path, FILE_MODE)
        except OSError as e:
            raise IOFailure(f"unable to set file permissions on {path}: {e}") from e
        logger.debug("wrote %d records to %s", len(records), path)


def _require_path(path: str) -> None:
    if not path:
        raise InvalidArgument("filename cannot be empty")


def _require_record(record: Record) -> None:
    if not record.name:
        raise InvalidArgument("name cannot be empty")
    for field in ("name", "username", "password"):
        try:
            getattr(record, field).encode('utf-8')
        except UnicodeEncodeError as e:
            raise InvalidArgument(f"{field} is not valid UTF-8: {getattr(record, field)!r}") from e
