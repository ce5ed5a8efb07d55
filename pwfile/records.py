"""
pwfile - Records

The plaintext inside the encrypted file is a JSON array:

    [{"name": "github", "username": "alice", "password": "..."}, ...]

Order is significant and preserved both ways.
"""

import json
from dataclasses import asdict, dataclass
from typing import List, Sequence

from .errors import InvalidFormat

FIELDS = ("name", "username", "password")


@dataclass(frozen=True)
class Record:
    """One entry in the password file. `name` is the unique key."""

    name: str
    username: str
    password: str


def encode_records(records: Sequence[Record]) -> bytes:
    """
    Serialize records to UTF-8 JSON, keeping their order.

    Never fails: characters UTF-8 can't represent (lone surrogates from
    undecodable command line bytes) are replaced.
    """
    text = json.dumps([asdict(r) for r in records], ensure_ascii=False)
    return text.encode('utf-8', errors='replace')


def decode_records(data: bytes) -> List[Record]:
    """
    Parse decrypted bytes back into records.

    An empty array gives an empty list. Anything else that isn't an
    array of {name, username, password} string objects is rejected,
    `null` included; extra keys are ignored.

    Raises:
        InvalidFormat: If the content is not a well-formed record list
    """
    try:
        items = json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidFormat(f"invalid JSON: {e}") from e

    if not isinstance(items, list):
        raise InvalidFormat(f"invalid JSON: expected an array, got {type(items).__name__}")

    records = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidFormat(f"invalid JSON: entry {i} is not an object")
        for field in FIELDS:
            if not isinstance(item.get(field), str):
                raise InvalidFormat(f"invalid JSON: entry {i} has no string field '{field}'")
        records.append(Record(item["name"], item["username"], item["password"]))
    return records
