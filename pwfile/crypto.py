"""
pwfile - Cryptography Module

This file contains everything that touches randomness or ciphertext:
- Password generation from an arbitrary charset
- The EncryptionDelegate interface the store depends on
- ScryptTool: delegate that shells out to the `scrypt` command line utility
- PassphraseCipher: in-process delegate built on the 'cryptography' library

Built-in file format (PassphraseCipher):
    magic "PWF1" | N | r | p | salt (16) | nonce (12) | ciphertext + tag

    1. Passphrase + salt -> scrypt -> 32-byte key
    2. Key -> AES-256-GCM over the JSON plaintext
    3. The whole header is authenticated as associated data, so the KDF
       parameters can't be swapped without decryption failing
"""

import abc
import logging
import os
import secrets
import struct
import subprocess
import tempfile
import threading
from typing import Callable, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import DelegateError, InvalidArgument

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

KEY_SIZE = 32            # 256-bit key
SALT_SIZE = 16
NONCE_SIZE = 12          # 96-bit nonce for AES-GCM

# scrypt parameters (same cost as the scrypt utility's interactive default)
SCRYPT_N = 2**17         # 131072 - uses ~128 MB RAM with r=8
SCRYPT_R = 8
SCRYPT_P = 1

# Upper bounds accepted when reading a file header
MAX_SCRYPT_N = 2**20
MAX_SCRYPT_R = 32
MAX_SCRYPT_P = 16
MAX_SCRYPT_MEMORY = 1 << 30      # 128 * N * r bytes

FILE_MAGIC = b"PWF1"
HEADER_FMT = ">4sIII%ds%ds" % (SALT_SIZE, NONCE_SIZE)
HEADER_SIZE = struct.calcsize(HEADER_FMT)


# =============================================================================
# Password Generation
# =============================================================================

def generate_password(length: int, charset: str) -> str:
    """
    Generate a random password of `length` characters from `charset`.

    Each index is drawn with secrets.randbelow(), which uses rejection
    sampling over os.urandom(), so there is no modulo bias even when
    len(charset) doesn't divide the source range.

    Repeated characters in the charset are allowed; they simply make
    those characters proportionally more likely.

    Args:
        length: Number of characters (must be positive)
        charset: Characters to draw from (must not be empty)

    Returns:
        Random password string

    Raises:
        InvalidArgument: If length <= 0 or charset is empty
    """
    if length <= 0:
        raise InvalidArgument("length must be positive")
    if not charset:
        raise InvalidArgument("charset cannot be empty")

    size = len(charset)
    return ''.join(charset[secrets.randbelow(size)] for _ in range(length))


# =============================================================================
# Delegate Interface
# =============================================================================

class EncryptionDelegate(abc.ABC):
    """
    Converts plaintext bytes to and from an encrypted file.

    The store only ever talks to this interface; swapping the scrypt
    utility for an in-process cipher (or anything else) doesn't touch it.
    """

    @abc.abstractmethod
    def decrypt(self, path: str) -> bytes:
        """Return the plaintext of the encrypted file at `path`."""

    @abc.abstractmethod
    def encrypt(self, data: bytes, path: str) -> None:
        """Write `data` encrypted to `path`, replacing any prior content."""


# =============================================================================
# scrypt Command Line Utility
# =============================================================================

class ScryptTool(EncryptionDelegate):
    """
    Delegate that runs the `scrypt` utility (https://www.tarsnap.com/scrypt.html).

    scrypt prompts for the passphrase on the terminal itself. Whatever it
    prints on stderr is passed through to our stderr as it arrives and
    also kept on the raised DelegateError.
    """

    def __init__(self, executable: str = "scrypt"):
        self.executable = executable

    def decrypt(self, path: str) -> bytes:
        return self._run("dec", [path], None)

    def encrypt(self, data: bytes, path: str) -> None:
        self._run("enc", ["-", path], data)

    def _run(self, mode: str, args: list, data) -> bytes:
        cmd = [self.executable, mode] + args
        logger.debug("running %s", " ".join(cmd))

        # stderr goes through our own pipe so it can be echoed to the
        # terminal (passphrase prompt) and kept for the error message.
        err_read, err_write = os.pipe()
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=err_write,
            )
        except OSError as e:
            os.close(err_read)
            raise DelegateError(f"unable to execute {self.executable} {mode}: {e}") from e
        finally:
            os.close(err_write)

        chunks = []
        tee = threading.Thread(target=_tee_stderr, args=(err_read, chunks), daemon=True)
        tee.start()
        try:
            stdout, _ = proc.communicate(data)
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        finally:
            tee.join()
            os.close(err_read)

        if proc.returncode != 0:
            raise DelegateError(
                f"unable to execute {self.executable} {mode}: exit status {proc.returncode}",
                b"".join(chunks).decode("utf-8", errors="replace"),
            )
        return stdout


def _tee_stderr(fd: int, chunks: list) -> None:
    while True:
        chunk = os.read(fd, 4096)
        if not chunk:
            break
        chunks.append(chunk)
        os.write(2, chunk)


# =============================================================================
# In-Process Cipher (scrypt KDF + AES-256-GCM)
# =============================================================================

PassphraseSource = Callable[[bool], str]


def derive_key(passphrase: str, salt: bytes, n: int, r: int, p: int) -> bytes:
    """
    Derive the file key from a passphrase using scrypt.

    Args:
        passphrase: User's passphrase
        salt: 16 random bytes stored in the file header (not secret)
        n, r, p: scrypt cost parameters, also stored in the header

    Returns:
        32-byte key
    """
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=n, r=r, p=p)
    return kdf.derive(passphrase.encode('utf-8'))


def seal(passphrase: str, plaintext: bytes, n: int = SCRYPT_N, r: int = SCRYPT_R,
         p: int = SCRYPT_P) -> bytes:
    """Encrypt plaintext into the PWF1 file format."""
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    header = struct.pack(HEADER_FMT, FILE_MAGIC, n, r, p, salt, nonce)
    key = derive_key(passphrase, salt, n, r, p)
    return header + AESGCM(key).encrypt(nonce, plaintext, header)


def unseal(passphrase: str, blob: bytes) -> bytes:
    """
    Decrypt a PWF1 blob.

    The KDF parameters are read from the header before the GCM tag can
    vouch for them, so they are bounds-checked first.

    Raises:
        ValueError: If the header is truncated, has the wrong magic or
            carries out-of-range scrypt parameters
        InvalidTag: If the passphrase is wrong or the data was modified
    """
    n, r, p = _header_params(blob)
    header = blob[:HEADER_SIZE]
    _, _, _, _, salt, nonce = struct.unpack(HEADER_FMT, header)
    try:
        key = derive_key(passphrase, salt, n, r, p)
    except MemoryError as e:
        raise ValueError(f"not enough memory for scrypt parameters N={n} r={r} p={p}") from e
    return AESGCM(key).decrypt(nonce, blob[HEADER_SIZE:], header)


class PassphraseCipher(EncryptionDelegate):
    """
    In-process delegate: no external binary required.

    Usage:
        cipher = PassphraseCipher(lambda confirm: "correct horse")
        cipher.encrypt(b"[]", "pw.dat")
        cipher.decrypt("pw.dat")    # b"[]"

    Args:
        passphrase_source: Called with confirm=True when a new file is
            being created (so an interactive source can ask twice), and
            confirm=False otherwise
        n, r, p: scrypt cost parameters used for newly written files
    """

    def __init__(self, passphrase_source: PassphraseSource, n: int = SCRYPT_N,
                 r: int = SCRYPT_R, p: int = SCRYPT_P):
        self.passphrase_source = passphrase_source
        self.n = n
        self.r = r
        self.p = p
        self._passphrase = None

    def decrypt(self, path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                blob = f.read()
        except OSError as e:
            raise DelegateError(f"unable to read {path}: {e}") from e

        try:
            return unseal(self._get_passphrase(confirm=False), blob)
        except InvalidTag as e:
            raise DelegateError(
                f"unable to decrypt {path}: wrong passphrase or corrupted file"
            ) from e
        except ValueError as e:
            raise DelegateError(f"unable to decrypt {path}: {e}") from e

    def encrypt(self, data: bytes, path: str) -> None:
        passphrase = self._get_passphrase(confirm=not os.path.exists(path))
        blob = seal(passphrase, data, self.n, self.r, self.p)
        directory = os.path.dirname(os.path.abspath(path))
        logger.debug("writing %d encrypted bytes to %s", len(blob), path)

        try:
            fd, tmp = tempfile.mkstemp(dir=directory, prefix=".pw-", suffix=".tmp")
        except OSError as e:
            raise DelegateError(f"unable to write {path}: {e}") from e
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError as e:
            _discard(tmp)
            raise DelegateError(f"unable to write {path}: {e}") from e

    def _get_passphrase(self, confirm: bool) -> str:
        # Asked at most once per delegate, so a read-modify-write cycle
        # prompts a single time.
        if self._passphrase is None:
            self._passphrase = self.passphrase_source(confirm)
        return self._passphrase


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _header_params(blob: bytes) -> Tuple[int, int, int]:
    """Return the validated (N, r, p) scrypt parameters of a PWF1 header."""
    if len(blob) < HEADER_SIZE:
        raise ValueError("file is too small to be a password file")
    magic, n, r, p, _, _ = struct.unpack(HEADER_FMT, blob[:HEADER_SIZE])
    if magic != FILE_MAGIC:
        raise ValueError("not a password file (bad magic)")
    if n < 2 or n & (n - 1) or n > MAX_SCRYPT_N:
        raise ValueError(f"corrupted header: invalid scrypt N={n}")
    if not 1 <= r <= MAX_SCRYPT_R or not 1 <= p <= MAX_SCRYPT_P:
        raise ValueError(f"corrupted header: invalid scrypt r={r} p={p}")
    if 128 * n * r > MAX_SCRYPT_MEMORY:
        raise ValueError(f"corrupted header: scrypt N={n} r={r} needs too much memory")
    return n, r, p
