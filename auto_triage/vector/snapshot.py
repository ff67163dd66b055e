"""
Vector database snapshot file codec.

A snapshot is gzip-compressed JSON of every collection, optionally
encrypted with AES-256-GCM under a PBKDF2-derived key. Layout:

    b"ATVS" | version (1 byte) | flags (1 byte) | [salt (16)] | payload

where an encrypted payload is ``nonce (12) + tag (16) + ciphertext``.
"""

import gzip
import json
import os
import secrets
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.errors import SnapshotError

MAGIC = b"ATVS"
FORMAT_VERSION = 1
FLAG_ENCRYPTED = 0x01
SALT_SIZE = 16
KDF_ITERATIONS = 100000


def _derive_key(password: str, salt: bytes) -> bytes:
    """Derive encryption key from password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(password.encode())


def _encrypt_data(data: bytes, key: bytes) -> bytes:
    """Encrypt data using AES-256-GCM."""
    nonce = os.urandom(12)
    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce))
    encryptor = cipher.encryptor()

    ciphertext = encryptor.update(data) + encryptor.finalize()

    # Return nonce + tag + ciphertext
    return nonce + encryptor.tag + ciphertext


def _decrypt_data(encrypted_data: bytes, key: bytes) -> bytes:
    """Decrypt data using AES-256-GCM."""
    if len(encrypted_data) < 28:  # nonce (12) + tag (16)
        raise SnapshotError("Encrypted snapshot payload too short", stage="decrypt")

    nonce = encrypted_data[:12]
    tag = encrypted_data[12:28]
    ciphertext = encrypted_data[28:]

    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce, tag))
    decryptor = cipher.decryptor()
    try:
        return decryptor.update(ciphertext) + decryptor.finalize()
    except InvalidTag as e:
        raise SnapshotError("Snapshot decryption failed (wrong key or corrupted file)", stage="decrypt") from e


def encode_snapshot(data: Dict[str, Any], key: Optional[str] = None) -> bytes:
    """Serialize snapshot data, encrypting it when a key is given."""
    payload = gzip.compress(json.dumps(data, separators=(",", ":")).encode("utf-8"))

    if key is None:
        return MAGIC + bytes([FORMAT_VERSION, 0]) + payload

    salt = secrets.token_bytes(SALT_SIZE)
    encrypted = _encrypt_data(payload, _derive_key(key, salt))
    return MAGIC + bytes([FORMAT_VERSION, FLAG_ENCRYPTED]) + salt + encrypted


def decode_snapshot(blob: bytes, key: Optional[str] = None) -> Dict[str, Any]:
    """Parse bytes produced by ``encode_snapshot``."""
    if len(blob) < len(MAGIC) + 2 or not blob.startswith(MAGIC):
        raise SnapshotError("Not a vector snapshot file", stage="decode")

    version = blob[len(MAGIC)]
    flags = blob[len(MAGIC) + 1]
    body = blob[len(MAGIC) + 2:]

    if version != FORMAT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version {version}", stage="decode")

    if flags & FLAG_ENCRYPTED:
        if key is None:
            raise SnapshotError("Snapshot is encrypted but no key was provided", stage="decrypt")
        salt, body = body[:SALT_SIZE], body[SALT_SIZE:]
        body = _decrypt_data(body, _derive_key(key, salt))

    try:
        return json.loads(gzip.decompress(body).decode("utf-8"))
    except (OSError, EOFError, ValueError) as e:
        raise SnapshotError(f"Snapshot payload is corrupted: {e}", stage="decode") from e


def write_snapshot(path: str, data: Dict[str, Any], key: Optional[str] = None) -> int:
    """Atomically write a snapshot file. Returns the number of bytes written."""
    blob = encode_snapshot(data, key)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=target.name + ".", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise SnapshotError(f"Failed to write snapshot {path}: {e}", stage="write") from e

    return len(blob)


def read_snapshot(path: str, key: Optional[str] = None) -> Dict[str, Any]:
    """Read and decode a snapshot file."""
    try:
        with open(path, "rb") as f:
            blob = f.read()
    except OSError as e:
        raise SnapshotError(f"Failed to read snapshot {path}: {e}", stage="read") from e

    return decode_snapshot(blob, key)
