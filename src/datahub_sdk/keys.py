"""RSA key material for public key (JWT assertion) authentication.

A client registers its public key with the data hub and signs token
requests with the matching private key. Key pairs are exchanged as PEM:
the private key as PKCS8, the public key as PKIX (SubjectPublicKeyInfo).
On disk a pair lives in one directory as ``node_key`` and ``node_key.pub``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import ParameterError
from .telemetry import get_logger, traced

DEFAULT_KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537

PRIVATE_KEY_FILENAME = "node_key"
PUBLIC_KEY_FILENAME = "node_key.pub"

PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644


@dataclass(frozen=True)
class KeyPair:
    """An RSA private key and its public half."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @classmethod
    def from_private_key(cls, private_key: rsa.RSAPrivateKey) -> KeyPair:
        """Build a pair by deriving the public key from the private key."""
        return cls(private_key=private_key, public_key=private_key.public_key())

    def export_private_key(self) -> bytes:
        """Export private key in PKCS8 PEM format."""
        return export_private_key_pem(self.private_key)

    def export_public_key(self) -> bytes:
        """Export public key in PKIX PEM format."""
        return export_public_key_pem(self.public_key)


@traced("generate_keypair")
def generate_keypair(key_size: int = DEFAULT_KEY_SIZE) -> KeyPair:
    """Generate a new RSA key pair.

    Args:
        key_size: Modulus size in bits.

    Returns:
        The generated KeyPair.
    """
    if key_size < 2048:
        raise ParameterError(
            f"RSA key size must be at least 2048 bits, got {key_size}",
            parameter="key_size",
        )
    private_key = rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
    )
    return KeyPair.from_private_key(private_key)


def export_private_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """Export private key as unencrypted PKCS8 PEM."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def export_public_key_pem(key: rsa.RSAPublicKey) -> bytes:
    """Export public key as PKIX (SubjectPublicKeyInfo) PEM."""
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def parse_private_key_pem(pem_data: bytes) -> rsa.RSAPrivateKey:
    """Parse an RSA private key from PEM.

    Both PKCS8 (``PRIVATE KEY``) and PKCS1 (``RSA PRIVATE KEY``) framing
    are accepted.

    Raises:
        ParameterError: If the data is not an unencrypted RSA private key.
    """
    try:
        private_key = serialization.load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError) as e:
        raise ParameterError("unable to parse private key PEM", cause=e) from e
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ParameterError("key type is not RSA")
    return private_key


def parse_public_key_pem(pem_data: bytes) -> rsa.RSAPublicKey:
    """Parse an RSA public key from PKIX PEM.

    Raises:
        ParameterError: If the data is not an RSA public key.
    """
    try:
        public_key = serialization.load_pem_public_key(pem_data)
    except (ValueError, TypeError) as e:
        raise ParameterError("unable to parse public key PEM", cause=e) from e
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ParameterError("key type is not RSA")
    return public_key


def save_keypair(directory: str | os.PathLike[str], keypair: KeyPair) -> None:
    """Write a key pair to ``node_key`` and ``node_key.pub`` in a directory.

    The private key file is created readable and writable by the owner only.

    Raises:
        ParameterError: If the directory does not exist or cannot be written.
    """
    location = _require_directory(directory)
    private_path = location / PRIVATE_KEY_FILENAME
    public_path = location / PUBLIC_KEY_FILENAME

    try:
        _write_file(private_path, keypair.export_private_key(), PRIVATE_KEY_MODE)
        _write_file(public_path, keypair.export_public_key(), PUBLIC_KEY_MODE)
    except OSError as e:
        raise ParameterError(
            f"unable to write key pair to {location}",
            parameter="directory",
            cause=e,
        ) from e

    get_logger().info("Saved key pair", directory=str(location))


def load_keypair(directory: str | os.PathLike[str]) -> KeyPair:
    """Read a key pair saved by :func:`save_keypair`.

    Raises:
        ParameterError: If the directory or either key file is missing,
            unreadable or does not hold an RSA key.
    """
    location = _require_directory(directory)
    private_key = parse_private_key_pem(_read_key_file(location, PRIVATE_KEY_FILENAME))
    public_key = parse_public_key_pem(_read_key_file(location, PUBLIC_KEY_FILENAME))
    return KeyPair(private_key=private_key, public_key=public_key)


def _require_directory(directory: str | os.PathLike[str]) -> Path:
    if not directory or not str(directory).strip():
        raise ParameterError("key directory is required", parameter="directory")
    location = Path(directory)
    if not location.is_dir():
        raise ParameterError(
            f"location {location} is not a directory",
            parameter="directory",
        )
    return location


def _read_key_file(location: Path, filename: str) -> bytes:
    path = location / filename
    try:
        return path.read_bytes()
    except OSError as e:
        raise ParameterError(
            f"{filename} at location {location} is not valid",
            parameter="directory",
            cause=e,
        ) from e


def _write_file(path: Path, data: bytes, mode: int) -> None:
    # os.open only applies mode to new files; chmod covers existing ones.
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, mode)
