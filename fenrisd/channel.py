"""Encrypted, length-prefixed message channel over a stream socket.

A connection starts with an ECDH key exchange on the P-256 curve. Each side
sends its public key as one frame. The shared secret is stretched with
HKDF-SHA256 into an AES-GCM key. After that, every message is one frame
holding a random 12-byte IV followed by the AES-GCM ciphertext and tag.

A frame is a 4-byte big-endian length followed by that many bytes.
"""

from __future__ import annotations

import os
import socket
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

__all__ = [
    "ChannelError",
    "AES_GCM_KEY_SIZE",
    "AES_GCM_IV_SIZE",
    "AES_GCM_TAG_SIZE",
    "MAX_FRAME_SIZE",
    "generate_keypair",
    "compute_shared_secret",
    "derive_key",
    "encrypt",
    "decrypt",
    "send_frame",
    "receive_frame",
    "server_handshake",
    "client_handshake",
    "send_message",
    "receive_message",
]

AES_GCM_KEY_SIZE = 32
AES_GCM_IV_SIZE = 12
AES_GCM_TAG_SIZE = 16
MAX_FRAME_SIZE = 64 * 1024 * 1024

_VALID_KEY_SIZES = (16, 24, 32)
_PRIVATE_KEY_SIZE = 32
_CURVE = ec.SECP256R1()
_HEADER = struct.Struct("!I")


class ChannelError(Exception):
    """Raised when a key exchange, cipher operation or transfer fails."""


def generate_keypair() -> tuple[bytes, bytes]:
    """Return a new (private key, uncompressed public key) pair."""
    private = ec.generate_private_key(_CURVE)
    private_bytes = private.private_numbers().private_value.to_bytes(_PRIVATE_KEY_SIZE, "big")
    public_bytes = private.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return private_bytes, public_bytes


def compute_shared_secret(private_key: bytes, peer_public_key: bytes) -> bytes:
    """Compute the ECDH shared secret between our private key and a peer's public key."""
    if len(private_key) != _PRIVATE_KEY_SIZE:
        raise ChannelError(f"private key must be {_PRIVATE_KEY_SIZE} bytes")
    try:
        private = ec.derive_private_key(int.from_bytes(private_key, "big"), _CURVE)
        peer = ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, bytes(peer_public_key))
        return private.exchange(ec.ECDH(), peer)
    except ValueError as exc:
        raise ChannelError(f"invalid key material: {exc}") from exc


def derive_key(shared_secret: bytes, size: int = AES_GCM_KEY_SIZE, context: bytes = b"") -> bytes:
    """Derive a key of ``size`` bytes from a shared secret; ``context`` separates uses."""
    if size <= 0:
        raise ChannelError("derived key size must be positive")
    if not shared_secret:
        raise ChannelError("shared secret is empty")
    try:
        kdf = HKDF(algorithm=hashes.SHA256(), length=size, salt=None, info=bytes(context))
        return kdf.derive(bytes(shared_secret))
    except ValueError as exc:
        raise ChannelError(f"key derivation failed: {exc}") from exc


def _check_key_and_iv(key: bytes, iv: bytes) -> None:
    if len(key) not in _VALID_KEY_SIZES:
        raise ChannelError(f"invalid key size {len(key)}")
    if len(iv) != AES_GCM_IV_SIZE:
        raise ChannelError(f"invalid IV size {len(iv)}")


def encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """Encrypt with AES-GCM; the result is the ciphertext followed by the tag."""
    _check_key_and_iv(key, iv)
    return AESGCM(bytes(key)).encrypt(bytes(iv), bytes(plaintext), None)


def decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """Decrypt and authenticate AES-GCM data produced by :func:`encrypt`."""
    _check_key_and_iv(key, iv)
    if not ciphertext:
        raise ChannelError("no data to decrypt")
    try:
        return AESGCM(bytes(key)).decrypt(bytes(iv), bytes(ciphertext), None)
    except InvalidTag as exc:
        raise ChannelError("decryption failed: authentication tag mismatch") from exc


def send_frame(sock: socket.socket, payload: bytes) -> None:
    """Send ``payload`` preceded by its length."""
    payload = bytes(payload)
    if len(payload) > MAX_FRAME_SIZE:
        raise ChannelError(f"frame of {len(payload)} bytes is too large")
    try:
        sock.sendall(_HEADER.pack(len(payload)) + payload)
    except OSError as exc:
        raise ChannelError(f"send failed: {exc}") from exc


def _receive_exact(sock: socket.socket, count: int) -> bytes:
    buffer = bytearray()
    while len(buffer) < count:
        try:
            chunk = sock.recv(count - len(buffer))
        except OSError as exc:
            raise ChannelError(f"receive failed: {exc}") from exc
        if not chunk:
            raise ChannelError("connection closed by peer")
        buffer.extend(chunk)
    return bytes(buffer)


def receive_frame(sock: socket.socket) -> bytes:
    """Receive one length-prefixed frame."""
    (length,) = _HEADER.unpack(_receive_exact(sock, _HEADER.size))
    if length > MAX_FRAME_SIZE:
        raise ChannelError(f"frame of {length} bytes is too large")
    return _receive_exact(sock, length)


def server_handshake(sock: socket.socket) -> bytes:
    """Run the server side of the key exchange and return the session key."""
    private_key, public_key = generate_keypair()
    peer_public_key = receive_frame(sock)
    send_frame(sock, public_key)
    secret = compute_shared_secret(private_key, peer_public_key)
    return derive_key(secret, AES_GCM_KEY_SIZE)


def client_handshake(sock: socket.socket) -> bytes:
    """Run the client side of the key exchange and return the session key."""
    private_key, public_key = generate_keypair()
    send_frame(sock, public_key)
    peer_public_key = receive_frame(sock)
    secret = compute_shared_secret(private_key, peer_public_key)
    return derive_key(secret, AES_GCM_KEY_SIZE)


def send_message(sock: socket.socket, key: bytes, payload: bytes) -> None:
    """Encrypt ``payload`` under a fresh IV and send it as one frame."""
    iv = os.urandom(AES_GCM_IV_SIZE)
    send_frame(sock, iv + encrypt(payload, key, iv))


def receive_message(sock: socket.socket, key: bytes) -> bytes:
    """Receive one frame and decrypt it."""
    frame = receive_frame(sock)
    if len(frame) < AES_GCM_IV_SIZE:
        raise ChannelError("received data too small to contain IV")
    return decrypt(frame[AES_GCM_IV_SIZE:], key, frame[:AES_GCM_IV_SIZE])