"""File server over TCP with ECDH key exchange, AES-GCM sealed messages and an in-memory directory tree."""

__version__ = "0.1.0"