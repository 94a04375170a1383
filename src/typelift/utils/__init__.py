"""Shared utility helpers (filesystem, hashing, concurrency)."""

from typelift.utils.concurrency import CancellationToken
from typelift.utils.fs import atomic_write, is_within, iter_python_files
from typelift.utils.hashing import sha256_bytes, sha256_text

__all__ = [
    "CancellationToken",
    "atomic_write",
    "is_within",
    "iter_python_files",
    "sha256_bytes",
    "sha256_text",
]
