"""
Canonical serialization for record data.

Record identity (checksums) and deduplication both need a byte form of a
record's data that is identical for structurally equal data regardless of
key insertion order. Maps are key-sorted recursively and the result is
packed with msgpack.
"""

from __future__ import annotations

import hashlib
from typing import Any

import msgpack


def canonicalize(value: Any) -> Any:
    """
    Return a copy of ``value`` with every mapping key-sorted.
    
    Tuples and sets become lists (sets sorted by their canonical
    encoding) so that equal data always packs to equal bytes.
    """
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return {str(k): canonicalize(v) for k, v in items}
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(
            (canonicalize(v) for v in value),
            key=lambda v: encode_canonical(v),
        )
    return value


def encode_canonical(value: Any) -> bytes:
    """Pack ``value`` into its canonical msgpack byte form."""
    return msgpack.packb(
        canonicalize(value),
        use_bin_type=True,
        default=str,
    )


def decode(data: bytes) -> Any:
    """Unpack bytes produced by :func:`encode_canonical`."""
    return msgpack.unpackb(data, raw=False)


def fingerprint(value: Any) -> str:
    """SHA-1 hex digest of the canonical encoding of ``value``."""
    return hashlib.sha1(encode_canonical(value)).hexdigest()
