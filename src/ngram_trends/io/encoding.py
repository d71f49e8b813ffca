# ngram_trends/io/encoding.py
"""Key and value encoding for materialized stage datasets."""

from __future__ import annotations

import struct
from typing import Any, Callable, Dict, Tuple

from ngram_trends.types import ChangeRecord, DecadeRatio, NormalizedRecord

__all__ = [
    "KIND_NORMALIZED",
    "KIND_DECADE_RATIO",
    "KIND_CHANGE",
    "RECORD_PREFIX",
    "encode_record_key",
    "decode_record_key",
    "encode_record",
    "decode_record",
]

KIND_NORMALIZED = "normalized"
KIND_DECADE_RATIO = "decade_ratio"
KIND_CHANGE = "change"

RECORD_PREFIX = b"r/"

# Fixed-width numeric header followed by the UTF-8 gram
_NORMALIZED = struct.Struct("<iq")   # year, occurrences
_DECADE_RATIO = struct.Struct("<id")  # decade, ratio
_CHANGE = struct.Struct("<idd")      # decade, ratio, increase


def encode_record_key(seq: int) -> bytes:
    """
    Encode a record sequence number as a key.

    Big-endian so that lexicographic key order matches write order.
    """
    if seq < 0:
        raise ValueError(f"Sequence number must be non-negative, got {seq}")
    return RECORD_PREFIX + struct.pack(">Q", seq)


def decode_record_key(key: bytes) -> int:
    if not key.startswith(RECORD_PREFIX) or len(key) != len(RECORD_PREFIX) + 8:
        raise ValueError(f"Not a record key: {key!r}")
    return struct.unpack(">Q", key[len(RECORD_PREFIX):])[0]


def _enc_normalized(rec: NormalizedRecord) -> bytes:
    return _NORMALIZED.pack(rec.year, rec.occurrences) + rec.gram.encode("utf-8")


def _dec_normalized(value: bytes) -> NormalizedRecord:
    year, occurrences = _NORMALIZED.unpack_from(value)
    return NormalizedRecord(
        gram=value[_NORMALIZED.size:].decode("utf-8"),
        year=year,
        occurrences=occurrences,
    )


def _enc_decade_ratio(rec: DecadeRatio) -> bytes:
    return _DECADE_RATIO.pack(rec.decade, rec.ratio) + rec.gram.encode("utf-8")


def _dec_decade_ratio(value: bytes) -> DecadeRatio:
    decade, ratio = _DECADE_RATIO.unpack_from(value)
    return DecadeRatio(
        gram=value[_DECADE_RATIO.size:].decode("utf-8"),
        decade=decade,
        ratio=ratio,
    )


def _enc_change(rec: ChangeRecord) -> bytes:
    return _CHANGE.pack(rec.decade, rec.ratio, rec.increase) + rec.gram.encode("utf-8")


def _dec_change(value: bytes) -> ChangeRecord:
    decade, ratio, increase = _CHANGE.unpack_from(value)
    return ChangeRecord(
        gram=value[_CHANGE.size:].decode("utf-8"),
        decade=decade,
        ratio=ratio,
        increase=increase,
    )


_CODECS: Dict[str, Tuple[type, Callable[[Any], bytes], Callable[[bytes], Any]]] = {
    KIND_NORMALIZED: (NormalizedRecord, _enc_normalized, _dec_normalized),
    KIND_DECADE_RATIO: (DecadeRatio, _enc_decade_ratio, _dec_decade_ratio),
    KIND_CHANGE: (ChangeRecord, _enc_change, _dec_change),
}


def _codec(kind: str):
    try:
        return _CODECS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown dataset kind {kind!r}; expected one of {sorted(_CODECS)}"
        ) from None


def encode_record(kind: str, rec: Any) -> bytes:
    """Pack a record of the given dataset kind into bytes."""
    record_type, enc, _ = _codec(kind)
    if not isinstance(rec, record_type):
        raise TypeError(
            f"{kind} datasets hold {record_type.__name__}, got {type(rec).__name__}"
        )
    return enc(rec)


def decode_record(kind: str, value: bytes) -> Any:
    """Unpack bytes written by encode_record()."""
    _, _, dec = _codec(kind)
    return dec(value)
