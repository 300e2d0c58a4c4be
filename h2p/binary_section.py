"""Decode the compressed binary chunk appended to some ``.h2p`` presets.

The chunk is text with two regions split at the *last* colon:

  header   colon/newline separated tokens over the nibble alphabet
           ``a``..``p`` (one nibble per character, two per byte), plus an
           optional ``$$$$<digits>`` marker holding the declared
           uncompressed size.  Tokens with other characters (``?klkkkkdo``
           and friends) are kept verbatim as undecoded.
  payload  6-bit symbols over ``!0-9=A-Za-z`` packed big-endian and drained
           8 bits at a time; a trailing partial byte is dropped.

The split is positional: the payload alphabet has no colon, so the last
colon in the text always ends the header.  Nothing here re-encodes; the
generator only ever copies or swaps the raw text.
"""

from __future__ import annotations

import base64
import re
import struct
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


PAYLOAD_ALPHABET = "!0123456789=ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
NIBBLE_ALPHABET = "abcdefghijklmnop"
PAYLOAD_LOOKUP = {char: index for index, char in enumerate(PAYLOAD_ALPHABET)}
NIBBLE_LOOKUP = {char: index for index, char in enumerate(NIBBLE_ALPHABET)}

PAYLOAD_ENCODINGS = ("base64", "uint16", "uint32", "float32")

_SIZE_MARKER_RE = re.compile(r"\$\$\$\$(\d+)")
_TOKEN_SPLIT_RE = re.compile(r"[:\n]")
_WHITESPACE_RE = re.compile(r"\s+")


class BinarySectionError(ValueError):
    """Base class for binary section decode failures."""


class EmptyBinarySectionError(BinarySectionError):
    pass


class BinarySplitError(BinarySectionError):
    pass


class EmptyBinaryPayloadError(BinarySectionError):
    pass


class InvalidPayloadCharacterError(BinarySectionError):
    def __init__(self, char: str, position: int, context: str) -> None:
        self.char = char
        self.position = position
        self.context = context
        super().__init__(
            f"unexpected character {char!r} at payload position {position} "
            f"(near {context!r})"
        )


@dataclass(frozen=True)
class BinaryHeaderField:
    token: str
    data: bytes
    decimal_value: Optional[int] = None

    @property
    def byte_length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ParsedBinarySection:
    header_fields: List[BinaryHeaderField]
    undecoded_tokens: List[str]
    header_bytes: bytes
    payload_bytes: bytes
    declared_uncompressed_size: Optional[int] = None

    @property
    def combined_bytes(self) -> bytes:
        return self.header_bytes + self.payload_bytes


def decode_nibble_token(token: str) -> bytes | None:
    """Return the bytes for a nibble token, or None if it leaves the alphabet."""

    if not token:
        return None
    nibbles: List[int] = []
    for char in token:
        value = NIBBLE_LOOKUP.get(char)
        if value is None:
            return None
        nibbles.append(value)

    if len(nibbles) % 2 == 1:
        nibbles.insert(0, 0)

    return bytes(
        (nibbles[i] << 4) | nibbles[i + 1] for i in range(0, len(nibbles), 2)
    )


def decode_payload(text: str) -> bytes:
    bit_buffer = 0
    bit_count = 0
    out = bytearray()

    for position, char in enumerate(text):
        value = PAYLOAD_LOOKUP.get(char)
        if value is None:
            context = text[max(0, position - 8) : position + 8]
            raise InvalidPayloadCharacterError(char, position, context)
        bit_buffer = (bit_buffer << 6) | value
        bit_count += 6

        if bit_count >= 8:
            bit_count -= 8
            out.append((bit_buffer >> bit_count) & 0xFF)
            bit_buffer &= (1 << bit_count) - 1

    return bytes(out)


def _decimal_value(data: bytes) -> int | None:
    if len(data) <= 6 or len(data) == 8:
        return int.from_bytes(data, "big")
    return None


def parse_binary_section(section: str) -> ParsedBinarySection:
    if not section or not section.strip():
        raise EmptyBinarySectionError("binary section content is empty")

    normalized = section.replace("\r", "").rstrip("\x00")
    split_at = normalized.rfind(":")
    if split_at == -1:
        raise BinarySplitError("unable to split binary header and payload (no ':' found)")

    header_text = normalized[:split_at]
    payload_text = _WHITESPACE_RE.sub("", normalized[split_at + 1 :])
    if not payload_text:
        raise EmptyBinaryPayloadError("binary payload is empty")

    declared_size = None
    size_match = _SIZE_MARKER_RE.search(header_text)
    if size_match is not None:
        declared_size = int(size_match.group(1))
        header_text = header_text[: size_match.start()] + header_text[size_match.end() :]

    header_fields: List[BinaryHeaderField] = []
    undecoded: List[str] = []
    for raw_token in _TOKEN_SPLIT_RE.split(header_text):
        token = raw_token.strip()
        if not token:
            continue
        decoded = decode_nibble_token(token)
        if decoded is None:
            undecoded.append(token)
            continue
        header_fields.append(
            BinaryHeaderField(token=token, data=decoded, decimal_value=_decimal_value(decoded))
        )

    return ParsedBinarySection(
        header_fields=header_fields,
        undecoded_tokens=undecoded,
        header_bytes=b"".join(f.data for f in header_fields),
        payload_bytes=decode_payload(payload_text),
        declared_uncompressed_size=declared_size,
    )


def _words(data: bytes, fmt: str, max_entries: int | None) -> list:
    size = struct.calcsize(fmt)
    count = len(data) // size
    if max_entries is not None:
        count = min(count, max(0, max_entries))
    return [struct.unpack_from(fmt, data, i * size)[0] for i in range(count)]


def _readable_ascii(data: bytes) -> str | None:
    if not data:
        return None
    if all(0x20 <= b <= 0x7E for b in data):
        return data.decode("ascii")
    return None


def header_field_to_json(header_field: BinaryHeaderField) -> Dict[str, object]:
    data = header_field.data
    out: Dict[str, object] = {
        "token": header_field.token,
        "byteLength": len(data),
        "hex": data.hex(),
    }
    if len(data) <= 6 or len(data) == 8:
        out["uintBE"] = int.from_bytes(data, "big")
        out["uintLE"] = int.from_bytes(data, "little")
    if len(data) == 4:
        out["float32BE"] = struct.unpack(">f", data)[0]
        out["float32LE"] = struct.unpack("<f", data)[0]
    ascii_text = _readable_ascii(data)
    if ascii_text is not None:
        out["ascii"] = ascii_text
    return out


def binary_section_to_json(
    parsed: ParsedBinarySection,
    *,
    include_payload_encodings: Iterable[str] = ("uint32",),
    max_payload_entries: int | None = None,
) -> Dict[str, object]:
    """Build a JSON-friendly diagnostic view of a decoded section.

    The header is keyed by token.  Payload word lists are little-endian
    and capped at ``max_payload_entries`` when given.
    """

    payload = parsed.payload_bytes
    payload_json: Dict[str, object] = {"byteLength": len(payload)}
    for encoding in include_payload_encodings:
        if encoding == "base64":
            payload_json["base64"] = base64.b64encode(payload).decode("ascii")
        elif encoding == "uint16":
            payload_json["uint16LittleEndian"] = _words(payload, "<H", max_payload_entries)
        elif encoding == "uint32":
            payload_json["uint32LittleEndian"] = _words(payload, "<I", max_payload_entries)
        elif encoding == "float32":
            payload_json["float32LittleEndian"] = _words(payload, "<f", max_payload_entries)
        else:
            valid = ", ".join(PAYLOAD_ENCODINGS)
            raise ValueError(f"unknown payload encoding {encoding!r}; expected one of: {valid}")

    return {
        "declaredUncompressedSize": parsed.declared_uncompressed_size,
        "header": {f.token: header_field_to_json(f) for f in parsed.header_fields},
        "undecodedTokens": list(parsed.undecoded_tokens),
        "payload": payload_json,
    }
