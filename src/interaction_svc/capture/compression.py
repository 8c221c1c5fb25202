"""LZW text compression with a base64 transport encoding."""

from __future__ import annotations

import base64
import binascii
import logging


logger = logging.getLogger(__name__)

# Never a valid UTF-8 byte, so it cannot start the plain fallback encoding.
LZW_MARKER = b"\xff"

_FIRST_CODE = 256
_SURROGATE_START = 0xD800
_SURROGATE_END = 0xDFFF
_MAX_CODE = 0x10FFFF


class CompressionError(ValueError):
    """Raised when an encoded payload cannot be decoded."""


def _next_code(code: int) -> int:
    """Advance the dictionary counter, skipping code points UTF-8 cannot carry."""
    code += 1
    if _SURROGATE_START <= code <= _SURROGATE_END:
        code = _SURROGATE_END + 1
    return code


def lzw_encode(data: bytes) -> list[int]:
    """Encode bytes into a list of LZW codes."""
    if not data:
        return []

    dictionary: dict[bytes, int] = {bytes([i]): i for i in range(256)}
    next_code = _FIRST_CODE
    codes: list[int] = []

    phrase = data[:1]
    for byte in data[1:]:
        candidate = phrase + bytes([byte])
        if candidate in dictionary:
            phrase = candidate
            continue

        codes.append(dictionary[phrase])
        if next_code <= _MAX_CODE:
            dictionary[candidate] = next_code
            next_code = _next_code(next_code)
        phrase = bytes([byte])

    codes.append(dictionary[phrase])
    return codes


def lzw_decode(codes: list[int]) -> bytes:
    """Inverse of `lzw_encode`."""
    if not codes:
        return b""

    dictionary: dict[int, bytes] = {i: bytes([i]) for i in range(256)}
    next_code = _FIRST_CODE

    previous = dictionary[codes[0]]
    out = [previous]
    for code in codes[1:]:
        if code in dictionary:
            entry = dictionary[code]
        elif code == next_code:
            entry = previous + previous[:1]
        else:
            raise CompressionError(f"Invalid LZW code {code}")

        out.append(entry)
        if next_code <= _MAX_CODE:
            dictionary[next_code] = previous + entry[:1]
            next_code = _next_code(next_code)
        previous = entry

    return b"".join(out)


class Compressor:
    """
    Stateless text codec.

    `compress` runs LZW over the UTF-8 bytes of the text, writes each code
    as a code point, UTF-8 encodes that and base64 encodes the result with
    a one-byte marker in front. If anything goes wrong it falls back to
    plain base64 of the UTF-8 bytes. It never raises.
    """

    def compress(self, text: str) -> str:
        raw = text.encode("utf-8", errors="surrogatepass")
        try:
            codes = lzw_encode(raw)
            body = "".join(chr(c) for c in codes).encode("utf-8")
            return base64.b64encode(LZW_MARKER + body).decode("ascii")
        except (ValueError, UnicodeError, MemoryError) as e:
            logger.warning(f"LZW compression failed, falling back to base64: {e}")
            return base64.b64encode(raw).decode("ascii")

    def decompress(self, encoded: str) -> str:
        try:
            data = base64.b64decode(encoded.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeError) as e:
            raise CompressionError(f"Invalid base64 payload: {e}") from e

        if data[:1] != LZW_MARKER:
            return data.decode("utf-8", errors="surrogatepass")

        try:
            codes = [ord(ch) for ch in data[1:].decode("utf-8")]
        except UnicodeDecodeError as e:
            raise CompressionError(f"Corrupt LZW body: {e}") from e
        return lzw_decode(codes).decode("utf-8", errors="surrogatepass")


_default = Compressor()


def compress(text: str) -> str:
    """Compress with the module-level codec."""
    return _default.compress(text)


def decompress(encoded: str) -> str:
    """Decompress with the module-level codec."""
    return _default.decompress(encoded)
