"""Object identifiers."""

from __future__ import annotations

OID_LENGTH = 20
HEX_OID_LENGTH = 2 * OID_LENGTH


class Oid:
    """A 20-byte git object id, compared and hashed by content."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        raw = bytes(raw)
        if len(raw) != OID_LENGTH:
            raise ValueError(f"object id must be {OID_LENGTH} bytes, got {len(raw)}")
        self._raw = raw

    @classmethod
    def from_hex(cls, text: str | bytes) -> Oid:
        """Parse a 40-character hexadecimal object id."""
        if isinstance(text, bytes):
            text = text.decode("ascii", "replace")
        if len(text) != HEX_OID_LENGTH:
            raise ValueError(f"hex oid has the wrong length: {text!r}")
        return cls(bytes.fromhex(text))

    @property
    def raw(self) -> bytes:
        """The 20 raw bytes."""
        return self._raw

    @property
    def hex(self) -> str:
        return self._raw.hex()

    def __str__(self) -> str:
        return self._raw.hex()

    def __repr__(self) -> str:
        return f"Oid({self._raw.hex()[:7]})"

    def __eq__(self, other):
        if isinstance(other, Oid):
            return self._raw == other._raw
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._raw)

    def __setattr__(self, name, value):
        if hasattr(self, "_raw"):
            raise AttributeError("Oid is immutable")
        object.__setattr__(self, name, value)
