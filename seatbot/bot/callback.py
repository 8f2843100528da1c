from __future__ import annotations

# Telegram rejects callback_data longer than 64 bytes
MAX_CALLBACK_BYTES = 64
SEP = ":"


def pack(*parts: object) -> str:
    raw = SEP.join(str(p) for p in parts)
    if len(raw.encode("utf-8")) > MAX_CALLBACK_BYTES:
        raise ValueError(f"callback data too long ({len(raw.encode('utf-8'))} bytes): {raw[:40]}...")
    return raw


def unpack(data: str | None, *, expected: int | None = None) -> list[str]:
    """Split `action:arg...`. With `expected`, the tail is kept whole (ids may contain ':')."""
    if not data:
        return []
    if expected is None:
        return data.split(SEP)
    parts = data.split(SEP, expected - 1)
    if len(parts) < expected:
        parts += [""] * (expected - len(parts))
    return parts


def arg(data: str | None, prefix: str) -> str:
    """Everything after `prefix` in a callback string, or ''."""
    if not data or not data.startswith(prefix):
        return ""
    return data[len(prefix):]
