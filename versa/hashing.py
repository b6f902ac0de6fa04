"""Content fingerprints for checkpoint metadata.

A 32-bit rolling hash (h * 31 + unit) over UTF-16 code units, rendered in
base 36. Fast and stable across sessions, but NOT collision resistant:
shown in listings to eyeball whether two snapshots match, never used for
deduplication or integrity checks.
"""

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))


def hash_content(content: str) -> str:
    """Fingerprint content. Same content always yields the same string."""
    h = 0
    data = content.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32((h << 5) - h + unit)
    return _base36(h)
