"""
Helpers for turning 16-bit holding register words into values.
"""

from typing import List, Sequence

from batteryhub.errors import DecodeError


def require_count(regs: Sequence[int], count: int, what: str = "registers") -> None:
    if len(regs) < count:
        raise DecodeError(f"expected {count} {what}, got {len(regs)}")


def to_s16(value: int) -> int:
    value = int(value) & 0xFFFF
    return value - 0x10000 if value >= 0x8000 else value


def u32(hi: int, lo: int) -> int:
    return ((int(hi) & 0xFFFF) << 16) | (int(lo) & 0xFFFF)


def scaled(value: int, divisor: float, digits: int = 2) -> float:
    return round(value / divisor, digits)


def regs_to_ascii(raw_regs: Sequence[int], byteorder: str = "big") -> str:
    """
    Convert a list of 16-bit register values into an ASCII string.
    byteorder = "big": [hi, lo] per word (most common on Modbus devices)
    byteorder = "little": [lo, hi] per word
    """
    buf = bytearray()
    for w in raw_regs:
        w = int(w) & 0xFFFF
        if byteorder == "big":
            buf.append((w >> 8) & 0xFF)
            buf.append(w & 0xFF)
        else:
            buf.append(w & 0xFF)
            buf.append((w >> 8) & 0xFF)
    return bytes(buf).split(b"\x00", 1)[0].decode("ascii", errors="ignore").strip()


def high_low_bytes(value: int) -> List[int]:
    value = int(value) & 0xFFFF
    return [(value >> 8) & 0xFF, value & 0xFF]
