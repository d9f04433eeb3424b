"""
Offset codec for stream cursors.

An offset is an opaque string token for a byte position in a stream's
backing file. Positions are written as fixed-width, zero-padded decimals so
that plain string comparison agrees with numeric order.
"""

OFFSET_WIDTH = 20
MAX_POSITION = 2**63 - 1

ZERO_OFFSET = "0"
BEGINNING_ALIAS = "-1"


def encode_offset(position: int) -> str:
    """
    Encode a byte position as an offset token.

    Args:
        position: Non-negative byte position

    Returns:
        20-digit zero-padded decimal string

    Raises:
        ValueError: If position is negative
    """
    if position < 0:
        raise ValueError(f"Position must be non-negative: {position}")
    return str(position).zfill(OFFSET_WIDTH)


def decode_offset(offset: str) -> int:
    """
    Decode an offset token to a byte position.

    Offsets are continuation tokens handed back by callers, so decoding is
    lenient: the beginning sentinels, empty or malformed tokens, negative
    numbers and out-of-range values all decode to 0.

    Args:
        offset: Offset token

    Returns:
        Byte position
    """
    if not offset or offset in (ZERO_OFFSET, BEGINNING_ALIAS):
        return 0
    if not offset.isdigit() or not offset.isascii():
        return 0
    position = int(offset)
    if position > MAX_POSITION:
        return 0
    return position


def compare_offsets(a: str, b: str) -> int:
    """Compare two offset tokens numerically, returning -1, 0 or 1."""
    pa, pb = decode_offset(a), decode_offset(b)
    return (pa > pb) - (pa < pb)
