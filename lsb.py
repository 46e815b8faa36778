# bit packing helpers - one secret bit goes into the last bit of one carrier byte
# everything is MSB-first, the encoder and decoder HAVE to agree on that
# or you just get garbage back and nothing tells you about it

HEADER_SIZE = 54       # bmp header we copy over untouched
SIZE_FIELD_BYTES = 4   # the two length fields are plain 32-bit unsigned ints
BITS_PER_BYTE = 8
INT_BITS = SIZE_FIELD_BYTES * BITS_PER_BYTE
MAX_UINT32 = (1 << INT_BITS) - 1


def pack_bits(value: int, nbits: int, window) -> None:
    """Write the low ``nbits`` of ``value`` into the LSBs of ``window``, MSB first.

    ``window`` is any mutable byte buffer (bytearray, memoryview slice) with
    at least ``nbits`` bytes. Only bit 0 of each carrier byte changes.
    """
    if len(window) < nbits:
        raise ValueError(f"window holds {len(window)} bytes, need {nbits}")
    if value < 0 or value >> nbits:
        raise ValueError(f"{value} does not fit in {nbits} bits")
    for i in range(nbits):
        bit = (value >> (nbits - 1 - i)) & 1
        window[i] = (window[i] & 0xFE) | bit  # clear the last bit, then drop ours in


def unpack_bits(window, nbits: int) -> int:
    """Read ``nbits`` LSBs back out of ``window``, first byte is the MSB."""
    if len(window) < nbits:
        raise ValueError(f"window holds {len(window)} bytes, need {nbits}")
    value = 0
    for i in range(nbits):
        value = (value << 1) | (window[i] & 1)
    return value


def pack_byte(value: int, window) -> None:
    pack_bits(value, BITS_PER_BYTE, window)


def unpack_byte(window) -> int:
    return unpack_bits(window, BITS_PER_BYTE)


def pack_int(value: int, window) -> None:
    # bit 31 lands in window[0], bit 0 in window[31]
    pack_bits(value, INT_BITS, window)


def unpack_int(window) -> int:
    return unpack_bits(window, INT_BITS)


def pack_bytes(data: bytes, window) -> None:
    # one 8-byte group per data byte, back to back
    if len(window) < len(data) * BITS_PER_BYTE:
        raise ValueError(
            f"window holds {len(window)} bytes, need {len(data) * BITS_PER_BYTE}"
        )
    view = memoryview(window)
    for idx, byte in enumerate(data):
        start = idx * BITS_PER_BYTE
        pack_byte(byte, view[start : start + BITS_PER_BYTE])


def unpack_bytes(window) -> bytes:
    # trailing bytes that don't make a full group are ignored
    out = bytearray()
    for start in range(0, len(window) - BITS_PER_BYTE + 1, BITS_PER_BYTE):
        out.append(unpack_byte(window[start : start + BITS_PER_BYTE]))
    return bytes(out)


# ── capacity ─────────────────────────────────────────────────────────────────

def required_carrier_bytes(
    signature_len: int,
    extension_len: int,
    payload_len: int,
    payload_size_field: int = SIZE_FIELD_BYTES,
    extension_size_field: int = SIZE_FIELD_BYTES,
) -> int:
    """How many carrier bytes (after the header) the whole framed stream eats.

    Every framed bit costs exactly one carrier byte, so this is just the
    framed byte count times eight.
    """
    framed_bytes = (
        signature_len
        + extension_len
        + payload_len
        + extension_size_field
        + payload_size_field
    )
    return framed_bytes * BITS_PER_BYTE


def check_capacity(
    usable_bytes: int,
    signature_len: int,
    extension_len: int,
    payload_len: int,
    payload_size_field: int = SIZE_FIELD_BYTES,
    extension_size_field: int = SIZE_FIELD_BYTES,
) -> bool:
    # exactly enough room counts as enough room
    required = required_carrier_bytes(
        signature_len, extension_len, payload_len, payload_size_field, extension_size_field
    )
    return usable_bytes >= required


def max_payload_bytes(usable_bytes: int, signature_len: int, extension_len: int) -> int:
    """Biggest secret file (in bytes) that still fits next to the other fields."""
    overhead = required_carrier_bytes(signature_len, extension_len, 0)
    return max((usable_bytes - overhead) // BITS_PER_BYTE, 0)
