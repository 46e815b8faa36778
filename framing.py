# the framed stream that lives inside the carrier's LSBs
#
#   signature | extension length | extension text | payload length | payload
#
# every field is read/written strictly in that order, one carrier byte per bit.
# the signature is the only integrity check the format has - if somebody
# flips bits in the fields after it we can't tell, we just read whatever's there

from enum import Enum

from lsb import (
    BITS_PER_BYTE,
    HEADER_SIZE,
    INT_BITS,
    MAX_UINT32,
    pack_bytes,
    pack_int,
    unpack_bytes,
    unpack_int,
)

MAX_EXTENSION_LEN = 255   # longest extension we'll believe when decoding
CHUNK_SIZE = 4096         # payload bytes handled per read/write round


# ──────────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────────

class StegoError(Exception):
    """Base class for everything that can go wrong while hiding or revealing."""


class InvalidArgumentsError(StegoError):
    """Caller handed us something we can't work with."""


class _OpenError(StegoError):
    """A file could not be opened for the job it was meant for."""
    what = "file"

    def __init__(self, path, cause=None, reason=None):
        self.path = path
        self.cause = cause
        if reason is None:
            reason = getattr(cause, "strerror", None)
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unable to open {self.what} '{path}'{detail}")


class CarrierOpenError(_OpenError):
    """The carrier image could not be opened."""
    what = "carrier image"


class PayloadOpenError(_OpenError):
    """The secret file could not be opened or is not a regular file."""
    what = "secret file"


class OutputOpenError(_OpenError):
    """The output file could not be created."""
    what = "output file"


class InsufficientCapacityError(StegoError):
    """Carrier too small for the framed stream."""
    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__(
            f"Carrier too small: need {required} bytes after the header, have {available}"
        )


class ShortReadError(StegoError):
    """A field ran out of input before it was complete."""
    def __init__(self, field, expected, got):
        self.field = field
        self.expected = expected
        self.got = got
        super().__init__(f"Short read in {field}: expected {expected} bytes, got {got}")


class ShortWriteError(StegoError):
    """A field could not be written out completely."""
    def __init__(self, field, expected, got):
        self.field = field
        self.expected = expected
        self.got = got
        super().__init__(f"Short write in {field}: expected {expected} bytes, wrote {got}")


class SignatureMismatchError(StegoError):
    """The decoded signature is not the one the caller expected."""
    def __init__(self, expected, found):
        self.expected = expected
        self.found = found
        super().__init__("Decoded signature does not match the expected signature")


class ImplausibleLengthError(StegoError):
    """A decoded length field asks for more than the carrier could possibly hold."""
    def __init__(self, field, value, limit):
        self.field = field
        self.value = value
        self.limit = limit
        super().__init__(f"Decoded {field} {value} exceeds the limit of {limit}")


class InvalidExtensionError(StegoError):
    """The extension text is not a plain ASCII file suffix."""
    def __init__(self, text):
        self.text = text
        super().__init__(f"Extension {text!r} is not a plain ASCII file suffix")


class FramingOrderError(StegoError):
    """A framing step was called out of order."""
    def __init__(self, stage, expected):
        self.stage = stage
        self.expected = expected
        super().__init__(f"Framing step needs stage {expected.name}, currently {stage.name}")


# ──────────────────────────────────────────────────────────────────────────────
# Stream helpers
# ──────────────────────────────────────────────────────────────────────────────

def read_exact(stream, size: int, field: str) -> bytes:
    data = stream.read(size)
    got = len(data) if data else 0
    if got < size:
        raise ShortReadError(field, size, got)
    return data


def write_all(stream, data, field: str) -> None:
    try:
        written = stream.write(data)
    except OSError as exc:
        raise ShortWriteError(field, len(data), 0) from exc
    # raw files can return a short count instead of raising
    if written is not None and written != len(data):
        raise ShortWriteError(field, len(data), written)


def validate_extension(text: str) -> str:
    if not text.isascii() or any(c in text for c in "/\\\x00"):
        raise InvalidExtensionError(text)
    return text


# ──────────────────────────────────────────────────────────────────────────────
# State machine
# ──────────────────────────────────────────────────────────────────────────────

class Stage(Enum):
    START = 0
    HEADER_RELAYED = 1
    SIGNATURE_DONE = 2
    EXT_LEN_DONE = 3
    EXT_TEXT_DONE = 4
    PAYLOAD_LEN_DONE = 5
    PAYLOAD_DONE = 6
    FINISHED = 7


class _Framer:
    def __init__(self, source, header_size: int = HEADER_SIZE, on_step=None):
        self.source = source
        self.header_size = header_size
        self.on_step = on_step
        self.stage = Stage.START

    def _expect(self, stage: Stage) -> None:
        if self.stage is not stage:
            raise FramingOrderError(self.stage, stage)

    def _advance(self, stage: Stage, step: str) -> None:
        self.stage = stage
        if self.on_step:
            self.on_step(step)


class FrameWriter(_Framer):
    """
    Encode side: reads carrier bytes from ``source``, packs each field into
    them and writes the result to ``sink``.

    Call the steps in order: relay_header, write_signature,
    write_extension_length, write_extension, write_payload_length,
    write_payload, finish. Any failure leaves the sink half written; cleaning
    that up is the caller's job.
    """

    def __init__(self, source, sink, header_size: int = HEADER_SIZE, on_step=None):
        super().__init__(source, header_size, on_step)
        self.sink = sink
        self.extension_length = None
        self.payload_length = None
        self.framed_bytes = 0   # carrier bytes that went through the packer

    def _pack_field(self, field: str, data: bytes) -> None:
        window = bytearray(read_exact(self.source, len(data) * BITS_PER_BYTE, field))
        pack_bytes(data, window)
        write_all(self.sink, window, field)
        self.framed_bytes += len(window)

    def _pack_length(self, field: str, value: int) -> None:
        if not 0 <= value <= MAX_UINT32:
            raise InvalidArgumentsError(f"{field} {value} does not fit in 32 bits")
        window = bytearray(read_exact(self.source, INT_BITS, field))
        pack_int(value, window)
        write_all(self.sink, window, field)
        self.framed_bytes += INT_BITS

    def relay_header(self) -> None:
        self._expect(Stage.START)
        header = read_exact(self.source, self.header_size, "header")
        write_all(self.sink, header, "header")
        self._advance(Stage.HEADER_RELAYED, "Copying image header")

    def write_signature(self, signature: bytes) -> None:
        self._expect(Stage.HEADER_RELAYED)
        self._pack_field("signature", signature)
        self._advance(Stage.SIGNATURE_DONE, "Encoding signature")

    def write_extension_length(self, length: int) -> None:
        self._expect(Stage.SIGNATURE_DONE)
        self._pack_length("extension_length", length)
        self.extension_length = length
        self._advance(Stage.EXT_LEN_DONE, "Encoding extension length")

    def write_extension(self, extension: bytes) -> None:
        self._expect(Stage.EXT_LEN_DONE)
        if len(extension) != self.extension_length:
            raise InvalidArgumentsError(
                f"extension is {len(extension)} bytes, declared {self.extension_length}"
            )
        self._pack_field("extension_text", extension)
        self._advance(Stage.EXT_TEXT_DONE, "Encoding extension")

    def write_payload_length(self, length: int) -> None:
        self._expect(Stage.EXT_TEXT_DONE)
        self._pack_length("payload_length", length)
        self.payload_length = length
        self._advance(Stage.PAYLOAD_LEN_DONE, "Encoding secret file size")

    def write_payload(self, payload) -> None:
        """Stream exactly ``payload_length`` bytes from the ``payload`` file object."""
        self._expect(Stage.PAYLOAD_LEN_DONE)
        remaining = self.payload_length
        while remaining:
            size = min(CHUNK_SIZE, remaining)
            try:
                chunk = read_exact(payload, size, "payload_bytes")
            except ShortReadError as exc:
                # report how far into the payload we actually got
                done = self.payload_length - remaining
                raise ShortReadError("payload_bytes", self.payload_length, done + exc.got) from None
            self._pack_field("payload_bytes", chunk)
            remaining -= size
        self._advance(Stage.PAYLOAD_DONE, "Encoding secret file data")

    def finish(self) -> int:
        """Copy every carrier byte we didn't touch, returns how many that was."""
        self._expect(Stage.PAYLOAD_DONE)
        tail = 0
        while True:
            chunk = self.source.read(CHUNK_SIZE * BITS_PER_BYTE)
            if not chunk:
                break
            write_all(self.sink, chunk, "remaining image data")
            tail += len(chunk)
        self._advance(Stage.FINISHED, "Copying left over image data")
        return tail


class FrameReader(_Framer):
    """
    Decode side: walks the carrier in ``source`` field by field.

    ``available`` is the number of carrier bytes after the header, when known.
    Decoded lengths that could never fit in what's left get rejected up front
    instead of running into a short read halfway through the payload.
    """

    def __init__(
        self,
        source,
        available=None,
        header_size: int = HEADER_SIZE,
        max_extension_len: int = MAX_EXTENSION_LEN,
        on_step=None,
    ):
        super().__init__(source, header_size, on_step)
        self.available = available
        self.max_extension_len = max_extension_len
        self.extension_length = None
        self.extension = None
        self.payload_length = None

    def _take(self, size: int, field: str) -> bytes:
        data = read_exact(self.source, size, field)
        if self.available is not None:
            self.available -= size
        return data

    def _check_fits(self, field: str, value: int, carrier_needed: int) -> None:
        if self.available is not None and carrier_needed > self.available:
            raise ImplausibleLengthError(field, value, self.available // BITS_PER_BYTE)

    def skip_header(self) -> None:
        self._expect(Stage.START)
        read_exact(self.source, self.header_size, "header")
        self._advance(Stage.HEADER_RELAYED, "Skipping image header")

    def read_signature(self, expected: bytes) -> bytes:
        self._expect(Stage.HEADER_RELAYED)
        found = unpack_bytes(self._take(len(expected) * BITS_PER_BYTE, "signature"))
        if found != expected:
            raise SignatureMismatchError(expected, found)
        self._advance(Stage.SIGNATURE_DONE, "Decoding signature")
        return found

    def read_extension_length(self) -> int:
        self._expect(Stage.SIGNATURE_DONE)
        length = unpack_int(self._take(INT_BITS, "extension_length"))
        if length > self.max_extension_len:
            raise ImplausibleLengthError("extension_length", length, self.max_extension_len)
        # the payload length field still has to come after the extension
        self._check_fits("extension_length", length, length * BITS_PER_BYTE + INT_BITS)
        self.extension_length = length
        self._advance(Stage.EXT_LEN_DONE, "Decoding extension length")
        return length

    def read_extension(self) -> str:
        self._expect(Stage.EXT_LEN_DONE)
        raw = unpack_bytes(self._take(self.extension_length * BITS_PER_BYTE, "extension_text"))
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError:
            raise InvalidExtensionError(raw.decode("latin-1")) from None
        self.extension = validate_extension(text)
        self._advance(Stage.EXT_TEXT_DONE, "Decoding extension")
        return self.extension

    def read_payload_length(self) -> int:
        self._expect(Stage.EXT_TEXT_DONE)
        length = unpack_int(self._take(INT_BITS, "payload_length"))
        self._check_fits("payload_length", length, length * BITS_PER_BYTE)
        self.payload_length = length
        self._advance(Stage.PAYLOAD_LEN_DONE, "Decoding secret file size")
        return length

    def read_payload(self, sink) -> int:
        """Unpack ``payload_length`` bytes into the ``sink`` file object."""
        self._expect(Stage.PAYLOAD_LEN_DONE)
        remaining = self.payload_length
        while remaining:
            size = min(CHUNK_SIZE, remaining)
            chunk = unpack_bytes(self._take(size * BITS_PER_BYTE, "payload_bytes"))
            write_all(sink, chunk, "payload_bytes")
            remaining -= size
        self._advance(Stage.PAYLOAD_DONE, "Decoding secret file data")
        return self.payload_length

    def finish(self) -> None:
        # nothing else to read, whatever is left in the carrier is just pixels
        self._expect(Stage.PAYLOAD_DONE)
        self._advance(Stage.FINISHED, "Done")
