# main file
# hides a whole secret file inside a 24-bit .bmp by swapping out the last bit
# of the pixel bytes, and gets it back out again byte for byte
#
# the bmp header (first 54 bytes) is copied over as-is, we never look inside it.
# after that every pixel byte carries exactly one bit of the framed stream
# (see framing.py), and whatever pixel bytes we don't need are copied untouched

import os
import stat
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from framing import (
    MAX_EXTENSION_LEN,
    CarrierOpenError,
    FrameReader,
    FrameWriter,
    InsufficientCapacityError,
    InvalidArgumentsError,
    InvalidExtensionError,
    OutputOpenError,
    PayloadOpenError,
    StegoError,
    validate_extension,
)
from lsb import HEADER_SIZE, MAX_UINT32, check_capacity, max_payload_bytes, required_carrier_bytes

DEFAULT_SIGNATURE = "#*"            # the "magic string" both sides agree on
DEFAULT_STEGO_NAME = "stego_img.bmp"
DEFAULT_OUTPUT_BASE = "output"      # decoded extension gets tacked onto this


@dataclass(frozen=True)
class FrameLayout:
    """All the sizes for one encode, worked out once before anything is written."""
    signature: bytes
    extension: bytes
    payload_size: int

    @property
    def required(self) -> int:
        return required_carrier_bytes(len(self.signature), len(self.extension), self.payload_size)

    def fits(self, usable_bytes: int) -> bool:
        return check_capacity(
            usable_bytes, len(self.signature), len(self.extension), self.payload_size
        )


def _signature_bytes(signature: str) -> bytes:
    if not signature:
        raise InvalidArgumentsError("Signature cannot be empty")
    return signature.encode("utf-8")


def plan_layout(signature: str, extension: str, payload_size: int) -> FrameLayout:
    validate_extension(extension)
    if len(extension) > MAX_EXTENSION_LEN:
        raise InvalidExtensionError(extension)
    if payload_size > MAX_UINT32:
        raise InvalidArgumentsError(f"Secret file is too large to frame: {payload_size} bytes")
    return FrameLayout(_signature_bytes(signature), extension.encode("ascii"), payload_size)


def extension_of(path: str) -> str:
    # everything from the first dot of the file name, so notes.tar.gz -> .tar.gz
    name = os.path.basename(path)
    dot = name.find(".")
    return name[dot:] if dot != -1 else ""


def output_name(base: str, extension: str) -> str:
    # drop whatever suffix the base already has and put the decoded one on instead
    head, name = os.path.split(base)
    dot = name.find(".")
    if dot != -1:
        name = name[:dot]
    return os.path.join(head, name + extension)


# ──────────────────────────────────────────────────────────────────────────────
# Carrier adapter - plain file plumbing around the framer
# ──────────────────────────────────────────────────────────────────────────────

def _open(path, mode, error_cls):
    try:
        return open(path, mode)
    except OSError as exc:
        raise error_cls(path, exc) from exc


def _size_of(stream) -> int:
    return os.fstat(stream.fileno()).st_size


def _same_file(a, b) -> bool:
    if os.path.abspath(a) == os.path.abspath(b):
        return True
    # catches symlinks and hard links, only works once both exist
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def _check_regular(path) -> None:
    # a fifo or device has no size up front, so we can't frame it
    try:
        mode = os.stat(path).st_mode
    except OSError as exc:
        raise PayloadOpenError(path, exc) from exc
    if not stat.S_ISREG(mode):
        raise PayloadOpenError(path, reason="not a regular file")


def _discard(path) -> None:
    # half written output is useless, don't leave it lying around
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def usable_bytes(size: int) -> int:
    """Carrier bytes left for the framed stream once the header is set aside."""
    return max(size - HEADER_SIZE, 0)


def encode_file(
    carrier_path: str,
    payload_path: str,
    output_path: str = DEFAULT_STEGO_NAME,
    signature: str = DEFAULT_SIGNATURE,
    extension: Optional[str] = None,
    on_step=None,
) -> dict:
    """
    Hide ``payload_path`` inside ``carrier_path`` and write the result to
    ``output_path``.

    The capacity check happens before the output file is even created. If
    anything fails after that, the partial output is removed and the error is
    re-raised.

    Returns a small report dict (sizes, extension used, output path).
    """
    if _same_file(carrier_path, output_path):
        raise InvalidArgumentsError("Output image must be a different file than the carrier")
    if _same_file(payload_path, output_path):
        raise InvalidArgumentsError("Output image must be a different file than the secret file")
    _check_regular(payload_path)
    if extension is None:
        extension = extension_of(payload_path)

    with _open(carrier_path, "rb", CarrierOpenError) as carrier, \
            _open(payload_path, "rb", PayloadOpenError) as payload:
        usable = usable_bytes(_size_of(carrier))
        layout = plan_layout(signature, extension, _size_of(payload))
        if not layout.fits(usable):
            raise InsufficientCapacityError(layout.required, usable)
        if on_step:
            on_step(f"Checking {carrier_path} capacity to handle {payload_path}")

        sink = _open(output_path, "wb", OutputOpenError)
        try:
            with sink:
                writer = FrameWriter(carrier, sink, on_step=on_step)
                writer.relay_header()
                writer.write_signature(layout.signature)
                writer.write_extension_length(len(layout.extension))
                writer.write_extension(layout.extension)
                writer.write_payload_length(layout.payload_size)
                writer.write_payload(payload)
                tail = writer.finish()
        except (StegoError, OSError):
            _discard(output_path)
            raise

    return {
        "output": output_path,
        "signature": signature,
        "extension": extension,
        "payload_size": layout.payload_size,
        "required": layout.required,
        "usable": usable,
        "tail_bytes": tail,
    }


def decode_file(
    carrier_path: str,
    signature: str = DEFAULT_SIGNATURE,
    output_base: str = DEFAULT_OUTPUT_BASE,
    on_step=None,
) -> dict:
    """
    Pull the hidden file back out of ``carrier_path``.

    The signature is checked right after it is read; on a mismatch nothing
    else is decoded and no output file is created. The recovered file is
    written to ``output_base`` with its suffix replaced by the decoded one.
    """
    expected = _signature_bytes(signature)

    with _open(carrier_path, "rb", CarrierOpenError) as carrier:
        reader = FrameReader(carrier, available=usable_bytes(_size_of(carrier)), on_step=on_step)
        reader.skip_header()
        reader.read_signature(expected)
        reader.read_extension_length()
        extension = reader.read_extension()
        reader.read_payload_length()

        output_path = output_name(output_base, extension)
        if _same_file(carrier_path, output_path):
            raise InvalidArgumentsError("Decoded file would overwrite the carrier image")
        if on_step:
            on_step(f"Output file with decoded extension: {output_path}")

        sink = _open(output_path, "wb", OutputOpenError)
        try:
            with sink:
                size = reader.read_payload(sink)
        except (StegoError, OSError):
            _discard(output_path)
            raise
        reader.finish()

    return {"output": output_path, "extension": extension, "payload_size": size}


# ──────────────────────────────────────────────────────────────────────────────
# Friendly wrappers - these never blow up on a normal failure, they hand back
# a dict with success + message so the cli and the web server can just show it
# ──────────────────────────────────────────────────────────────────────────────

def hide_file(
    image_path: str,
    secret_path: str,
    output_path: str = DEFAULT_STEGO_NAME,
    signature: str = DEFAULT_SIGNATURE,
    on_step=None,
) -> dict:
    try:
        report = encode_file(image_path, secret_path, output_path, signature, on_step=on_step)
    except StegoError as exc:
        return {"success": False, "message": str(exc)}
    except OSError as exc:
        return {"success": False, "message": f"Error: {exc}"}
    return {"success": True, "message": "Secret file successfully hidden in image! ✓", **report}


def reveal_file(
    image_path: str,
    signature: str = DEFAULT_SIGNATURE,
    output_base: str = DEFAULT_OUTPUT_BASE,
    on_step=None,
) -> dict:
    try:
        report = decode_file(image_path, signature, output_base, on_step=on_step)
    except StegoError as exc:
        return {"success": False, "message": str(exc)}
    except OSError as exc:
        return {"success": False, "message": f"Error: {exc}"}
    return {"success": True, "message": "Secret file extracted successfully! ✓", **report}


def image_capacity(image_path: str, signature: str = DEFAULT_SIGNATURE, extension: str = "") -> dict:
    # tells you how big a secret file this image can swallow
    # width/height/mode are just for show, the real number comes from the file size
    try:
        with Image.open(image_path) as img:
            w, h = img.size
            mode = img.mode
            fmt = img.format
        usable = usable_bytes(os.path.getsize(image_path))
        layout = plan_layout(signature, extension, 0)
    except StegoError as exc:
        return {"success": False, "message": str(exc)}
    except OSError as exc:
        return {"success": False, "message": str(exc)}
    return {
        "success": True,
        "width": w,
        "height": h,
        "mode": mode,
        "format": fmt,
        "usable_bytes": usable,
        "overhead_bytes": layout.required,
        "capacity_bytes": max_payload_bytes(usable, len(layout.signature), len(layout.extension)),
    }
