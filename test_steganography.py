# end-to-end tests for hiding / revealing real files

import os
import random

import pytest

from framing import (
    CarrierOpenError,
    ImplausibleLengthError,
    InsufficientCapacityError,
    InvalidArgumentsError,
    InvalidExtensionError,
    OutputOpenError,
    PayloadOpenError,
    SignatureMismatchError,
)
from lsb import HEADER_SIZE, required_carrier_bytes
from steganography import (
    decode_file,
    encode_file,
    extension_of,
    hide_file,
    image_capacity,
    output_name,
    reveal_file,
)


@pytest.fixture
def secret(tmp_path):
    path = tmp_path / "secret.txt"
    path.write_bytes(b"hi")
    return path


# ── the worked example ───────────────────────────────────────────────────────

def test_hi_in_a_ten_thousand_byte_carrier(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(10_000)
    stego = tmp_path / "stego.bmp"

    report = encode_file(str(carrier), str(secret), str(stego), signature="#*")
    assert report["required"] == 128
    assert report["usable"] == 10_000
    assert report["extension"] == ".txt"

    result = decode_file(str(stego), "#*", str(tmp_path / "output"))
    assert result["output"].endswith(".txt")
    with open(result["output"], "rb") as f:
        assert f.read() == b"hi"


def test_header_is_relayed_and_nothing_goes_missing(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(10_000)
    stego = tmp_path / "stego.bmp"
    report = encode_file(str(carrier), str(secret), str(stego))

    original = carrier.read_bytes()
    encoded = stego.read_bytes()
    assert encoded[:HEADER_SIZE] == original[:HEADER_SIZE]
    assert len(encoded) == len(original)
    assert HEADER_SIZE + report["required"] + report["tail_bytes"] == len(original)
    used = HEADER_SIZE + report["required"]
    assert encoded[used:] == original[used:]
    # inside the framed part only the last bits may differ
    assert all((a ^ b) <= 1 for a, b in zip(original, encoded))


def test_binary_payload_round_trip_with_a_real_bmp(carrier_bmp, tmp_path):
    rng = random.Random(7)
    payload = bytes(rng.randrange(256) for _ in range(1400))
    secret = tmp_path / "blob.tar.gz"
    secret.write_bytes(payload)
    stego = tmp_path / "stego.bmp"

    encode_file(str(carrier_bmp), str(secret), str(stego))
    result = decode_file(str(stego), output_base=str(tmp_path / "recovered.bin"))

    assert result["output"] == str(tmp_path / "recovered.tar.gz")
    assert result["payload_size"] == 1400
    with open(result["output"], "rb") as f:
        assert f.read() == payload


def test_payload_bigger_than_one_chunk(make_raw_carrier, tmp_path):
    rng = random.Random(3)
    payload = bytes(rng.randrange(256) for _ in range(10_000))
    secret = tmp_path / "data.bin"
    secret.write_bytes(payload)
    carrier = make_raw_carrier(required_carrier_bytes(2, 4, len(payload)) + 333)
    stego = tmp_path / "stego.bmp"

    report = encode_file(str(carrier), str(secret), str(stego))
    assert report["tail_bytes"] == 333
    result = decode_file(str(stego), output_base=str(tmp_path / "out"))
    with open(result["output"], "rb") as f:
        assert f.read() == payload


def test_explicit_extension_and_signature(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(5000)
    stego = tmp_path / "stego.bmp"
    encode_file(str(carrier), str(secret), str(stego), signature="STEG", extension=".md")
    result = decode_file(str(stego), "STEG", str(tmp_path / "notes"))
    assert result["output"] == str(tmp_path / "notes.md")


def test_capacity_boundary_on_disk(make_raw_carrier, secret, tmp_path):
    exact = make_raw_carrier(128, name="exact.bmp")
    encode_file(str(exact), str(secret), str(tmp_path / "ok.bmp"))
    assert decode_file(str(tmp_path / "ok.bmp"), output_base=str(tmp_path / "o"))["payload_size"] == 2

    short = make_raw_carrier(127, name="short.bmp")
    with pytest.raises(InsufficientCapacityError) as info:
        encode_file(str(short), str(secret), str(tmp_path / "nope.bmp"))
    assert (info.value.required, info.value.available) == (128, 127)
    # the check happens before the output is created
    assert not (tmp_path / "nope.bmp").exists()


def test_header_only_carrier_has_no_room(make_raw_carrier, secret, tmp_path):
    carrier = tmp_path / "tiny.bmp"
    carrier.write_bytes(b"BM" + b"\x00" * 20)
    with pytest.raises(InsufficientCapacityError) as info:
        encode_file(str(carrier), str(secret), str(tmp_path / "out.bmp"))
    assert info.value.available == 0


# ── failures ─────────────────────────────────────────────────────────────────

def test_wrong_signature_produces_no_output(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(2000)
    stego = tmp_path / "stego.bmp"
    encode_file(str(carrier), str(secret), str(stego), signature="AB")

    with pytest.raises(SignatureMismatchError):
        decode_file(str(stego), "XY", str(tmp_path / "output"))
    assert not (tmp_path / "output.txt").exists()
    assert not (tmp_path / "output").exists()


def test_plain_image_has_nothing_hidden(carrier_bmp, tmp_path):
    with pytest.raises(SignatureMismatchError):
        decode_file(str(carrier_bmp), "#*", str(tmp_path / "output"))


def test_truncated_stego_is_rejected_before_writing(make_raw_carrier, tmp_path):
    secret = tmp_path / "big.bin"
    secret.write_bytes(bytes(500))
    carrier = make_raw_carrier(6000)
    stego = tmp_path / "stego.bmp"
    encode_file(str(carrier), str(secret), str(stego))

    cut = tmp_path / "cut.bmp"
    cut.write_bytes(stego.read_bytes()[:3000])
    with pytest.raises(ImplausibleLengthError):
        decode_file(str(cut), output_base=str(tmp_path / "output"))
    assert not (tmp_path / "output.bin").exists()


def test_missing_files(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(1000)
    with pytest.raises(CarrierOpenError):
        encode_file(str(tmp_path / "nope.bmp"), str(secret), str(tmp_path / "o.bmp"))
    with pytest.raises(PayloadOpenError):
        encode_file(str(carrier), str(tmp_path / "nope.txt"), str(tmp_path / "o.bmp"))
    with pytest.raises(OutputOpenError):
        encode_file(str(carrier), str(secret), str(tmp_path / "no_dir" / "o.bmp"))
    with pytest.raises(CarrierOpenError):
        decode_file(str(tmp_path / "nope.bmp"))


def test_output_in_missing_directory_on_decode(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(1000)
    stego = tmp_path / "stego.bmp"
    encode_file(str(carrier), str(secret), str(stego))
    with pytest.raises(OutputOpenError):
        decode_file(str(stego), output_base=str(tmp_path / "no_dir" / "out"))


def test_refuses_to_overwrite_the_carrier(make_raw_carrier, secret):
    carrier = make_raw_carrier(1000)
    before = carrier.read_bytes()
    with pytest.raises(InvalidArgumentsError):
        encode_file(str(carrier), str(secret), str(carrier))
    assert carrier.read_bytes() == before


def test_refuses_to_overwrite_the_secret(make_raw_carrier, secret):
    carrier = make_raw_carrier(1000)
    with pytest.raises(InvalidArgumentsError):
        encode_file(str(carrier), str(secret), str(secret))
    assert secret.read_bytes() == b"hi"


@pytest.mark.parametrize("link", [os.link, os.symlink])
def test_refuses_an_output_linked_to_the_secret(make_raw_carrier, secret, tmp_path, link):
    carrier = make_raw_carrier(1000)
    alias = tmp_path / "alias.bmp"
    try:
        link(str(secret), str(alias))
    except (OSError, NotImplementedError):
        pytest.skip("links not supported here")
    with pytest.raises(InvalidArgumentsError):
        encode_file(str(carrier), str(secret), str(alias))
    assert secret.read_bytes() == b"hi"


def test_refuses_an_output_linked_to_the_carrier(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(1000)
    before = carrier.read_bytes()
    alias = tmp_path / "alias.bmp"
    try:
        os.symlink(str(carrier), str(alias))
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported here")
    with pytest.raises(InvalidArgumentsError):
        encode_file(str(carrier), str(secret), str(alias))
    assert carrier.read_bytes() == before


def test_secret_must_be_a_regular_file(make_raw_carrier, tmp_path):
    carrier = make_raw_carrier(1000)
    out = tmp_path / "o.bmp"
    with pytest.raises(PayloadOpenError, match="not a regular file"):
        encode_file(str(carrier), str(tmp_path), str(out))
    assert not out.exists()


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="no named pipes on this platform")
def test_secret_fifo_is_refused_without_blocking(make_raw_carrier, tmp_path):
    carrier = make_raw_carrier(1000)
    fifo = tmp_path / "pipe.txt"
    os.mkfifo(str(fifo))
    out = tmp_path / "o.bmp"
    with pytest.raises(PayloadOpenError, match="not a regular file"):
        encode_file(str(carrier), str(fifo), str(out))
    assert not out.exists()


def test_bad_signature_and_extension(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(1000)
    with pytest.raises(InvalidArgumentsError):
        encode_file(str(carrier), str(secret), str(tmp_path / "o.bmp"), signature="")
    with pytest.raises(InvalidExtensionError):
        encode_file(str(carrier), str(secret), str(tmp_path / "o.bmp"), extension=".é")
    with pytest.raises(InvalidExtensionError):
        encode_file(str(carrier), str(secret), str(tmp_path / "o.bmp"), extension="." + "x" * 300)
    assert not (tmp_path / "o.bmp").exists()


# ── naming helpers ───────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "path, expected",
    [
        ("secret.txt", ".txt"),
        ("dir.v2/notes.tar.gz", ".tar.gz"),
        (".bashrc", ".bashrc"),
        ("README", ""),
    ],
)
def test_extension_of(path, expected):
    assert extension_of(path) == expected


@pytest.mark.parametrize(
    "base, extension, expected",
    [
        ("output", ".txt", "output.txt"),
        ("report.old.pdf", ".txt", "report.txt"),
        ("output", "", "output"),
        (os.path.join("dir.d", "out"), ".png", os.path.join("dir.d", "out.png")),
    ],
)
def test_output_name(base, extension, expected):
    assert output_name(base, extension) == expected


# ── friendly wrappers ────────────────────────────────────────────────────────

def test_wrappers_report_success(make_raw_carrier, secret, tmp_path):
    carrier = make_raw_carrier(2000)
    stego = tmp_path / "stego.bmp"
    steps = []
    r = hide_file(str(carrier), str(secret), str(stego), on_step=steps.append)
    assert r["success"], r["message"]
    assert r["output"] == str(stego)
    assert len(steps) == 8   # capacity check + seven framing steps

    r = reveal_file(str(stego), output_base=str(tmp_path / "output"))
    assert r["success"], r["message"]
    assert r["payload_size"] == 2


def test_wrappers_report_failure(make_raw_carrier, secret, tmp_path):
    small = make_raw_carrier(10)
    r = hide_file(str(small), str(secret), str(tmp_path / "o.bmp"))
    assert not r["success"]
    assert "too small" in r["message"]

    r = reveal_file(str(small), signature="#*", output_base=str(tmp_path / "out"))
    assert not r["success"]
    assert "signature" in r["message"]


def test_image_capacity(carrier_bmp):
    info = image_capacity(str(carrier_bmp))
    assert info["success"]
    assert (info["width"], info["height"]) == (100, 40)
    assert info["format"] == "BMP"
    assert info["usable_bytes"] == 12_000
    assert info["capacity_bytes"] == 1490

    info = image_capacity(str(carrier_bmp), extension=".txt")
    assert info["capacity_bytes"] == 1486


def test_image_capacity_on_junk(tmp_path):
    junk = tmp_path / "junk.bmp"
    junk.write_bytes(b"definitely not an image")
    assert not image_capacity(str(junk))["success"]
