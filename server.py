# the flask server - same engine as cli.py, just over http
# every request gets its own temp folder so nothing is shared between requests,
# uploads, secrets and results each live in their own subfolder of it

import base64
import os
import sys
import tempfile
from io import BytesIO

try:
    from flask import Flask, request, jsonify
    from werkzeug.utils import secure_filename
except ImportError:
    print("[✗] Flask not installed. Run: pip install flask")
    sys.exit(1)

try:
    from PIL import Image
except ImportError:
    print("[✗] Pillow not installed. Run: pip install Pillow")
    sys.exit(1)

from steganography import (
    DEFAULT_OUTPUT_BASE,
    DEFAULT_SIGNATURE,
    DEFAULT_STEGO_NAME,
    hide_file,
    image_capacity,
    reveal_file,
)

HOST = "127.0.0.1"
PORT = 5050

app = Flask(__name__)


def _preview(path: str) -> str:
    # small jpeg thumbnail as a data url so the frontend can show the image
    with Image.open(path) as img:
        img = img.convert("RGB")
        img.thumbnail((400, 300))
        buf = BytesIO()
        img.save(buf, format="JPEG", quality=80)
    return f"data:image/jpeg;base64,{base64.b64encode(buf.getvalue()).decode()}"


def _read_b64(path: str) -> str:
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode()


def _missing(field: str):
    return jsonify({"success": False, "message": f"No {field} provided"}), 400


def _subdir(tmp: str, name: str) -> str:
    path = os.path.join(tmp, name)
    os.makedirs(path, exist_ok=True)
    return path


@app.route("/api/info", methods=["POST"])
def api_info():
    if "image" not in request.files:
        return _missing("image")

    file = request.files["image"]
    signature = request.form.get("signature") or DEFAULT_SIGNATURE
    extension = request.form.get("extension", "")

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(_subdir(tmp, "in"), "carrier.bmp")
        file.save(path)
        result = image_capacity(path, signature=signature, extension=extension)
        if not result["success"]:
            return jsonify(result), 422
        result["preview"] = _preview(path)
        result["filename"] = file.filename
        return jsonify(result)


@app.route("/api/encode", methods=["POST"])
def api_encode():
    if "image" not in request.files:
        return _missing("image")
    if "secret" not in request.files:
        return _missing("secret file")

    image = request.files["image"]
    secret = request.files["secret"]
    signature = request.form.get("signature") or DEFAULT_SIGNATURE

    with tempfile.TemporaryDirectory() as tmp:
        carrier_path = os.path.join(_subdir(tmp, "in"), "carrier.bmp")
        # keep the secret's real name, the extension gets embedded from it
        secret_name = secure_filename(secret.filename or "") or "secret"
        secret_path = os.path.join(_subdir(tmp, "secret"), secret_name)
        out_path = os.path.join(_subdir(tmp, "out"), DEFAULT_STEGO_NAME)
        image.save(carrier_path)
        secret.save(secret_path)

        result = hide_file(carrier_path, secret_path, out_path, signature=signature)
        if not result["success"]:
            return jsonify(result), 422

        stem = os.path.splitext(secure_filename(image.filename or "") or "image")[0]
        result["output"] = f"{stem}_stego.bmp"
        result["stego_image"] = f"data:image/bmp;base64,{_read_b64(out_path)}"
        result["preview"] = _preview(out_path)
        return jsonify(result)


@app.route("/api/decode", methods=["POST"])
def api_decode():
    if "image" not in request.files:
        return _missing("image")

    image = request.files["image"]
    signature = request.form.get("signature") or DEFAULT_SIGNATURE
    base = secure_filename(request.form.get("name", "")) or DEFAULT_OUTPUT_BASE

    with tempfile.TemporaryDirectory() as tmp:
        carrier_path = os.path.join(_subdir(tmp, "in"), "stego.bmp")
        image.save(carrier_path)
        output_base = os.path.join(_subdir(tmp, "out"), base)

        result = reveal_file(carrier_path, signature=signature, output_base=output_base)
        if not result["success"]:
            return jsonify(result), 422

        out_path = result["output"]
        result["output"] = os.path.basename(out_path)
        result["file"] = f"data:application/octet-stream;base64,{_read_b64(out_path)}"
        return jsonify(result)


if __name__ == "__main__":
    print("\n" + "═" * 55)
    print("  🔐  bmpstego server")
    print(f"  → API:   http://{HOST}:{PORT}/api/")
    print("  → Stop:  Ctrl + C")
    print("═" * 55 + "\n")
    app.run(host=HOST, port=PORT, debug=False)
