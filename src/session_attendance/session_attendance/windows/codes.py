"""Window check-in codes and their QR rendering."""

from __future__ import annotations

import io
import secrets
from typing import BinaryIO, Optional

import qrcode
from PIL import Image, UnidentifiedImageError

from ..core.constants import WINDOW_CODE_BYTES
from ..core.exceptions import ValidationError


def generate_code() -> str:
    """Fresh code for every opened window; never reused across windows."""
    return secrets.token_hex(WINDOW_CODE_BYTES).upper()


def normalize_code(value: str) -> str:
    return (value or "").strip().upper()


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def decode_qr_image(stream: BinaryIO) -> Optional[str]:
    """First QR payload found in an uploaded image, or None."""

    # pyzbar loads the native zbar library on import.
    from pyzbar.pyzbar import decode as pyzbar_decode

    try:
        img = Image.open(stream).convert("RGB")
    except UnidentifiedImageError:
        raise ValidationError("Uploaded file is not an image")
    decoded = pyzbar_decode(img)
    if not decoded:
        return None
    return decoded[0].data.decode("utf-8").strip()
