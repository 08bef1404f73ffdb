"""QR codes for poem share links."""

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError

from errors import Internal


def qr_png(text: str, box_size: int = 8, border: int = 1) -> bytes:
    """PNG bytes of a QR code encoding `text`."""
    code = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    code.add_data(text)
    try:
        code.make(fit=True)
    except DataOverflowError as exc:
        raise Internal("Failed to generate QR code") from exc
    img = code.make_image(fill_color="#000000", back_color="#FFFFFF")
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def qr_data_url(text: str) -> str:
    return "data:image/png;base64," + base64.b64encode(qr_png(text)).decode("ascii")
