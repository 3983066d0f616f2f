"""
QR code encoding for certificate verification payloads.

Encoding parameters are fixed: they never depend on the certificate being rendered.
"""

import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError

from opalforge.exceptions import ValidationError

QR_BOX_SIZE = 10
QR_BORDER = 4
QR_FILL_COLOR = "black"
QR_BACK_COLOR = "white"


def encode_png(payload: str) -> bytes:
    """Encodes `payload` into a PNG QR code image."""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=QR_BOX_SIZE,
        border=QR_BORDER,
    )
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        # qrcode 7 raises DataOverflowError, qrcode 8 a ValueError for version > 40
        raise ValidationError("QR payload is too long to encode.") from e

    img = qr.make_image(fill_color=QR_FILL_COLOR, back_color=QR_BACK_COLOR)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def encode_data_uri(payload: str) -> str:
    """Encodes `payload` as a QR code and returns it as a `data:image/png` URI."""
    return "data:image/png;base64," + base64.b64encode(encode_png(payload)).decode("ascii")
