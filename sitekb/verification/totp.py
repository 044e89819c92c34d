"""Time-based one-time passwords (RFC 6238, HMAC-SHA1, 30 s, 6 digits).

Thin wrapper over pyotp with the conventions the verification flow needs:
missing or malformed input is False rather than an exception, and codes
spoken with spaces are accepted. Enrolment QR codes are drawn with qrcode.
"""

import base64
import io
import logging
import time

import pyotp
import qrcode
import qrcode.image.svg

logger = logging.getLogger(__name__)

PERIOD_SECONDS = 30
DIGITS = 6
DEFAULT_WINDOW = 1
SECRET_LENGTH = 32  # base32 characters, i.e. 20 bytes


def generate_secret() -> str:
    """Random base32 secret for a new authenticator enrolment."""
    return pyotp.random_base32(length=SECRET_LENGTH)


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret.replace(" ", ""), digits=DIGITS, interval=PERIOD_SECONDS)


def generate_code(secret: str, at: float | None = None) -> str:
    """Code for the time step containing `at` (default: now).

    Raises:
        ValueError: If the secret is not valid base32.
    """
    try:
        return _totp(secret).at(time.time() if at is None else at)
    except (ValueError, TypeError) as e:
        raise ValueError(f"invalid base32 secret: {e}") from e


def verify_code(
    secret: str | None,
    code: str | None,
    at: float | None = None,
    window: int = DEFAULT_WINDOW,
) -> bool:
    """Accept a code from the current step or up to `window` steps either side.

    A missing secret or code, or an unreadable secret, is simply False.
    """
    if not secret or not code:
        return False
    code = str(code).strip().replace(" ", "")
    if len(code) != DIGITS or not code.isdigit():
        return False

    try:
        return _totp(secret).verify(code, for_time=time.time() if at is None else at, valid_window=window)
    except (ValueError, TypeError):
        logger.warning("Rejected TOTP check against an unreadable secret")
        return False


def time_remaining(at: float | None = None) -> int:
    """Seconds until the current code rolls over."""
    now = time.time() if at is None else at
    return PERIOD_SECONDS - int(now % PERIOD_SECONDS)


def provisioning_uri(secret: str, account: str, issuer: str) -> str:
    """otpauth:// URI for enrolment in an authenticator app."""
    return _totp(secret).provisioning_uri(name=account, issuer_name=issuer)


def _qr(uri: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(border=2)
    qr.add_data(uri)
    qr.make(fit=True)
    return qr


def qr_data_url(uri: str) -> str:
    """SVG QR code for an otpauth URI, as a data: URL for web pages."""
    image = _qr(uri).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def qr_terminal(uri: str) -> str:
    """QR code for an otpauth URI drawn with block characters."""
    out = io.StringIO()
    _qr(uri).print_ascii(out=out)
    return out.getvalue()
