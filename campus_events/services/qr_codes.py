"""Check-in tokens: JSON payloads rendered as QR codes.

A token ties an event, a registrant and a random check-in id together.
Tokens are plain JSON so a scanner app can read them directly; when a
signing secret is configured an HMAC-SHA256 ``signature`` field is added
and verified on decode.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional

import qrcode
import structlog
from qrcode.constants import ERROR_CORRECT_M

from campus_events.config import CheckInConfig, get_config
from campus_events.models import utcnow
from campus_events.services.exceptions import (
    EventMismatchError,
    IncompleteTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    WrongTokenTypeError,
)

__all__ = ["CheckInCodec", "DecodedToken", "IssuedToken", "TOKEN_TYPE"]

logger = structlog.get_logger(__name__)

TOKEN_TYPE = "event_attendance"
SIGNATURE_FIELD = "signature"
QR_BORDER = 1


@dataclass(frozen=True)
class IssuedToken:
    check_in_id: str
    payload: str
    image: str  # data URL of the preview PNG


@dataclass(frozen=True)
class DecodedToken:
    event_id: str
    user_id: str
    check_in_id: str
    user_name: Optional[str] = None
    issued_at: Optional[str] = None


class CheckInCodec:
    """Issue, decode and render check-in tokens."""

    def __init__(
        self,
        *,
        preview_width: int = 256,
        download_width: int = 512,
        signing_secret: Optional[str] = None,
    ) -> None:
        self.preview_width = preview_width
        self.download_width = download_width
        self.signing_secret = signing_secret

    @classmethod
    def from_config(cls, config: Optional[CheckInConfig] = None) -> "CheckInCodec":
        settings = config or get_config().check_in
        return cls(
            preview_width=settings.preview_width,
            download_width=settings.download_width,
            signing_secret=settings.signing_secret,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def issue(self, event_id: Any, user_id: Any, user_name: str) -> IssuedToken:
        check_in_id = str(uuid.uuid4())
        data: Dict[str, Any] = {
            "type": TOKEN_TYPE,
            "eventId": str(event_id),
            "userId": str(user_id),
            "userName": user_name,
            "qrCodeId": check_in_id,
            "timestamp": utcnow().isoformat() + "Z",
        }
        if self.signing_secret:
            data[SIGNATURE_FIELD] = self._sign(data)
        payload = json.dumps(data)
        return IssuedToken(
            check_in_id=check_in_id,
            payload=payload,
            image=self.render_preview(payload),
        )

    def decode(self, raw: Any, expected_event_id: Any) -> DecodedToken:
        if not isinstance(raw, str) or not raw.strip():
            raise MalformedTokenError("Invalid QR code format")
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedTokenError("Invalid QR code format") from exc
        if not isinstance(data, dict):
            raise MalformedTokenError("Invalid QR code format")

        if data.get("type") != TOKEN_TYPE:
            raise WrongTokenTypeError("Invalid QR code type")

        if self.signing_secret:
            self._verify(data)

        embedded_event = data.get("eventId")
        if embedded_event in (None, "") or str(embedded_event) != str(expected_event_id):
            raise EventMismatchError("QR code is not for this event")

        user_id = data.get("userId")
        check_in_id = data.get("qrCodeId")
        if not user_id or not check_in_id:
            raise IncompleteTokenError("Invalid QR code data")

        return DecodedToken(
            event_id=str(embedded_event),
            user_id=str(user_id),
            check_in_id=str(check_in_id),
            user_name=data.get("userName"),
            issued_at=data.get("timestamp"),
        )

    def render_preview(self, payload: str) -> str:
        """Inline PNG of a payload as a data URL."""
        image = self._render_png(payload, self.preview_width)
        encoded = base64.b64encode(image).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def render_for_download(self, payload: str) -> bytes:
        """Print-quality PNG of a stored payload."""
        return self._render_png(payload, self.download_width)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _render_png(payload: str, width: int) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=1,
            border=QR_BORDER,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        qr.box_size = max(1, width // (qr.modules_count + 2 * QR_BORDER))
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def _sign(self, data: Dict[str, Any]) -> str:
        unsigned = {key: value for key, value in data.items() if key != SIGNATURE_FIELD}
        canonical = json.dumps(unsigned, sort_keys=True, separators=(",", ":"))
        digest = hmac.new(
            self.signing_secret.encode("utf-8"),
            canonical.encode("utf-8"),
            hashlib.sha256,
        )
        return digest.hexdigest()

    def _verify(self, data: Dict[str, Any]) -> None:
        provided = data.get(SIGNATURE_FIELD)
        if not isinstance(provided, str) or not hmac.compare_digest(provided, self._sign(data)):
            logger.warning("check_in_token_signature_rejected", event_id=data.get("eventId"))
            raise InvalidSignatureError("QR code signature is invalid")
