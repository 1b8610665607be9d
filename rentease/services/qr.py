"""
QR rendering for payment intents.

Pure functions: a JSON payload in, an SVG data URL out. SVG output keeps the
service free of an imaging library.
"""

from __future__ import annotations

import base64
import io
import json
from datetime import datetime
from decimal import Decimal
from typing import Any

import qrcode
import qrcode.image.svg

from rentease.config import MERCHANT_NAME, PLATFORM_ACCOUNT

DATA_URL_PREFIX = "data:image/svg+xml;base64,"


def build_payload(
    payment_id: str, booking_id: int, amount: Decimal, expires_at: datetime
) -> dict[str, Any]:
    """
    Build the document the payer's wallet app scans.

    Returns:
        dict: payment_id, booking_id, amount, platform_account, merchant_name, expires_at
    """
    return {
        "payment_id": payment_id,
        "booking_id": booking_id,
        "amount": str(amount),
        "platform_account": PLATFORM_ACCOUNT,
        "merchant_name": MERCHANT_NAME,
        "expires_at": expires_at.isoformat(),
    }


def render_data_url(payload: dict[str, Any]) -> str:
    """Encode the payload as JSON and render it as a base64 SVG data URL."""
    image = qrcode.make(
        json.dumps(payload, separators=(",", ":")),
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    buffer = io.BytesIO()
    image.save(buffer)
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")
