from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any

import httpx

from snapspend.core.config import settings
from snapspend.modules.categories.service import DEFAULT_CATEGORY_NAMES

RECEIPT_PROMPT = (
    "You are a receipt OCR system. Your PRIMARY GOAL is to extract the TOTAL AMOUNT "
    "accurately.\n\n"
    "Look for these keywords on the receipt for the final amount:\n"
    '- "TOTAL", "Total", "Grand Total", "Net Total"\n'
    '- "Amount Payable", "Amount Due", "Bill Amount"\n'
    "- The LARGEST number on the receipt (usually at the bottom)\n\n"
    "Extract in this EXACT JSON format:\n\n"
    "{\n"
    '  "store_name": "store name from top of receipt",\n'
    '  "date": "YYYY-MM-DD",\n'
    '  "items": [{"description": "item name", "quantity": 1, "price": 0.00}],\n'
    '  "subtotal": 0.00,\n'
    '  "tax": 0.00,\n'
    '  "total": 0.00,\n'
    '  "category": "category"\n'
    "}\n\n"
    "CRITICAL RULES FOR TOTAL:\n"
    '1. Look for the word "TOTAL" or similar - this is the MOST IMPORTANT number\n'
    '2. If you see "₹500" or "Rs. 500" near "TOTAL", use 500\n'
    "3. The total is usually the last/bottom-most amount on the receipt\n"
    "4. If subtotal is 450 and tax is 50, then total MUST be 500\n"
    "5. Total should be >= subtotal\n"
    "6. Round to 2 decimal places\n\n"
    "CATEGORIES (match store to category):\n"
    "- Groceries: supermarkets, Big Bazaar, DMart, Reliance Fresh, vegetable shops\n"
    "- Dining: restaurants, cafes, Swiggy, Zomato, food delivery\n"
    "- Transportation: metro, taxi, Uber, Ola, parking\n"
    "- Shopping: clothing, electronics, Amazon, Flipkart, malls\n"
    "- Healthcare: pharmacies, medical stores, hospitals\n"
    "- Entertainment: movies, games, events\n"
    "- Utilities: phone, electricity, internet bills\n"
    "- Travel: hotels, flights, train tickets\n"
    "- Gas: ONLY vehicle fuel (petrol/diesel)\n"
    "- Other: anything else\n\n"
    "Use exactly one of: " + ", ".join(DEFAULT_CATEGORY_NAMES) + ".\n\n"
    "Return ONLY valid JSON, no extra text."
)

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]*)*?);base64,", re.I
)


class ExtractionBackendError(Exception):
    def __init__(self, backend_id: str, message: str) -> None:
        super().__init__(f"{backend_id}: {message}")
        self.backend_id = backend_id
        self.message = message


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data_b64: str


def decode_image_payload(image: str | bytes) -> ImagePayload:
    """
    Normalize a data-URI, bare base64 string, or raw bytes into inline image data.

    Raises ValueError for empty or undecodable payloads.
    """
    if isinstance(image, (bytes, bytearray)):
        if not image:
            raise ValueError("Empty image payload")
        return ImagePayload(
            mime_type=_sniff_mime(bytes(image)),
            data_b64=base64.b64encode(bytes(image)).decode("ascii"),
        )

    if not isinstance(image, str) or not image.strip():
        raise ValueError("Empty image payload")

    raw = image.strip()
    mime_type: str | None = None
    m = _DATA_URI_RE.match(raw)
    if m:
        mime_type = (m.group("mime") or "").lower() or None
        raw = raw[m.end() :]
    elif raw.startswith("data:"):
        raise ValueError("Image data-URI must be base64 encoded")

    try:
        body = base64.b64decode(raw, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Image payload is not valid base64") from e
    if not body:
        raise ValueError("Empty image payload")

    return ImagePayload(
        mime_type=mime_type or _sniff_mime(body),
        data_b64=base64.b64encode(body).decode("ascii"),
    )


def _sniff_mime(body: bytes) -> str:
    if body.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if body.startswith(b"GIF8"):
        return "image/gif"
    if body[:4] == b"RIFF" and body[8:12] == b"WEBP":
        return "image/webp"
    if body.startswith(b"%PDF"):
        return "application/pdf"
    return "image/jpeg"


def invoke_backend(backend_id: str, image: ImagePayload, prompt: str) -> str:
    """
    Ask one Gemini model to read the receipt image; returns its raw text answer.

    Any failure (configuration, transport, HTTP status, safety block, empty
    answer) raises ExtractionBackendError so callers can move on to the next model.
    """
    if not settings.gemini_api_key:
        raise ExtractionBackendError(backend_id, "Gemini API key is not configured")

    payload: dict[str, Any] = {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {
                        "inline_data": {
                            "mime_type": image.mime_type,
                            "data": image.data_b64,
                        }
                    },
                ],
            }
        ],
        "generationConfig": {"temperature": 0},
    }

    url = settings.gemini_base_url.rstrip("/") + f"/models/{backend_id}:generateContent"
    try:
        resp = httpx.post(
            url,
            params={"key": settings.gemini_api_key},
            json=payload,
            timeout=float(settings.extraction_timeout_seconds or 60.0),
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ExtractionBackendError(
            backend_id, f"HTTP {e.response.status_code}: {_error_message(e.response)}"
        ) from e
    except httpx.HTTPError as e:
        raise ExtractionBackendError(backend_id, f"{type(e).__name__}: {e}") from e

    try:
        raw = resp.json()
    except ValueError as e:
        raise ExtractionBackendError(backend_id, "Response was not JSON") from e

    return _response_text(backend_id, raw)


def _response_text(backend_id: str, raw: Any) -> str:
    if not isinstance(raw, dict):
        raise ExtractionBackendError(backend_id, "Unexpected response shape")

    feedback = raw.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise ExtractionBackendError(backend_id, f"Prompt blocked: {feedback['blockReason']}")

    candidates = raw.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ExtractionBackendError(backend_id, "No candidates in response")

    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    texts: list[str] = []
    for part in parts or []:
        if isinstance(part, dict) and isinstance(part.get("text"), str):
            texts.append(part["text"])
    text = "".join(texts).strip()
    if not text:
        reason = candidates[0].get("finishReason") if isinstance(candidates[0], dict) else None
        raise ExtractionBackendError(backend_id, f"Empty response (finishReason={reason})")
    return text


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])[:200]
    return resp.text[:200]
