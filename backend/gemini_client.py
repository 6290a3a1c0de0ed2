import base64
import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from config.settings import settings

from .errors import ImageGenerationError, MissingCredentialError
from .model import EncodedImage

logger = logging.getLogger(__name__)


def build_request_payload(images: Sequence[EncodedImage], prompt: str) -> Dict[str, Any]:
    """
    generateContent body: every image as an inline_data part, in order,
    then the text prompt, plus the fixed aspect ratio / size hints.
    """
    parts = [
        {"inline_data": {"mime_type": img.mime_type, "data": img.to_base64()}}
        for img in images
    ]
    parts.append({"text": prompt})
    return {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {
            "responseModalities": ["TEXT", "IMAGE"],
            "imageConfig": {
                "aspectRatio": settings.ASPECT_RATIO,
                "imageSize": settings.IMAGE_SIZE,
            },
        },
    }


def extract_first_image(response_json: Dict[str, Any]) -> Optional[EncodedImage]:
    """
    Take the first inline image part of the first candidate.
    Returns None when the model answered with text only.
    """
    candidates = response_json.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        # REST answers in camelCase; accept snake_case as well
        inline = part.get("inlineData") or part.get("inline_data")
        if not inline or not inline.get("data"):
            continue
        mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
        return EncodedImage(data=base64.b64decode(inline["data"]), mime_type=mime_type)
    return None


def _error_detail(r: httpx.Response) -> str:
    try:
        error = r.json().get("error") or {}
        if error.get("message"):
            return error["message"]
    except ValueError:
        pass
    return r.text[:300]


async def send_generate_request(
    payload: Dict[str, Any],
    api_key: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    POST the payload to models/{model}:generateContent and return the JSON body.
    """
    url = f"{settings.GEMINI_API_URL.rstrip('/')}/models/{settings.GEMINI_MODEL}:generateContent"
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT, transport=transport) as client:
        r = await client.post(url, json=payload, headers=headers)

        if r.status_code != 200:
            detail = _error_detail(r)
            logger.error(f"[GeminiClient] HTTP {r.status_code} from {settings.GEMINI_MODEL}: {detail}")
            raise ImageGenerationError(f"Gemini returned HTTP {r.status_code}: {detail}")

        return r.json()


async def generate_image(
    images: Sequence[EncodedImage],
    prompt: str,
    api_key: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> EncodedImage:
    """
    One model call: image(s) + prompt in, one image out.
    Raises ImageGenerationError when the response carries no image.
    """
    if not api_key:
        raise MissingCredentialError("Gemini API key is not configured.")

    payload = build_request_payload(images, prompt)
    logger.info(f"[GeminiClient] Sending {len(images)} image(s) to {settings.GEMINI_MODEL}")
    data = await send_generate_request(payload, api_key, transport=transport)

    image = extract_first_image(data)
    if image is None:
        raise ImageGenerationError("The model did not produce an image.")
    logger.info(f"[GeminiClient] Got {image.mime_type} image, {len(image.data)} bytes")
    return image
