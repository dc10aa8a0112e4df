import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..exceptions import ExternalServiceError
from .http_client import HTTPClient

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are an expert at extracting book information from book cover images.
Analyze the image and extract the book title and author name.
Respond with JSON in this exact format:
{"title": "Book Title", "author": "Author Name", "confidence": 0.95}

Guidelines:
- Extract the main title of the book (not subtitle)
- Extract the author's name if visible
- Set confidence between 0 and 1 based on text clarity
- If you can't find the title, set title to empty string
- If you can't find author, set author to empty string or null"""

DESCRIPTION_PROMPT = """Generate a detailed visual description for the book cover of {book}.
Focus on:
- Typography and title design
- Color scheme and visual style
- Key visual elements or imagery
- Overall aesthetic and mood

Respond with JSON in this format:
{{"description": "detailed cover description", "confidence": 0.85}}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class BookDetails:
    """Title and author read from a cover image"""
    title: str
    author: Optional[str]
    confidence: float  # Between 0 and 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "confidence": self.confidence
        }


@dataclass
class CoverDescription:
    """Generated textual description of a book cover"""
    description: Optional[str]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "confidence": self.confidence
        }


class HuggingFaceAPIError(ExternalServiceError):
    """Hugging Face inference call failed"""
    pass


class RateLimitExceeded(HuggingFaceAPIError):
    """Rate limit exceeded"""
    pass


def _clamp_confidence(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(1.0, score))


def _parse_json_content(content: str) -> Dict[str, Any]:
    """Parse the JSON object a chat model returned, tolerating code fences and chatter."""
    text = _FENCE_RE.sub("", content.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(text)
        if not match:
            raise HuggingFaceAPIError(f"Model response is not JSON: {content[:200]!r}")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise HuggingFaceAPIError(f"Model response is not JSON: {content[:200]!r}") from exc
    if not isinstance(data, dict):
        raise HuggingFaceAPIError("Model response is not a JSON object")
    return data


class HuggingFaceService:
    """Service for AI image and text processing through the Hugging Face inference router"""

    def __init__(self, http_client: HTTPClient, config: Optional[Settings] = None):
        config = config or default_settings
        self.http_client = http_client
        self.api_key = config.hugging_face_api_key
        self.base_url = config.hugging_face_base_url.rstrip("/")
        self.timeout = config.hugging_face_timeout
        self.enabled = config.enable_ai_features

        # Model endpoints
        self.vision_model = config.hugging_face_vision_model
        self.text_model = config.hugging_face_text_model

    def is_available(self) -> bool:
        return bool(self.api_key) and self.enabled

    async def _make_api_request(self, model: str, messages: List[Dict[str, Any]], max_tokens: int = 300) -> str:
        """Send a chat completion request and return the assistant message text."""
        if not self.is_available():
            logger.warning("Hugging Face API key not configured or AI features disabled")
            raise HuggingFaceAPIError("AI service is not configured")

        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": 0.1,
        }

        start_time = time.time()
        try:
            response = await self.http_client.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            logger.error(f"API request to {model} timed out after {self.timeout}s")
            raise HuggingFaceAPIError(f"Request to {model} timed out") from exc
        except httpx.RequestError as exc:
            logger.error(f"API request to {model} failed: {exc}")
            raise HuggingFaceAPIError(f"Request to {model} failed") from exc

        response_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"HuggingFace API call: model={model}, status={response.status_code}, time={response_time_ms}ms")

        if response.status_code == 429:
            logger.warning("Rate limit exceeded for Hugging Face API")
            raise RateLimitExceeded("Rate limit exceeded")
        if response.status_code != 200:
            logger.error(f"API request failed: {response.status_code} - {response.text[:500]}")
            raise HuggingFaceAPIError(f"Hugging Face returned HTTP {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise HuggingFaceAPIError("Unexpected response shape from Hugging Face") from exc
        if not content or not str(content).strip():
            raise HuggingFaceAPIError("Empty response from Hugging Face")
        return str(content)

    async def extract_details(self, image: bytes, content_type: str = "image/jpeg") -> BookDetails:
        """
        Read title and author from a book cover photo

        Args:
            image: Raw image bytes
            content_type: MIME type of the image

        Returns:
            BookDetails; raises HuggingFaceAPIError when extraction fails
        """
        if not image:
            raise HuggingFaceAPIError("No image data to analyze")

        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {"role": "system", "content": EXTRACTION_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": f"data:{content_type};base64,{encoded}"}},
                    {"type": "text", "text": "Extract the book title and author from this book cover image."},
                ],
            },
        ]

        content = await self._make_api_request(self.vision_model, messages)
        logger.info(f"Cover extraction response: {content[:200]}")
        data = _parse_json_content(content)

        title = data.get("title")
        if not isinstance(title, str):
            raise HuggingFaceAPIError("Model response has no title")
        author = data.get("author")
        author = author.strip() if isinstance(author, str) and author.strip() else None

        return BookDetails(
            title=title.strip(),
            author=author,
            confidence=_clamp_confidence(data.get("confidence")),
        )

    async def describe_cover(self, title: str, author: Optional[str] = None) -> CoverDescription:
        """Generate a visual description of a book's cover"""
        book = f'"{title}" by {author}' if author else f'"{title}"'
        messages = [{"role": "user", "content": DESCRIPTION_PROMPT.format(book=book)}]

        content = await self._make_api_request(self.text_model, messages, max_tokens=400)
        logger.info(f"Book cover description for {title!r}: {content[:200]}")
        data = _parse_json_content(content)

        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            raise HuggingFaceAPIError("Model response has no description")
        return CoverDescription(
            description=description.strip(),
            confidence=_clamp_confidence(data.get("confidence")),
        )
