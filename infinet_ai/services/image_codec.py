"""Decoding provider image output and normalising inbound images."""

import asyncio
import base64
import binascii
import io
import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from infinet_ai.errors import ImageDecodeError, MediaError
from infinet_ai.logging_config import get_logger

logger = get_logger("image_codec")


@dataclass(frozen=True)
class ImageBytes:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ImageUrl:
    url: str


DecodedImage = Union[ImageBytes, ImageUrl]

MAGIC_NUMBERS = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)
URL_KEYS = ("url", "image", "image_url", "imageUrl", "output")
URL_RE = re.compile(r"https?://[^\s\"'<>]+")
DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)
# 8000x5000; well under Pillow's own bomb threshold
MAX_INPUT_PIXELS = 40_000_000


def sniff_image_type(data: bytes) -> Optional[str]:
    for magic, mime in MAGIC_NUMBERS:
        if data.startswith(magic):
            return mime
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _decode_text(text: str, depth: int) -> DecodedImage:
    stripped = text.strip()
    data_url = DATA_URL_RE.match(stripped)
    if data_url:
        try:
            return ImageBytes(base64.b64decode(data_url.group(2)), data_url.group(1))
        except (binascii.Error, ValueError) as exc:
            raise ImageDecodeError(f"Invalid data URL: {exc}") from exc
    if stripped.startswith(("http://", "https://")):
        return ImageUrl(stripped.split()[0])
    if stripped[:1] in ("{", "[", '"'):
        try:
            parsed = json.loads(stripped)
        except ValueError:
            parsed = None
        if parsed is not None:
            return decode_image_output(parsed, _depth=depth + 1)
    match = URL_RE.search(stripped)
    if match:
        return ImageUrl(match.group(0))
    raise ImageDecodeError("Text output contains no image URL")


def decode_image_output(output: Any, *, _depth: int = 0) -> DecodedImage:
    """Decode whatever an image provider returned, trying shapes in a fixed order:
    raw bytes (magic-number sniff, then as text), string (data URL, URL, JSON),
    list (first item), mapping (well-known URL keys)."""
    if _depth > 5:
        raise ImageDecodeError("Image output nested too deeply")

    if isinstance(output, (ImageBytes, ImageUrl)):
        return output

    if isinstance(output, (bytes, bytearray, memoryview)):
        data = bytes(output)
        mime = sniff_image_type(data)
        if mime:
            return ImageBytes(data, mime)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ImageDecodeError("Binary output is not a known image format") from exc
        return _decode_text(text, _depth)

    if isinstance(output, str):
        return _decode_text(output, _depth)

    if isinstance(output, (list, tuple)):
        if not output:
            raise ImageDecodeError("Image output list is empty")
        return decode_image_output(output[0], _depth=_depth + 1)

    if isinstance(output, dict):
        for key in URL_KEYS:
            value = output.get(key)
            if value:
                return decode_image_output(value, _depth=_depth + 1)
        raise ImageDecodeError(f"Image output mapping has none of {', '.join(URL_KEYS)}")

    raise ImageDecodeError(f"Unsupported image output type {type(output).__name__}")


async def download_image(
    url: str,
    *,
    timeout_seconds: float = 30.0,
    max_bytes: int = 16 * 1024 * 1024,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ImageBytes:
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True, transport=transport) as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        raise MediaError(f"Image download failed: {exc}") from exc

    if response.status_code != 200:
        raise MediaError(f"Image download failed with status {response.status_code}")
    data = response.content
    if not data:
        raise MediaError("Downloaded image is empty")
    if len(data) > max_bytes:
        raise MediaError(f"Downloaded image exceeds {max_bytes} bytes")

    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    mime = sniff_image_type(data) or (content_type if content_type.startswith("image/") else "image/png")
    return ImageBytes(data, mime)


async def resolve_image(decoded: DecodedImage, **download_kwargs) -> ImageBytes:
    if isinstance(decoded, ImageBytes):
        return decoded
    return await download_image(decoded.url, **download_kwargs)


def _normalize(data: bytes, dimension: int, max_pixels: int) -> bytes:
    try:
        with Image.open(io.BytesIO(data)) as source:
            width, height = source.size
            if width * height > max_pixels:
                raise MediaError(f"Attachment is {width}x{height}, over the {max_pixels} pixel limit")
            source = ImageOps.exif_transpose(source)
            fitted = ImageOps.contain(source.convert("RGBA"), (dimension, dimension))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise MediaError(f"Attachment is not a readable image: {exc}") from exc

    canvas = Image.new("RGBA", (dimension, dimension), (0, 0, 0, 0))
    offset = ((dimension - fitted.width) // 2, (dimension - fitted.height) // 2)
    canvas.paste(fitted, offset, fitted)

    buffer = io.BytesIO()
    canvas.save(buffer, format="PNG")
    return buffer.getvalue()


async def normalize_image(
    data: bytes,
    dimension: int = 1024,
    max_pixels: int = MAX_INPUT_PIXELS,
) -> ImageBytes:
    """Fit an image inside a square transparent canvas and re-encode as PNG.

    Images whose header declares more than ``max_pixels`` are refused before
    any pixel data is decoded.
    """
    if not data:
        raise MediaError("Image attachment is empty")
    png = await asyncio.to_thread(_normalize, data, dimension, max_pixels)
    logger.debug("Normalized image", extra={"context": {"input_bytes": len(data), "output_bytes": len(png)}})
    return ImageBytes(png, "image/png")
