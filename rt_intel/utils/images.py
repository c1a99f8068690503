# rt_intel/utils/images.py
import base64
import binascii
import logging
from typing import Optional, Tuple

import requests

logger = logging.getLogger('rt_intel.images')

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def sniff_mime(data: bytes) -> str:
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"


def to_data_uri(data: bytes, mime: Optional[str] = None) -> str:
    mime = mime or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(blob: str) -> Optional[Tuple[bytes, str]]:
    """
    Accepts a data URI or bare base64, returns (bytes, mime) or None
    """
    if not blob:
        return None
    mime = None
    payload = blob.strip()
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        mime = header[5:].split(";")[0] or None
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Invalid embedded image: {e}")
        return None
    if not data:
        return None
    return data, mime or sniff_mime(data)


def download_image(image_url: str, referer: Optional[str] = None, timeout: float = 20) -> Optional[bytes]:
    """
    Downloads raw image bytes. Without a referer no Referer header is sent.
    """
    headers = {"User-Agent": USER_AGENT, "Accept": "image/avif,image/webp,image/*,*/*;q=0.8"}
    if referer:
        headers["Referer"] = referer
    try:
        response = requests.get(image_url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Error downloading image {image_url}: {e}")
        return None
    return response.content or None
