# rt_intel/publisher.py
import requests
import logging
from typing import Any, Callable, Dict, Optional

from .utils.images import decode_data_uri, download_image, sniff_mime

logger = logging.getLogger('rt_intel.publisher')

TELEGRAM_API = "https://api.telegram.org"
SOURCE_LABEL = "المصدر الأصلي"
HASHTAGS = "#RT_Intelligence #عاجل"

TIER_EMBEDDED = "embedded"
TIER_REMOTE_URL = "remote_url"
TIER_REFETCH = "refetch"
TIER_TEXT = "text"


def build_caption(title: str, body: str, url: str) -> str:
    """
    Telegram HTML caption: bold title, body, source link, hashtags
    """
    return f"<b>{title}</b>\n\n{body}\n\n<a href=\"{url}\">{SOURCE_LABEL}</a>\n\n{HASHTAGS}"


class TelegramClient:
    """
    Minimal Bot API client. Every call returns a boolean (or None for getMe),
    transport errors and rejections are logged, never raised.
    """

    def __init__(self, token: str, chat_id: str, timeout: float = 20, session: Optional[requests.Session] = None):
        self.token = (token or "").strip()
        self.chat_id = (chat_id or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def _endpoint(self, method: str) -> str:
        return f"{TELEGRAM_API}/bot{self.token}/{method}"

    def _call(self, method: str, **kwargs) -> Optional[Dict[str, Any]]:
        try:
            resp = self.session.post(self._endpoint(method), timeout=self.timeout, **kwargs)
            data = resp.json()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Telegram {method} transport error: {e}")
            return None
        except ValueError:
            logger.warning(f"Telegram {method} returned non-JSON (status {resp.status_code})")
            return None

        if not isinstance(data, dict) or data.get("ok") is not True:
            description = data.get("description") if isinstance(data, dict) else data
            logger.warning(f"Telegram {method} rejected: {description}")
            return None
        return data

    def get_me(self) -> Optional[str]:
        """Returns the bot display name when the token is valid."""
        if not self.token:
            return None
        data = self._call("getMe")
        if not data:
            return None
        result = data.get("result") or {}
        return result.get("first_name") or result.get("username") or ""

    def send_photo_url(self, photo_url: str, caption: str) -> bool:
        payload = {"chat_id": self.chat_id, "photo": photo_url, "caption": caption, "parse_mode": "HTML"}
        return self._call("sendPhoto", json=payload) is not None

    def send_photo_upload(self, photo: bytes, caption: str, mime: Optional[str] = None,
                          filename: str = "news_image.jpg") -> bool:
        data = {"chat_id": self.chat_id, "caption": caption, "parse_mode": "HTML"}
        files = {"photo": (filename, photo, mime or sniff_mime(photo))}
        return self._call("sendPhoto", data=data, files=files) is not None

    def send_message(self, text: str) -> bool:
        payload = {"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"}
        return self._call("sendMessage", json=payload) is not None


class PublishPipeline:
    """
    Delivers one article, degrading across tiers:
    embedded image -> image by URL -> image re-fetched and uploaded -> text only.
    """

    def __init__(self, client: TelegramClient,
                 image_fetcher: Optional[Callable[[str], Optional[bytes]]] = None):
        self.client = client
        self.image_fetcher = image_fetcher or (
            lambda url: download_image(url, referer=None, timeout=client.timeout)
        )

    def deliver(self, article) -> Optional[str]:
        """Returns the name of the tier that succeeded, or None."""
        if not self.client.configured:
            logger.error("Telegram token or chat ID not configured")
            return None

        caption = build_caption(article.title, article.body, article.url)
        logger.info(f"Publishing article ID={article.id} (caption length: {len(caption)} chars)")

        # 1) Embedded image captured at scrape time
        if article.image_base64:
            decoded = decode_data_uri(article.image_base64)
            if decoded:
                data, mime = decoded
                if self.client.send_photo_upload(data, caption, mime=mime):
                    logger.info(f"Article ID={article.id} sent with embedded image")
                    return TIER_EMBEDDED
            logger.warning(f"Embedded image tier failed for ID={article.id}")

        image_url = (article.image_url or "").strip()
        if image_url.startswith("http"):
            # 2) Let Telegram fetch the image itself
            if self.client.send_photo_url(image_url, caption):
                logger.info(f"Article ID={article.id} sent with image URL")
                return TIER_REMOTE_URL
            logger.warning(f"Image URL tier failed for ID={article.id}, re-fetching image")

            # 3) Fetch the bytes ourselves and upload them
            data = self.image_fetcher(image_url)
            if data and self.client.send_photo_upload(data, caption):
                logger.info(f"Article ID={article.id} sent with re-fetched image")
                return TIER_REFETCH
            logger.warning(f"Re-fetch tier failed for ID={article.id}, falling back to text")

        # 4) Text only, so the article is never dropped
        if self.client.send_message(caption):
            logger.info(f"Article ID={article.id} sent as text only")
            return TIER_TEXT

        logger.error(f"Failed to publish article ID={article.id} on every tier")
        return None

    def publish(self, article) -> bool:
        return self.deliver(article) is not None


def pipeline_from_settings(settings: Dict[str, str], timeout: float = 20) -> PublishPipeline:
    return PublishPipeline(TelegramClient(settings.get("token", ""), settings.get("chat_id", ""), timeout=timeout))
