# rt_intel/rewriter.py
import json
import re
import time
import logging
from typing import Any, Dict, Iterable, List, Optional

import openai
from openai import OpenAI

from .models import DEFAULT_CATEGORY, DEFAULT_SEVERITY

logger = logging.getLogger('rt_intel.rewriter')

DISCOVERY_LIMIT = 15
AVOID_URLS_LIMIT = 30

REWRITE_SYSTEM_PROMPT = (
    "أنت محلل استخباراتي في غرفة أخبار عربية. أعد صياغة الخبر بأسلوب RT العربي: "
    "عنوان قوي ومباشر وعاجل، وتقرير مركز لا يتجاوز 70 كلمة. "
    "أجب بصيغة JSON فقط بالشكل: "
    '{"title": "...", "body": "...", "category": "...", "severity": "..."}'
)

THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

REQUIRED_DISCOVERY_FIELDS = ("url", "title", "body", "imageUrl")


def build_client(config) -> Optional[OpenAI]:
    api_key = config.get('OPENAI_API_KEY')
    if not api_key:
        logger.error("LLM API key not configured")
        return None
    return OpenAI(api_key=api_key, base_url=config.get('LLM_BASE_URL'),
                  timeout=config.get('LLM_TIMEOUT', 60))


def strip_reasoning(text: str) -> str:
    """Drops <think> blocks and markdown fences around the JSON payload."""
    text = THINK_RE.sub("", text or "")
    # A stray closing tag means the opening one was cut off, keep only what follows it
    if "</think>" in text.lower():
        text = re.split(r"</think>", text, flags=re.IGNORECASE)[-1]
    return FENCE_RE.sub("", text).strip()


def extract_json(text: str, opener: str = "{") -> Any:
    """
    Parses the first JSON value starting with ``opener``, None when nothing parses
    """
    text = strip_reasoning(text)
    decoder = json.JSONDecoder()
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text[start:])
            return value
        except ValueError:
            start = text.find(opener, start + 1)
    return None


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_rewrite(raw: str, title: str, body: str) -> Dict[str, str]:
    """
    Validates the rewrite payload, falling back to the original text per field
    """
    data = extract_json(raw)
    if not isinstance(data, dict):
        if raw:
            logger.warning("Rewrite response is not a JSON object, using original text")
        data = {}
    return {
        "title": _clean(data.get("title")) or title,
        "body": _clean(data.get("body")) or body,
        "category": _clean(data.get("category")) or DEFAULT_CATEGORY,
        "severity": _clean(data.get("severity")) or DEFAULT_SEVERITY,
    }


def parse_discovery_items(raw: Any, known_urls: Iterable[str] = ()) -> List[Dict[str, str]]:
    """
    Input filter for discovery results: a malformed item drops only itself
    """
    items = extract_json(raw, "[") if isinstance(raw, str) else raw
    if not isinstance(items, list):
        logger.warning("Discovery response is not a JSON array")
        return []

    seen = set(known_urls)
    accepted = []
    for item in items:
        if not isinstance(item, dict):
            continue
        fields = {key: _clean(item.get(key)) for key in REQUIRED_DISCOVERY_FIELDS}
        if not all(fields.values()):
            logger.info(f"Dropping incomplete discovery item: {item.get('url')!r}")
            continue
        if fields["url"] in seen:
            logger.info(f"Skipping duplicate URL: {fields['url']}")
            continue
        seen.add(fields["url"])
        fields["category"] = _clean(item.get("category")) or DEFAULT_CATEGORY
        fields["severity"] = _clean(item.get("severity")) or DEFAULT_SEVERITY
        accepted.append(fields)
    return accepted


def build_discovery_prompt(query: str, timeframe: str, avoid_urls: List[str]) -> str:
    return (
        f"مهمة استخباراتية عاجلة: ابحث في الويب المفتوح عن أحدث {DISCOVERY_LIMIT} خبراً "
        f"متعلقاً بـ \"{query}\" خلال {timeframe}.\n"
        "المطلوب من كل خبر:\n"
        "1. استخراج الرابط المباشر (URL) للخبر.\n"
        f"2. تجنب تكرار هذه الروابط: [{', '.join(avoid_urls)}].\n"
        "3. صياغة العنوان بأسلوب RT المثير (قوي، مباشر، عاجل).\n"
        "4. صياغة المحتوى بتقرير استخباراتي مركز (70 كلمة كحد أقصى).\n"
        "5. رابط صورة مباشر ينتهي بامتداد (jpg, jpeg, png) وليس رابط صفحة.\n"
        "6. تحديد مستوى التهديد والتصنيف.\n\n"
        "رجع النتيجة بدقة كـ JSON Array:\n"
        '[{"url": "string", "title": "string", "body": "string", '
        '"imageUrl": "string", "category": "string", "severity": "string"}]'
    )


def discover(query: str, timeframe: str, config, existing_urls: Iterable[str] = (),
             client: Optional[OpenAI] = None, max_retries: int = 3, delay: float = 2) -> List[Dict[str, str]]:
    """
    Web-search grounded discovery. Returns validated items, [] on any failure.
    """
    existing_urls = list(existing_urls)
    client = client or build_client(config)
    if client is None:
        return []

    prompt = build_discovery_prompt(query, timeframe, existing_urls[-AVOID_URLS_LIMIT:])
    logger.info(f"Running discovery for '{query}' ({timeframe})")

    for attempt in range(max_retries):
        try:
            response = client.responses.create(
                model=config.get('DISCOVERY_MODEL'),
                tools=[{"type": "web_search"}],
                input=prompt,
            )
            items = parse_discovery_items(response.output_text or "", existing_urls)
            logger.info(f"Discovery returned {len(items)} usable items")
            return items
        except openai.OpenAIError as e:
            logger.warning(f"Attempt {attempt+1}/{max_retries} - Discovery error: {e}")
            if attempt < max_retries - 1:
                time.sleep(delay)

    logger.error("Discovery failed after all retries")
    return []


def rewrite(title: str, body: str, config, client: Optional[OpenAI] = None,
            max_retries: int = 3, delay: float = 2) -> Dict[str, str]:
    """
    Rewrites a scraped article in house style.

    Never raises: without a client, after repeated API errors, or when the
    model answers with something that is not the expected JSON shape, the
    original title and body are echoed back with default tags.
    """
    fallback = parse_rewrite("", title, body)
    if not (title or body):
        logger.warning("Nothing to rewrite")
        return fallback

    client = client or build_client(config)
    if client is None:
        return fallback

    user_content = json.dumps({"title": title, "body": body}, ensure_ascii=False)
    for attempt in range(max_retries):
        try:
            completion = client.chat.completions.create(
                model=config.get('REWRITE_MODEL'),
                messages=[
                    {"role": "system", "content": REWRITE_SYSTEM_PROMPT},
                    {"role": "user", "content": user_content},
                ],
                temperature=0.6,
            )
            content = completion.choices[0].message.content or ""
            logger.info(f"Rewrite completed ({len(content)} chars)")
            return parse_rewrite(content, title, body)
        except openai.OpenAIError as e:
            logger.warning(f"Attempt {attempt+1}/{max_retries} - Rewrite error: {e}")
            if attempt < max_retries - 1:
                time.sleep(delay)

    logger.error("Rewrite failed after all retries, using original text")
    return fallback
