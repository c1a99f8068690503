# rt_intel/scraper.py

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.common.by import By
from selenium.common.exceptions import TimeoutException, WebDriverException
from webdriver_manager.chrome import ChromeDriverManager
from bs4 import BeautifulSoup
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional
import logging
import time

from .image_selector import SelectorSettings, select_best_image
from .utils.images import USER_AGENT, download_image, to_data_uri

logger = logging.getLogger('scraper')

# Content containers, tried in order
CONTENT_SELECTORS = [
    "article",
    '[class*="article-body"]',
    '[class*="article-content"]',
    '[class*="post-content"]',
    '[class*="entry-content"]',
    '[class*="story-body"]',
    '[class*="news-content"]',
    ".content",
    "main",
]

PARAGRAPH_MIN_LENGTH = 30
PARAGRAPH_STOP_MARKERS = ("©", "جميع الحقوق")

# Geometry of the headline and of every image, in document order
PAGE_GEOMETRY_SCRIPT = """
const h1 = document.querySelector('h1');
let headline = null;
if (h1) {
  const r = h1.getBoundingClientRect();
  headline = {text: (h1.innerText || '').trim(), top: r.top, height: r.height};
}
const images = Array.from(document.images).map((img, index) => {
  const r = img.getBoundingClientRect();
  const src = img.currentSrc || img.src || img.dataset.src || img.dataset.lazySrc || '';
  return {index: index, src: src, top: r.top, width: r.width, height: r.height};
});
return {headline: headline, images: images};
"""


@dataclass
class ScrapeResult:
    success: bool
    url: str = ""
    title: str = ""
    content: str = ""
    image_base64: str = ""
    original_image_url: str = ""
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_driver(page_timeout: int = 45):
    chrome_options = Options()
    chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1920,1080")
    chrome_options.add_argument("--disable-notifications")
    chrome_options.add_argument("--disable-extensions")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--disable-blink-features=AutomationControlled")
    chrome_options.add_argument("--lang=ar")
    chrome_options.add_argument(f"user-agent={USER_AGENT}")

    driver = webdriver.Chrome(service=Service(ChromeDriverManager().install()), options=chrome_options)
    driver.set_page_load_timeout(page_timeout)
    return driver


def extract_content(html: str, max_chars: int = 3000) -> str:
    """
    Collects the article paragraphs from the first matching content container
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for selector in CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if not container:
            continue
        texts = []
        for p in container.select("p"):
            text = p.get_text(strip=True)
            if len(text) > PARAGRAPH_MIN_LENGTH and not any(m in text for m in PARAGRAPH_STOP_MARKERS):
                texts.append(text)
        return "\n\n".join(texts)[:max_chars]
    return ""


def fetch_image_as_base64(image_url: str, page_url: Optional[str] = None, timeout: int = 20) -> Optional[str]:
    """
    Downloads an image (with the page as referer) and returns it as a data URI
    """
    if not image_url:
        return None
    data = download_image(image_url, referer=page_url, timeout=timeout)
    if not data:
        return None
    return to_data_uri(data)


def capture_image(driver, source_ref: int, image_url: str, page_url: str) -> str:
    """
    Screenshot of the chosen element, direct download as a fallback
    """
    try:
        element = driver.execute_script("return document.images[arguments[0]];", source_ref)
        if element is not None:
            return f"data:image/png;base64,{element.screenshot_as_base64}"
    except WebDriverException as e:
        logger.warning(f"[scraper] Screenshot failed, trying direct download: {e}")
    return fetch_image_as_base64(image_url, page_url) or ""


def inspect_page(driver, url: str, settle_seconds: float) -> Mapping[str, Any]:
    driver.get(url)

    # Let lazy images resolve
    time.sleep(settle_seconds)
    try:
        WebDriverWait(driver, 5).until(EC.presence_of_element_located((By.CSS_SELECTOR, "img[src]")))
    except TimeoutException:
        logger.info(f"[scraper] No images appeared on {url}")

    return driver.execute_script(PAGE_GEOMETRY_SCRIPT) or {}


def scrape_article(url: str, config: Optional[Mapping[str, Any]] = None, driver_factory=build_driver) -> ScrapeResult:
    """
    Renders a news page and recovers its headline, body text and lead image
    """
    config = config or {}
    settings = SelectorSettings.from_config(config)
    driver = None

    logger.info(f"[scraper] Scraping {url}")
    try:
        driver = driver_factory(config.get('SCRAPE_PAGE_TIMEOUT', 45))
        geometry = inspect_page(driver, url, config.get('SCRAPE_SETTLE_SECONDS', 3))

        headline = geometry.get("headline")
        images: List[Dict[str, Any]] = geometry.get("images") or []
        best = select_best_image(images, headline, settings)

        content = extract_content(driver.page_source, config.get('SCRAPE_CONTENT_MAX', 3000))

        image_base64 = ""
        original_image_url = ""
        if best:
            original_image_url = best.src
            logger.info(f"[scraper] Lead image {best.src} ({best.width:.0f}x{best.height:.0f})")
            image_base64 = capture_image(driver, best.source_ref, best.src, url)
        else:
            logger.info(f"[scraper] No lead image found on {url}")

        return ScrapeResult(
            success=True,
            url=url,
            title=(headline or {}).get("text", ""),
            content=content,
            image_base64=image_base64,
            original_image_url=original_image_url,
        )
    except Exception as e:
        logger.error(f"[scraper] Error scraping {url}: {e}", exc_info=True)
        return ScrapeResult(success=False, url=url, error=str(e))
    finally:
        if driver:
            driver.quit()
