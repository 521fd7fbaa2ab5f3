"""Category scraping with a headless browser.

Loads a crawl site's page in headless Chromium (Playwright), collects the
text and href of every element matching a title selector, and drops entries
that point back at the home page.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from crawler_api.config import get_settings

logger = logging.getLogger(__name__)

# Labels of home page links (matched case-insensitively, as substrings)
HOME_KEYWORDS = (
    "home",
    "homepage",
    "home page",
    "trang chủ",
    "trangchu",
    "trang-chu",
    "index",
    "🏠",
    "⌂",
)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class ScrapeError(Exception):
    """Raised when a page cannot be loaded or yields no usable category."""

    def __init__(self, message: str, url: str | None = None):
        self.message = message
        self.url = url
        super().__init__(self.message)


@dataclass(frozen=True)
class ScrapedElement:
    """Text content and href of one matched element."""

    text: str
    href: str = ""


ElementFetcher = Callable[[str, str], Awaitable[list[ScrapedElement]]]


def is_home_element(element: ScrapedElement) -> bool:
    """True if the element looks like a link back to the home page."""
    text = element.text.lower()
    if any(keyword in text for keyword in HOME_KEYWORDS):
        return True

    href = element.href.strip().lower()
    return href == "#" or href.strip("/") == ""


def select_category_titles(elements: list[ScrapedElement]) -> list[str]:
    """Titles of elements that are neither empty nor home links, in page order."""
    titles = []
    for index, element in enumerate(elements):
        if not element.text:
            logger.debug(f"Skipping element {index}: empty text")
            continue
        if is_home_element(element):
            logger.debug(
                f"Skipping home page element {index}: {element.text!r} (href: {element.href!r})"
            )
            continue
        titles.append(element.text)
    return titles


async def fetch_elements(url: str, selector: str) -> list[ScrapedElement]:
    """Load ``url`` in headless Chromium and read every ``selector`` match.

    Raises:
        ScrapeError: If the browser fails to launch or navigate.
    """
    settings = get_settings()

    try:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=settings.crawl_headless,
                args=BROWSER_ARGS,
            )
            try:
                page = await browser.new_page()
                await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=settings.crawl_nav_timeout_ms,
                )

                elements = []
                for handle in await page.query_selector_all(selector):
                    text = (await handle.text_content() or "").strip()
                    href = await handle.get_attribute("href") or ""
                    elements.append(ScrapedElement(text=text, href=href))
            finally:
                await browser.close()
    except PlaywrightError as e:
        raise ScrapeError(f"Crawl failed: {e.message}", url=url) from e

    logger.info(f"Matched {len(elements)} elements for {selector!r} on {url}")
    return elements


async def scrape_category_titles(
    url: str,
    title_selector: str,
    fetch: ElementFetcher = fetch_elements,
) -> list[str]:
    """All valid category titles on the page.

    Raises:
        ScrapeError: If nothing matches the selector or every match is filtered out.
    """
    elements = await fetch(url, title_selector)
    if not elements:
        raise ScrapeError(
            f"Crawl failed: No element found for selector: {title_selector}", url=url
        )

    titles = select_category_titles(elements)
    if not titles:
        raise ScrapeError(
            "Crawl failed: No valid category found - all elements are home page links or empty",
            url=url,
        )

    logger.info(f"Found {len(titles)} valid categories on {url}")
    return titles


async def scrape_first_category_title(
    url: str,
    title_selector: str,
    fetch: ElementFetcher = fetch_elements,
) -> str:
    """First valid category title on the page."""
    titles = await scrape_category_titles(url, title_selector, fetch=fetch)
    return titles[0]
