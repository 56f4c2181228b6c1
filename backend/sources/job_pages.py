# sources/job_pages.py
from __future__ import annotations
import logging
import os

import requests
from bs4 import BeautifulSoup

UA = os.getenv("SCRAPER_UA", "Mozilla/5.0 (compatible; JobFlowBot/0.2)")
HEADERS = {"User-Agent": UA, "Accept": "text/html,application/xhtml+xml,*/*"}
TIMEOUT = 20
MAX_CHARS = 15000

LOG = logging.getLogger("jobflow.scrape")


def html_to_text(html: str, limit: int = MAX_CHARS) -> str:
    """Visible text of a page; scripts, styles and nav chrome removed."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript", "svg", "header", "footer", "nav"]):
        tag.decompose()
    text = " ".join(soup.get_text(" ").split())
    return text[:limit]


def fetch_page_text(url: str, session=None) -> str:
    """Job page text, or "" when the page cannot be fetched."""
    http = session or requests
    try:
        r = http.get(url, headers=HEADERS, timeout=TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as e:
        LOG.warning("page fetch failed for %s: %s", url, e)
        return ""
    text = html_to_text(r.text)
    LOG.info("fetched %s (%d chars of text)", url, len(text))
    return text
