"""Select listing page URLs out of a sitemap document."""

import logging
from typing import Iterable, List
from urllib.parse import urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


def extract_links(sitemap_xml: str, keywords: Iterable[str]) -> List[str]:
    """Return page URLs (``<url><loc>``) whose path contains one of ``keywords``, in document order.

    Image and sitemap-index ``<loc>`` entries are not pages and are ignored.
    """
    needles = [keyword.lower() for keyword in keywords if keyword]
    soup = BeautifulSoup(sitemap_xml or "", "html.parser")

    urls: List[str] = []
    for loc in soup.select("url > loc"):
        url = loc.get_text(strip=True)
        if not url:
            continue
        path = urlparse(url).path.lower()
        if any(needle in path for needle in needles):
            urls.append(url)

    logger.debug("Sitemap yielded %d matching URLs", len(urls))
    return urls
