"""Favicon discovery.

Two flavours:

* :func:`favicon_for` derives an icon URL for any link from its hostname
  via the configured icon service.  It never raises; an unparsable URL
  simply has no icon.
* :func:`page_favicon` finds the icon a page declares for itself, falling
  back to ``<origin>/favicon.ico``.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote, urljoin, urlsplit

from bs4 import BeautifulSoup

from cascade.config import settings

logger = logging.getLogger(__name__)

_ICON_RELS = ("icon", "apple-touch-icon")


def hostname_of(url: Optional[str]) -> Optional[str]:
    """Return the hostname of *url*, or ``None`` if it has none."""
    if not url:
        return None
    try:
        return urlsplit(url.strip()).hostname
    except ValueError:
        return None


def favicon_for(url: Optional[str]) -> Optional[str]:
    """Icon-service URL for the host of *url*, or ``None``."""
    host = hostname_of(url)
    if not host:
        return None
    return settings.favicon_service.format(host=quote(host, safe=".-:"))


def _origin(page_url: str) -> str:
    parts = urlsplit(page_url)
    return f"{parts.scheme}://{parts.netloc}"


def page_favicon(html: Optional[str], page_url: str) -> str:
    """Return the absolute URL of the icon declared by a page.

    ``<link rel~="icon">`` wins over ``<link rel~="apple-touch-icon">``;
    without either (or without any HTML) the conventional
    ``/favicon.ico`` at the page origin is assumed.
    """
    fallback = f"{_origin(page_url)}/favicon.ico"
    if not html:
        return fallback

    soup = BeautifulSoup(html, "html.parser")
    for rel in _ICON_RELS:
        for link in soup.find_all("link", href=True):
            rels = link.get("rel") or []
            if isinstance(rels, str):
                rels = rels.split()
            if rel in (r.lower() for r in rels):
                return urljoin(page_url, link["href"])
    return fallback
