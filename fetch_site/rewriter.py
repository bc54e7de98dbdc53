"""Rewrite resource references in HTML to point at the local mirror."""

from __future__ import annotations

import posixpath

from bs4 import BeautifulSoup

from .content import iter_resource_attributes


def join_site_path(site_dirname: str, reference: str) -> str:
    """Join a reference under the site directory, treating ``/x`` as relative."""
    joined = posixpath.join(site_dirname, reference.lstrip("/"))
    return posixpath.normpath(joined)


def rewrite_html(html: str, site_dirname: str) -> str:
    """Point every non-``http`` image, stylesheet and script reference at ``site_dirname``."""
    soup = BeautifulSoup(html, "html.parser")
    for _, tag, attribute in iter_resource_attributes(soup):
        value = tag.get(attribute)
        if not isinstance(value, str) or not value or value.startswith("http"):
            continue
        tag[attribute] = join_site_path(site_dirname, value)
    return str(soup)
