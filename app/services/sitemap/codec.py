"""Sitemap XML codec.

Converts between the ``<urlset>`` wire format and ``SitemapDocument``.

``decode`` keeps everything it does not model: attributes on ``<urlset>``
and ``<url>``, and unknown children of ``<url>`` (image/news/hreflang
extensions and the like), which are stored as standalone XML strings with
insignificant whitespace removed.  ``encode`` writes them back after the
four known fields, so ``decode(encode(doc)) == doc`` for any document this
codec produced.
"""

from __future__ import annotations

import copy
import xml.etree.ElementTree as ET
from typing import Optional

from pydantic import ValidationError

from app.core.exceptions import MalformedDocumentError
from app.models.sitemap.document import ChangeFreq
from app.models.sitemap.urlset import SitemapDocument, SitemapUrl

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

# Prefixes used when writing common sitemap extensions back out.
EXTENSION_NAMESPACES = {
    "image": "http://www.google.com/schemas/sitemap-image/1.1",
    "news": "http://www.google.com/schemas/sitemap-news/0.9",
    "video": "http://www.google.com/schemas/sitemap-video/1.1",
    "xhtml": "http://www.w3.org/1999/xhtml",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}

ET.register_namespace("", SITEMAP_NS)
for _prefix, _uri in EXTENSION_NAMESPACES.items():
    ET.register_namespace(_prefix, _uri)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

_FIELDS = ("loc", "lastmod", "changefreq", "priority")


def _qname(name: str) -> str:
    return f"{{{SITEMAP_NS}}}{name}"


def _local_name(tag: str) -> Optional[str]:
    """Return the sitemap-namespace local name of *tag*, or ``None``.

    Tags without a namespace are accepted too; some generators omit xmlns.
    """
    if tag.startswith(f"{{{SITEMAP_NS}}}"):
        return tag[len(SITEMAP_NS) + 2:]
    if not tag.startswith("{"):
        return tag
    return None


def _strip_insignificant_whitespace(elem: ET.Element) -> ET.Element:
    for node in elem.iter():
        if node.text is not None and not node.text.strip():
            node.text = None
        if node.tail is not None and not node.tail.strip():
            node.tail = None
    elem.tail = None
    return elem


def format_priority(value: float) -> str:
    """Render *value* with one fractional digit unless that would round it."""
    text = f"{value:.1f}"
    if float(text) != value:
        text = repr(float(value))
    return text


def decode(raw: str) -> SitemapDocument:
    """Parse a sitemap ``<urlset>`` into a ``SitemapDocument``.

    Raises:
        MalformedDocumentError: *raw* is not well-formed XML, is not a
            ``urlset``, or has an entry that fails validation.
    """
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise MalformedDocumentError(f"Sitemap is not well-formed XML: {exc}") from exc

    if _local_name(root.tag) != "urlset":
        raise MalformedDocumentError(f"Expected <urlset> root element, got <{root.tag}>")

    urls: list[SitemapUrl] = []
    seen: set[str] = set()
    for position, node in enumerate(root, start=1):
        if _local_name(node.tag) != "url":
            raise MalformedDocumentError(
                f"Unexpected element <{node.tag}> at position {position} in <urlset>"
            )
        url = _decode_url(node, position)
        if url.loc in seen:
            raise MalformedDocumentError(f"Duplicate <loc> in sitemap: {url.loc}")
        seen.add(url.loc)
        urls.append(url)

    return SitemapDocument(urls=urls, attributes=dict(root.attrib))


def _decode_url(node: ET.Element, position: int) -> SitemapUrl:
    fields: dict[str, str] = {}
    extra: list[str] = []
    for child in node:
        name = _local_name(child.tag)
        if name in _FIELDS and name not in fields:
            fields[name] = (child.text or "").strip()
        else:
            clean = _strip_insignificant_whitespace(copy.deepcopy(child))
            extra.append(ET.tostring(clean, encoding="unicode"))

    if not fields.get("loc"):
        raise MalformedDocumentError(f"<url> at position {position} has no <loc>")

    priority: Optional[float] = None
    if fields.get("priority"):
        try:
            priority = float(fields["priority"])
        except ValueError as exc:
            raise MalformedDocumentError(
                f"Invalid <priority> {fields['priority']!r} for {fields['loc']}"
            ) from exc

    try:
        return SitemapUrl(
            loc=fields["loc"],
            lastmod=fields.get("lastmod") or None,
            changefreq=fields.get("changefreq") or None,
            priority=priority,
            attributes=dict(node.attrib),
            extra=extra,
        )
    except ValidationError as exc:
        raise MalformedDocumentError(f"Invalid entry for {fields['loc']}: {exc}") from exc


def encode(document: SitemapDocument) -> str:
    """Serialise *document* as an indented UTF-8 sitemap string."""
    root = ET.Element(_qname("urlset"), document.attributes)
    for url in document.urls:
        node = ET.SubElement(root, _qname("url"), url.attributes)
        ET.SubElement(node, _qname("loc")).text = url.loc
        if url.lastmod is not None:
            ET.SubElement(node, _qname("lastmod")).text = url.lastmod
        if url.changefreq is not None:
            ET.SubElement(node, _qname("changefreq")).text = ChangeFreq(url.changefreq).value
        if url.priority is not None:
            ET.SubElement(node, _qname("priority")).text = format_priority(url.priority)
        for raw in url.extra:
            try:
                node.append(ET.fromstring(raw))
            except ET.ParseError as exc:
                raise MalformedDocumentError(
                    f"Extension element for {url.loc} is not well-formed: {exc}"
                ) from exc

    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"
