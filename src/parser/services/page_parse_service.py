from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from auditor.model import Finding, Severity
from crawler.utils.url_utils import UrlUtils
from parser.exceptions import ParseError
from parser.model import AnchorInfo, Heading, ImageInfo, PageDocument, RobotsDirectives

logger = logging.getLogger(__name__)

_CHARSET_PATTERN = re.compile(rb'<meta[^>]+charset=["\']?\s*([a-zA-Z0-9_\-]+)', re.IGNORECASE)
_LD_JSON_TYPE = re.compile(r'^\s*application/ld\+json\s*$', re.IGNORECASE)
_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def collapse_whitespace(text: Optional[str]) -> str:
    return " ".join((text or "").split())


class ParseResult(BaseModel):
    document: PageDocument
    findings: List[Finding] = Field(default_factory=list)


class PageParseService:
    """
    A specialized extraction service for retrieving SEO metadata from one HTML page.
    Every extractor is tolerant: a malformed fragment only affects its own field.
    """

    def __init__(self, page_content: str, base_url: str, internal_hosts: Iterable[str] = ()):
        if not page_content or not page_content.strip():
            raise ValueError("HTML content cannot be empty.")
        self.soup = BeautifulSoup(page_content, "html.parser")
        self.page_url = base_url
        self.base_url = self._effective_base(base_url)
        self.internal_hosts = UrlUtils.normalize_hosts(internal_hosts)

    def _effective_base(self, page_url: str) -> str:
        """Honours <base href> when present."""
        base_tag = self.soup.find("base", href=True)
        if base_tag:
            href = (base_tag.get("href") or "").strip()
            if href:
                return urljoin(page_url, href)
        return page_url

    def _find_meta(self, attr: str, value: str):
        pattern = re.compile(rf"^\s*{re.escape(value)}\s*$", re.IGNORECASE)
        return self.soup.find("meta", attrs={attr: pattern})

    # -------- SEO & Meta Extraction --------

    def extract_page_title(self) -> Optional[str]:
        """Retrieves the <title> text; None when the tag is absent."""
        scope = self.soup.head or self.soup
        el = scope.find("title") or self.soup.find("title")
        return collapse_whitespace(el.get_text(" ")) if el else None

    def extract_meta_description(self) -> Optional[str]:
        """Retrieves the content of the <meta name='description'> tag."""
        meta = self._find_meta("name", "description")
        return collapse_whitespace(meta.get("content")) if meta else None

    def extract_canonical_tag(self) -> Optional[str]:
        """Retrieves the raw href of the <link rel='canonical'> tag."""
        for link in self.soup.find_all("link", href=True):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if any(r.lower() == "canonical" for r in rel):
                return (link.get("href") or "").strip()
        return None

    def extract_lang(self) -> Optional[str]:
        html = self.soup.find("html")
        if not html:
            return None
        lang = (html.get("lang") or html.get("xml:lang") or "").strip()
        return lang or None

    def extract_headings(self) -> List[Heading]:
        """Returns every h1-h6 in document order."""
        out: List[Heading] = []
        for tag in self.soup.find_all(_HEADING_TAGS):
            out.append(Heading(level=int(tag.name[1]), text=collapse_whitespace(tag.get_text(" "))))
        return out

    # -------- Social & Technical Metadata --------

    def extract_robots_meta(self) -> Optional[RobotsDirectives]:
        """Parses the robots directives from meta tags."""
        meta = self._find_meta("name", "robots")
        if not meta:
            return None
        return RobotsDirectives.from_content(meta.get("content") or "")

    def extract_open_graph_tags(self) -> Dict[str, str]:
        """Extracts all Open Graph (og:) properties for social sharing analysis."""
        og: Dict[str, str] = {}
        for tag in self.soup.find_all("meta"):
            prop = (tag.get("property") or "").strip().lower()
            if prop.startswith("og:") and prop not in og:
                og[prop] = collapse_whitespace(tag.get("content"))
        return og

    def extract_twitter_tags(self) -> Dict[str, str]:
        tw: Dict[str, str] = {}
        for tag in self.soup.find_all("meta"):
            name = (tag.get("name") or tag.get("property") or "").strip().lower()
            if name.startswith("twitter:") and name not in tw:
                tw[name] = collapse_whitespace(tag.get("content"))
        return tw

    def extract_structured_data(self) -> Tuple[List[Dict[str, Any]], List[Tuple[int, str]]]:
        """
        Parses JSON-LD blocks.

        Returns the list of structured-data objects (top-level arrays and
        @graph containers flattened) and a list of (block index, error) for
        blocks that are not valid structured data.
        """
        data: List[Dict[str, Any]] = []
        errors: List[Tuple[int, str]] = []

        scripts = self.soup.find_all("script", attrs={"type": _LD_JSON_TYPE})
        for index, script in enumerate(scripts):
            txt = script.string or script.get_text() or ""
            if not txt.strip():
                continue
            try:
                payload = json.loads(txt)
            except ValueError as e:
                errors.append((index, f"Invalid JSON: {e}"))
                continue
            except RecursionError:
                errors.append((index, "Invalid JSON: nesting too deep"))
                continue

            items = payload if isinstance(payload, list) else [payload]
            block_items: List[Dict[str, Any]] = []
            block_error: Optional[str] = None
            for item in items:
                if not isinstance(item, dict):
                    block_error = f"Expected a JSON object, got {type(item).__name__}"
                    break
                if isinstance(item.get("@graph"), list):
                    for node in item["@graph"]:
                        if isinstance(node, dict) and node.get("@type"):
                            block_items.append(node)
                        else:
                            block_error = "@graph entry without @type"
                            break
                    if block_error:
                        break
                    continue
                if not item.get("@type"):
                    block_error = "Missing @type"
                    break
                block_items.append(item)

            if block_error:
                errors.append((index, block_error))
            else:
                data.extend(block_items)

        return data, errors

    # -------- Image Extraction Logic --------

    @staticmethod
    def _pick_from_srcset(srcset: str) -> Optional[str]:
        """Helper to pick the first candidate URL from a srcset string."""
        for part in srcset.split(","):
            part = part.strip()
            if not part:
                continue
            url = part.split()[0]
            if url:
                return url
        return None

    def extract_images(self) -> List[ImageInfo]:
        """
        Extracts image metadata including URLs, alt text, and dimensions.
        The alt attribute is kept verbatim: None when absent, "" when empty.
        Images without any usable source are kept with src="".
        """
        out: List[ImageInfo] = []
        for img in self.soup.find_all("img"):
            src = (img.get("src") or img.get("data-src") or "").strip()
            if not src and img.get("srcset"):
                src = self._pick_from_srcset(img.get("srcset") or "") or ""

            if src and not src.startswith("data:"):
                src = urljoin(self.base_url, src)

            out.append(ImageInfo(
                src=src,
                alt=img.get("alt"),
                width=img.get("width"),
                height=img.get("height"),
                loading=img.get("loading"),
            ))
        return out

    # -------- Link Extraction Logic --------

    def extract_anchors(self) -> List[AnchorInfo]:
        out: List[AnchorInfo] = []
        for link_tag in self.soup.find_all("a", href=True):
            raw_href = link_tag.get("href") or ""
            resolved = UrlUtils.resolve_href(raw_href, self.base_url)
            rel_attr = link_tag.get("rel", "")
            if isinstance(rel_attr, list):
                rel_attr = " ".join(rel_attr)

            out.append(AnchorInfo(
                href_raw=raw_href,
                href_resolved=resolved,
                is_internal=UrlUtils.is_internal_link(resolved, self.internal_hosts),
                rel=rel_attr or "",
                text=collapse_whitespace(link_tag.get_text(" "))[:100],
            ))
        return out


class PageParser:
    """
    Turns raw bytes into a PageDocument.

    Invalid JSON-LD blocks are the one defect reported while parsing: they come
    back as StructuredDataInvalid findings next to the document.
    """

    def __init__(self, internal_hosts: Iterable[str] = ()):
        self.internal_hosts = UrlUtils.normalize_hosts(internal_hosts)

    @staticmethod
    def decode(raw: Union[bytes, str, None]) -> str:
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        encoding = "utf-8"
        match = _CHARSET_PATTERN.search(raw[:4096])
        if match:
            encoding = match.group(1).decode("ascii", errors="ignore") or "utf-8"
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    def parse(
            self,
            raw: Union[bytes, str, None],
            url: str,
            status_code: int = 200,
            final_url: Optional[str] = None,
    ) -> ParseResult:
        html = self.decode(raw).replace('\ufeff', '')
        if not html.strip():
            raise ParseError(url, "empty document")

        try:
            service = PageParseService(html, url, self.internal_hosts)
        except Exception as e:
            raise ParseError(url, f"{type(e).__name__}: {e}") from e

        structured_data, sd_errors = service.extract_structured_data()
        canonical_raw = service.extract_canonical_tag()

        document = PageDocument(
            url=url,
            final_url=final_url,
            status_code=status_code,
            title=service.extract_page_title(),
            meta_description=service.extract_meta_description(),
            canonical_raw=canonical_raw,
            canonical_url=UrlUtils.resolve_href(canonical_raw, service.base_url) if canonical_raw else None,
            og_tags=service.extract_open_graph_tags(),
            twitter_tags=service.extract_twitter_tags(),
            headings=service.extract_headings(),
            images=service.extract_images(),
            anchors=service.extract_anchors(),
            structured_data=structured_data,
            lang=service.extract_lang(),
            robots_meta=service.extract_robots_meta(),
        )

        findings = [
            Finding(
                rule_id="StructuredDataInvalid",
                severity=Severity.ERROR,
                page_url=url,
                message=f"JSON-LD block #{index + 1} is not valid structured data: {error}",
                detail={"block": index + 1, "error": error},
            )
            for index, error in sd_errors
        ]
        if findings:
            logger.debug("%d invalid JSON-LD block(s) on %s", len(findings), url)

        return ParseResult(document=document, findings=findings)
