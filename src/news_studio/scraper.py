"""Naver News scraping: section listings, the daily ranking and article bodies.

The portal markup is undocumented and changes without notice, so extraction
is an ordered list of strategies. Each strategy is a pure function from a
parsed document to candidate records; the first non-empty result wins.
Fallback strategies scan a broader region and dedupe by link.

Pages are fetched as raw bytes and decoded explicitly. The portal has long
served EUC-KR, and decoding with the wrong codec produces garbled text rather
than an error, so the charset is taken from the Content-Type header or a
``<meta>`` tag before falling back to the legacy codec.
"""

from __future__ import annotations

import codecs
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from .cache import ListingCache
from .config import Settings
from .errors import BadRequest, ScrapeError
from .models import ArticleBody, NewsItem

logger = logging.getLogger(__name__)

NAVER_DOMAIN = "naver.com"
NAVER_ORIGIN = "https://news.naver.com"
SECTION_URL = NAVER_ORIGIN + "/section/{code}"
RANKING_URL = NAVER_ORIGIN + "/main/ranking/popularDay.naver"
MAX_ARTICLE_REDIRECTS = 5

DEFAULT_CATEGORY_CODE = "100"
RANKING_CODE = "ranking"

# Korean labels mirror the portal's own section names; English aliases are for API callers.
CATEGORY_CODES: Dict[str, str] = {
    "정치": "100",
    "경제": "101",
    "사회": "102",
    "생활/문화": "103",
    "세계": "104",
    "it/과학": "105",
    "politics": "100",
    "economy": "101",
    "society": "102",
    "life/culture": "103",
    "world": "104",
    "it/science": "105",
    "랭킹": RANKING_CODE,
    "ranking": RANKING_CODE,
}

PLACEHOLDER_TITLES = frozenset({"동영상기사", "동영상 기사"})

LEGACY_ENCODING = "euc-kr"
# cp949 is a superset of EUC-KR and covers the extended Hangul the portal emits.
_CODEC_ALIASES: Dict[str, str] = {
    "euc-kr": "cp949",
    "euc_kr": "cp949",
    "euckr": "cp949",
    "ks_c_5601-1987": "cp949",
    "ksc5601": "cp949",
    "windows-949": "cp949",
    "x-windows-949": "cp949",
}
_HEADER_CHARSET = re.compile(r"charset\s*=\s*[\"']?([^\s;\"']+)", re.IGNORECASE)
_META_CHARSET = re.compile(rb"<meta[^>]+charset\s*=\s*[\"']?\s*([A-Za-z0-9_.:-]+)", re.IGNORECASE)
_NUMERIC_CODE = re.compile(r"\d{3}")
_ARTICLE_HREF = re.compile(r"/article/|read\.naver|read\.nhn")

Strategy = Callable[[BeautifulSoup], List[dict]]


# --- Category resolution ----------------------------------------------------

def resolve_category(value: Optional[str]) -> str:
    """
    Resolve a category label or section code to a section code.

    Three-digit codes pass through unchanged. Labels match exactly first,
    then by one half of a compound label ("과학" for "IT/과학"), then when
    the input contains a whole label. Anything else resolves to the default
    politics section; this never raises.
    """
    text = (value or "").strip()
    if _NUMERIC_CODE.fullmatch(text):
        return text
    lowered = text.lower()
    if not lowered:
        return DEFAULT_CATEGORY_CODE
    if lowered in CATEGORY_CODES:
        return CATEGORY_CODES[lowered]
    for label, code in CATEGORY_CODES.items():
        if lowered in label.split("/"):
            return code
    for label, code in CATEGORY_CODES.items():
        if label in lowered:
            return code
    return DEFAULT_CATEGORY_CODE


# --- Decoding -----------------------------------------------------------------

def detect_charset(raw: bytes, content_type: Optional[str] = None) -> str:
    """Return the declared charset (header, then meta tag) or the legacy default."""
    if content_type:
        match = _HEADER_CHARSET.search(content_type)
        if match:
            return match.group(1).lower()
    match = _META_CHARSET.search(raw[:4096])
    if match:
        return match.group(1).decode("ascii", "ignore").lower()
    return LEGACY_ENCODING


def decode_html(raw: bytes, content_type: Optional[str] = None) -> str:
    charset = detect_charset(raw, content_type)
    codec = _CODEC_ALIASES.get(charset, charset)
    try:
        codecs.lookup(codec)
    except LookupError:
        logger.warning("Unknown charset %r; decoding as %s", charset, LEGACY_ENCODING)
        codec = _CODEC_ALIASES[LEGACY_ENCODING]
    return raw.decode(codec, errors="replace")


# --- Candidate helpers --------------------------------------------------------

def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = node.get_text(" ", strip=True)
    return text or None


def resolve_link(href: Optional[str]) -> Optional[str]:
    """Resolve an anchor href against the portal origin; None if unusable."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:")):
        return None
    absolute = urljoin(NAVER_ORIGIN + "/", href)
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def is_naver_host(host: Optional[str]) -> bool:
    """True for naver.com and its subdomains; article fetches go nowhere else."""
    host = (host or "").lower().rstrip(".")
    return host == NAVER_DOMAIN or host.endswith("." + NAVER_DOMAIN)


def anchor_title(anchor: Tag) -> str:
    """Prefer the title attribute; visible text may be truncated or an icon label."""
    title = (anchor.get("title") or "").strip()
    if title:
        return title
    return anchor.get_text(" ", strip=True)


def _candidate(anchor: Optional[Tag], **extra: Optional[str]) -> Optional[dict]:
    if anchor is None:
        return None
    title = anchor_title(anchor)
    if not title or title in PLACEHOLDER_TITLES:
        return None
    link = resolve_link(anchor.get("href"))
    if not link:
        return None
    record = {"title": title, "link": link}
    record.update({key: value for key, value in extra.items() if value})
    return record


def _dedupe_by_link(records: Iterable[dict]) -> List[dict]:
    seen: set[str] = set()
    unique: List[dict] = []
    for record in records:
        if record["link"] in seen:
            continue
        seen.add(record["link"])
        unique.append(record)
    return unique


# --- Extraction strategies ----------------------------------------------------

def section_headline_items(soup: BeautifulSoup) -> List[dict]:
    """Current section layout: ``li.sa_item`` cards."""
    records = []
    for item in soup.select("li.sa_item"):
        anchor = item.select_one("a.sa_text_title") or item.select_one("a[href]")
        record = _candidate(
            anchor,
            press=_text(item.select_one(".sa_text_press")),
            time=_text(item.select_one(".sa_text_datetime")),
            summary=_text(item.select_one(".sa_text_lede")),
        )
        if record:
            records.append(record)
    return _dedupe_by_link(records)


def legacy_headline_items(soup: BeautifulSoup) -> List[dict]:
    """Older list layout: ``ul.type06_headline`` / ``ul.type06`` rows."""
    records = []
    for item in soup.select("ul.type06_headline li, ul.type06 li"):
        anchor = item.select_one("dt:not(.photo) a") or item.select_one("a[href]")
        record = _candidate(
            anchor,
            press=_text(item.select_one(".writing")),
            time=_text(item.select_one(".date")),
            summary=_text(item.select_one(".lede")),
        )
        if record:
            records.append(record)
    return _dedupe_by_link(records)


def ranking_box_items(soup: BeautifulSoup) -> List[dict]:
    """Ranking page: one ``div.rankingnews_box`` per press, five rows each."""
    records = []
    for box in soup.select("div.rankingnews_box"):
        press = _text(box.select_one(".rankingnews_name"))
        for item in box.select("ul.rankingnews_list li"):
            anchor = item.select_one("a.list_title") or item.select_one("a[href]")
            record = _candidate(
                anchor,
                press=press,
                time=_text(item.select_one(".list_time")),
                views=_text(item.select_one(".list_view")),
                comments=_text(item.select_one(".list_comment")),
            )
            if record:
                records.append(record)
    return _dedupe_by_link(records)


def ranking_list_items(soup: BeautifulSoup) -> List[dict]:
    """Ranking rows without their press box wrapper."""
    records = []
    for item in soup.select(".rankingnews_list li"):
        anchor = item.select_one("a.list_title") or item.select_one("a[href]")
        record = _candidate(anchor, time=_text(item.select_one(".list_time")))
        if record:
            records.append(record)
    return _dedupe_by_link(records)


def article_anchor_items(soup: BeautifulSoup) -> List[dict]:
    """Last resort: every article-looking anchor in the main content region."""
    region = soup.select_one("#main_content, #newsct, #ct, main") or soup
    records = []
    for anchor in region.select("a[href]"):
        if not _ARTICLE_HREF.search(anchor.get("href", "")):
            continue
        record = _candidate(anchor)
        if record:
            records.append(record)
    return _dedupe_by_link(records)


SECTION_STRATEGIES: Sequence[Strategy] = (
    section_headline_items,
    legacy_headline_items,
    article_anchor_items,
)
RANKING_STRATEGIES: Sequence[Strategy] = (
    ranking_box_items,
    ranking_list_items,
    article_anchor_items,
)


def run_strategies(soup: BeautifulSoup, strategies: Sequence[Strategy]) -> List[dict]:
    for strategy in strategies:
        records = strategy(soup)
        if records:
            logger.debug("Strategy %s matched %d records", strategy.__name__, len(records))
            return records
    return []


def rank_items(records: Sequence[dict], max_items: int) -> List[NewsItem]:
    """Bound the records and assign contiguous 1-based ranks in emission order."""
    items: List[NewsItem] = []
    for record in records[: max(0, max_items)]:
        items.append(
            NewsItem(
                rank=len(items) + 1,
                title=record["title"],
                link=record["link"],
                press=record.get("press"),
                time=record.get("time"),
                summary=record.get("summary") or record["title"],
                views=record.get("views"),
                comments=record.get("comments"),
            )
        )
    return items


# --- Article body -------------------------------------------------------------

ARTICLE_TITLE_SELECTORS = (
    "#title_area",
    "h2.media_end_head_headline",
    "#articleTitle",
    "h2.end_tit",
)
ARTICLE_BODY_SELECTORS = (
    "#dic_area",
    "#articleBodyContents",
    "#articeBody",
    "#newsct_article",
    "article",
)
_ARTICLE_NOISE = "script, style, .end_photo_org, .img_desc, .vod_player_wrap"
_BLANK_LINES = re.compile(r"\n\s*\n+")


def extract_article_title(soup: BeautifulSoup) -> str:
    for selector in ARTICLE_TITLE_SELECTORS:
        text = _text(soup.select_one(selector))
        if text:
            return text
    og_title = soup.select_one('meta[property="og:title"]')
    if og_title and (og_title.get("content") or "").strip():
        return og_title["content"].strip()
    return _text(soup.title) or ""


def extract_article_text(soup: BeautifulSoup) -> str:
    for selector in ARTICLE_BODY_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        for noise in node.select(_ARTICLE_NOISE):
            noise.extract()
        text = _BLANK_LINES.sub("\n\n", node.get_text("\n", strip=True)).strip()
        if text:
            return text
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    return "\n".join(p for p in paragraphs if p)


# --- Scraper ------------------------------------------------------------------

class NaverNewsScraper:
    """Fetch and extract Naver News listings with a bounded timeout and no retries."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(
            timeout=settings.scrape_timeout, follow_redirects=True
        )
        self._cache = ListingCache(settings.scrape_cache_ttl)

    def close(self) -> None:
        self._client.close()

    def _get(self, url: str, follow_redirects: bool = True) -> httpx.Response:
        try:
            response = self._client.get(
                url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.scrape_timeout,
                follow_redirects=follow_redirects,
            )
        except httpx.TimeoutException as exc:
            raise ScrapeError(f"timed out fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise ScrapeError(f"could not fetch {url}: {exc}") from exc
        if response.is_redirect and not follow_redirects:
            return response
        if not response.is_success:
            raise ScrapeError(f"{url} returned HTTP {response.status_code}")
        return response

    def _get_naver_page(self, url: str) -> httpx.Response:
        """Follow redirects one hop at a time, refusing any hop off naver.com."""
        for _ in range(MAX_ARTICLE_REDIRECTS + 1):
            if not is_naver_host(httpx.URL(url).host):
                raise BadRequest("url must point to a naver.com article.")
            response = self._get(url, follow_redirects=False)
            if not response.is_redirect:
                return response
            url = str(response.url.join(response.headers["location"]))
        raise ScrapeError(f"too many redirects fetching {url}")

    def _fetch_document(self, url: str) -> BeautifulSoup:
        response = self._get(url)
        html = decode_html(response.content, response.headers.get("content-type"))
        return BeautifulSoup(html, "html.parser")

    def _fetch_listing(
        self, cache_key: str, url: str, strategies: Sequence[Strategy], limit: int
    ) -> List[NewsItem]:
        cached = self._cache.get((cache_key, limit))
        if cached is not None:
            logger.debug("Serving %s listing from cache", cache_key)
            return cached
        soup = self._fetch_document(url)
        items = rank_items(run_strategies(soup, strategies), limit)
        if not items:
            logger.warning("No news items extracted from %s", url)
        else:
            logger.info("Extracted %d news items from %s", len(items), url)
        self._cache.set((cache_key, limit), items)
        return items

    def fetch_list(self, category_or_code: Optional[str], max_items: int | None = None) -> List[NewsItem]:
        code = resolve_category(category_or_code)
        if code == RANKING_CODE:
            return self.fetch_ranking(max_items)
        limit = self.settings.list_max_items if max_items is None else max_items
        return self._fetch_listing(code, SECTION_URL.format(code=code), SECTION_STRATEGIES, limit)

    def fetch_ranking(self, max_items: int | None = None) -> List[NewsItem]:
        limit = self.settings.ranking_max_items if max_items is None else max_items
        return self._fetch_listing(RANKING_CODE, RANKING_URL, RANKING_STRATEGIES, limit)

    def fetch_article_body(self, url: Optional[str]) -> ArticleBody:
        target = (url or "").strip()
        parsed = urlparse(target)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise BadRequest("url must be an absolute http(s) URL.")
        response = self._get_naver_page(target)
        html = decode_html(response.content, response.headers.get("content-type"))
        soup = BeautifulSoup(html, "html.parser")
        body = extract_article_text(soup)
        if not body:
            raise ScrapeError(f"no article body found at {target}")
        return ArticleBody(title=extract_article_title(soup), body_text=body, url=target)
