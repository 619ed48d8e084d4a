import asyncio
from typing import Any, Dict, List, Optional, Union

import aiohttp

from newshub.config import CONFIG, Config
from newshub.news.model import TABULAR_ID_PREFIX, Article, ArticleSource, Category
from newshub.news.parser import truncate
from newshub.news.source.bitable.auth import BitableError, TokenManager
from newshub.logging_config import create_logger
from newshub.utils.time import convert_date_str_to_timestamp, convert_epoch_millis_to_timestamp, now_timestamp


# Record field names as they appear in the bitable
FIELD_TITLE = "标题"
FIELD_DESCRIPTION = "描述"
FIELD_LINK = "链接"
FIELD_CATEGORY = "分类"
FIELD_SOURCE = "来源"
FIELD_PUBLISHED_AT = "发布时间"

CATEGORY_NAME_MAP: Dict[str, Category] = {
    "科技": Category.TECHNOLOGY,
    "国际": Category.WORLD,
    "商业": Category.BUSINESS,
    "科学": Category.SCIENCE,
    "体育": Category.SPORTS,
}

DEFAULT_SOURCE_NAME = "Feishu Bitable"
DEFAULT_SOURCE_URL = "https://feishu.cn"
PAGE_SIZE = 500

logger = create_logger("BitableClient")


class BitableAPIError(BitableError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BitableAuthError(BitableAPIError):
    """The API rejected the access token (HTTP 401/403)."""


def _segment_text(value: Any, prefer_link: bool) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        keys = ("link", "text") if prefer_link else ("text", "link")
        return str(next((value[key] for key in keys if value.get(key)), ""))
    if isinstance(value, list):
        return "".join(_segment_text(segment, prefer_link) for segment in value)
    return str(value)


def _field_text(value: Any, prefer_link: bool = False) -> str:
    """
    Flatten bitable cell values (plain strings, rich-text segments, link objects) to text.

    Segments keep their own spacing; only the joined result is stripped. Link segments
    contribute their visible text unless prefer_link is set, as for the link column.
    """
    return _segment_text(value, prefer_link).strip()


def map_category(name: Optional[str]) -> Category:
    if not name:
        return Category.GENERAL
    return CATEGORY_NAME_MAP.get(name.strip(), Category.GENERAL)


def parse_published_at(value: Any) -> int:
    """Numbers are epoch milliseconds, strings are dates, anything else is now."""
    if isinstance(value, bool) or value is None:
        return now_timestamp()
    if isinstance(value, (int, float)):
        return convert_epoch_millis_to_timestamp(value)
    text = _field_text(value)
    return convert_date_str_to_timestamp(text) if text else now_timestamp()


def fields_to_article(article_id: str, fields: Dict[str, Any]) -> Optional[Article]:
    title = _field_text(fields.get(FIELD_TITLE))
    if not title:
        return None

    return Article(
        id=article_id,
        title=title,
        description=truncate(_field_text(fields.get(FIELD_DESCRIPTION))),
        link=_field_text(fields.get(FIELD_LINK), prefer_link=True) or "#",
        published_at=parse_published_at(fields.get(FIELD_PUBLISHED_AT)),
        category=map_category(_field_text(fields.get(FIELD_CATEGORY))),
        source=ArticleSource(
            name=_field_text(fields.get(FIELD_SOURCE)) or DEFAULT_SOURCE_NAME,
            url=DEFAULT_SOURCE_URL,
        ),
    )


def record_to_article(record: Dict[str, Any]) -> Optional[Article]:
    """Map one bitable record to an article; records without an id or a title are dropped (None)."""
    record_id = record.get("record_id")
    if not record_id:
        logger.warning("Skipping bitable record without record_id")
        return None

    fields = record.get("fields")
    if not isinstance(fields, dict):
        fields = {}
    return fields_to_article(f"{TABULAR_ID_PREFIX}{record_id}", fields)


def records_to_articles(records: List[Dict[str, Any]]) -> List[Article]:
    articles = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning(f"Skipping malformed bitable record: {record!r}")
            continue
        try:
            article = record_to_article(record)
        except Exception as e:
            logger.error(f"Failed to convert bitable record {record.get('record_id')}: {e}")
            continue
        if article is not None:
            articles.append(article)
    return articles


def import_records(rows: List[Dict[str, Any]]) -> List[Article]:
    """Convert manually supplied field dicts (same field names as the bitable) to articles."""
    articles = []
    for index, fields in enumerate(rows):
        article = fields_to_article(f"{TABULAR_ID_PREFIX}manual-{index}", fields)
        if article is not None:
            articles.append(article)
    return articles


class BitableClient:
    """Reads curated article records from a Feishu bitable table."""

    def __init__(
        self,
        token_manager: TokenManager,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
        view_id: Optional[str] = None,
        personal_token: Optional[str] = None,
        api_base: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.token_manager = token_manager
        self.base_id = base_id or CONFIG.FEISHU_BASE_ID
        self.table_id = table_id or CONFIG.FEISHU_TABLE_ID
        self.view_id = view_id or CONFIG.FEISHU_VIEW_ID
        self.personal_token = personal_token
        self.api_base = (api_base or CONFIG.FEISHU_API_BASE).rstrip("/")
        self._session = session

    @classmethod
    def from_config(
        cls,
        config: Config = CONFIG,
        token_manager: Optional[TokenManager] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "BitableClient":
        return cls(
            token_manager=token_manager or TokenManager.from_config(config, session=session),
            base_id=config.FEISHU_BASE_ID,
            table_id=config.FEISHU_TABLE_ID,
            view_id=config.FEISHU_VIEW_ID,
            personal_token=config.FEISHU_PERSONAL_TOKEN,
            api_base=config.FEISHU_API_BASE,
            session=session,
        )

    @property
    def is_configured(self) -> bool:
        return self.token_manager.is_configured

    @property
    def records_url(self) -> str:
        return f"{self.api_base}/bitable/v1/apps/{self.base_id}/tables/{self.table_id}/records"

    async def fetch_articles(self) -> List[Article]:
        """Fetch and convert all records. Returns [] when unconfigured or on any failure."""
        if not self.is_configured:
            logger.debug("Bitable source not configured, skipping")
            return []

        try:
            records = await self._fetch_records_with_retry()
        except (BitableError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to fetch bitable records: {e}")
            return []

        articles = records_to_articles(records)
        logger.info(f"Fetched {len(articles)} articles from {len(records)} bitable records")
        return articles

    async def fetch_articles_by_category(self, category: Union[str, Category]) -> List[Article]:
        resolved = Category.from_slug(category)
        if resolved is None:
            return []
        return [article for article in await self.fetch_articles() if article.category == resolved]

    async def _fetch_records_with_retry(self) -> List[Dict[str, Any]]:
        token = await self.token_manager.get_token()
        try:
            return await self._fetch_records(token)
        except BitableAuthError as e:
            logger.warning(f"Bitable rejected the access token ({e}), refreshing and retrying once")

        token = await self.token_manager.force_refresh()
        return await self._fetch_records(token)

    async def _fetch_records(self, token: str) -> List[Dict[str, Any]]:
        if self._session is not None:
            return await self._request_records(self._session, token)
        async with aiohttp.ClientSession() as session:
            return await self._request_records(session, token)

    async def _request_records(self, session: aiohttp.ClientSession, token: str) -> List[Dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if self.personal_token:
            headers["X-User-Key"] = self.personal_token

        params = {"page_size": str(PAGE_SIZE)}
        if self.view_id:
            params["view_id"] = self.view_id

        async with session.get(self.records_url, params=params, headers=headers) as response:
            if response.status in (401, 403):
                raise BitableAuthError(f"HTTP {response.status}: {response.reason}", status=response.status)
            if response.status < 200 or response.status >= 300:
                raise BitableAPIError(f"HTTP {response.status}: {response.reason}", status=response.status)
            data = await response.json()

        if not isinstance(data, dict):
            raise BitableAPIError(f"Unexpected records response: {type(data)}")
        if data.get("code") != 0:
            raise BitableAPIError(f"Bitable API error (code {data.get('code')}): {data.get('msg')}")

        payload = data.get("data") or {}
        if not isinstance(payload, dict):
            raise BitableAPIError(f"Unexpected records payload: {type(payload)}")
        items = payload.get("items") or []
        if not isinstance(items, list):
            raise BitableAPIError(f"Unexpected records items: {type(items)}")
        return items
