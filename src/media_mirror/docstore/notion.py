"""Notion implementation of the document store.

Documents are the pages of one database; a page id is also the id of the
root block container. Image blocks carry either a Notion-hosted file (a
pre-signed URL that expires within the hour) or an external URL.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional

import httpx

from ..config import MirrorConfig
from ..constants import MEDIA_BLOCK_TYPES, NOTION_API_BASE, NOTION_MAX_PAGE_SIZE, NOTION_VERSION
from ..core import Block, ChildPage, DocumentSelector, DocumentSummary, MediaRef
from ..errors import RewriteError, StoreError

logger = logging.getLogger(__name__)


# ============= Payload Parsing =============

def parse_media(payload: Optional[Dict[str, Any]]) -> Optional[MediaRef]:
    """Read a Notion file object ({"type": "file"|"external", ...})."""
    if not payload:
        return None
    kind = payload.get("type")
    if kind == "file":
        url = (payload.get("file") or {}).get("url")
        return MediaRef.hosted(url) if url else None
    if kind == "external":
        url = (payload.get("external") or {}).get("url")
        return MediaRef.external(url) if url else None
    # file_upload objects expose no URL until attached; nothing to migrate
    return None


def parse_block(data: Dict[str, Any]) -> Block:
    """Convert a block object from a children listing."""
    block_type = data.get("type", "")
    media = None
    if block_type in MEDIA_BLOCK_TYPES:
        media = parse_media(data.get(block_type))
    return Block(
        id=data["id"],
        type=block_type,
        has_children=bool(data.get("has_children")),
        media=media,
    )


def page_title(data: Dict[str, Any]) -> str:
    """Plain text of the page's title property, whatever it is named."""
    for prop in (data.get("properties") or {}).values():
        if prop.get("type") == "title":
            return "".join(part.get("plain_text", "") for part in prop.get("title") or [])
    return ""


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_page(data: Dict[str, Any]) -> DocumentSummary:
    """Convert a page object from a database query."""
    return DocumentSummary(
        id=data["id"],
        title=page_title(data),
        cover=parse_media(data.get("cover")),
        last_edited=_parse_timestamp(data.get("last_edited_time")),
    )


def build_filter(
    selector: DocumentSelector, config: MirrorConfig, now: datetime
) -> Optional[Dict[str, Any]]:
    """Translate a selector into a database query filter.

    Returns:
        Filter object, or None to select every page
    """
    clauses = []
    since = selector.edited_since(now)
    if since is not None:
        clauses.append({
            "timestamp": "last_edited_time",
            "last_edited_time": {"on_or_after": since.isoformat()},
        })
    if selector.status is not None:
        prop_type = config.status_property_type
        clauses.append({
            "property": config.status_property,
            prop_type: {"equals": selector.status},
        })

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"and": clauses}


def _retry_after(response: httpx.Response) -> float:
    try:
        return max(float(response.headers.get("Retry-After", "1")), 0.0)
    except ValueError:
        return 1.0


# ============= Store =============

class NotionDocumentStore:
    """Document store backed by a Notion database."""

    def __init__(
        self,
        client: httpx.Client,
        config: MirrorConfig,
        api_base: str = NOTION_API_BASE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Notion store.

        Args:
            client: Shared HTTP client
            config: Run configuration (token, database id, status property)
            api_base: API root
            sleep: Back-off function, replaceable in tests
        """
        self.client = client
        self.config = config
        self.database_id = config.database_id
        self.api_base = api_base.rstrip("/")
        self._sleep = sleep
        self._headers = {
            "Authorization": f"Bearer {config.notion_token}",
            "Notion-Version": NOTION_VERSION,
        }

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, backing off on HTTP 429 as Notion asks."""
        url = f"{self.api_base}{path}"
        retries = self.config.rate_limit_retries
        for attempt in range(retries + 1):
            response = self.client.request(method, url, headers=self._headers, **kwargs)
            if response.status_code != 429 or attempt == retries:
                return response
            delay = _retry_after(response)
            logger.warning("Rate limited by Notion, retrying in %.1fs", delay)
            self._sleep(delay)
        return response

    def query_documents(
        self, selector: DocumentSelector, now: Optional[datetime] = None
    ) -> Iterator[DocumentSummary]:
        """
        Enumerate database pages matching ``selector``, following pagination.

        Raises:
            StoreError: If any page of results cannot be fetched
        """
        now = now or datetime.now(timezone.utc)
        body: Dict[str, Any] = {"page_size": NOTION_MAX_PAGE_SIZE}
        query_filter = build_filter(selector, self.config, now)
        if query_filter is not None:
            body["filter"] = query_filter

        cursor: Optional[str] = None
        while True:
            if cursor:
                body["start_cursor"] = cursor
            try:
                response = self._request("POST", f"/databases/{self.database_id}/query", json=body)
            except httpx.HTTPError as e:
                raise StoreError(f"Querying database {self.database_id} failed: {e}") from e
            if not response.is_success:
                raise StoreError(
                    f"Querying database {self.database_id} failed (HTTP {response.status_code}): "
                    f"{response.text[:200]}",
                    status=response.status_code,
                )

            payload = response.json()
            for page in payload.get("results", []):
                if page.get("object", "page") == "page":
                    yield parse_page(page)

            cursor = payload.get("next_cursor")
            if not payload.get("has_more") or not cursor:
                return

    def list_children(
        self, container_id: str, cursor: Optional[str] = None, page_size: int = 50
    ) -> ChildPage:
        """
        One page of a block's children.

        Raises:
            StoreError: If the listing fails
        """
        params: Dict[str, Any] = {"page_size": min(page_size, NOTION_MAX_PAGE_SIZE)}
        if cursor:
            params["start_cursor"] = cursor
        try:
            response = self._request("GET", f"/blocks/{container_id}/children", params=params)
        except httpx.HTTPError as e:
            raise StoreError(f"Listing children of {container_id} failed: {e}") from e
        if not response.is_success:
            raise StoreError(
                f"Listing children of {container_id} failed (HTTP {response.status_code})",
                status=response.status_code,
            )

        payload = response.json()
        return ChildPage(
            results=[parse_block(b) for b in payload.get("results", [])],
            next_cursor=payload.get("next_cursor"),
            has_more=bool(payload.get("has_more")),
        )

    def update_block_media(self, block: Block, url: str) -> None:
        """
        Replace an image block's file with an external URL.

        The payload carries no "type" discriminant: Notion rejects block
        updates that name one alongside the variant.

        Raises:
            RewriteError: If Notion rejects the update
        """
        self._patch(f"/blocks/{block.id}", block.id, {block.type: {"external": {"url": url}}})

    def update_cover(self, document_id: str, url: str) -> None:
        """
        Replace a page cover with an external URL.

        Raises:
            RewriteError: If Notion rejects the update
        """
        self._patch(
            f"/pages/{document_id}",
            document_id,
            {"cover": {"type": "external", "external": {"url": url}}},
        )

    def _patch(self, path: str, target_id: str, body: Dict[str, Any]) -> None:
        try:
            response = self._request("PATCH", path, json=body)
        except httpx.HTTPError as e:
            raise RewriteError(target_id, body=str(e) or type(e).__name__) from e
        if not response.is_success:
            raise RewriteError(target_id, status=response.status_code, body=response.text)
