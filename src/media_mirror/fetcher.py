"""Content fetcher: downloads media bytes over HTTP."""

import logging

import httpx

from .errors import FetchError
from .utils import shorten_url

logger = logging.getLogger(__name__)


class ContentFetcher:
    """Downloads raw bytes for a URL. No retries at this layer."""

    def __init__(self, client: httpx.Client):
        """
        Initialize fetcher.

        Args:
            client: Shared HTTP client; hosted URLs are pre-signed, so no auth
        """
        self.client = client

    def fetch(self, url: str) -> bytes:
        """
        Download ``url``.

        Args:
            url: Absolute media URL

        Returns:
            Response body

        Raises:
            FetchError: On transport errors or a non-2xx status
        """
        logger.debug("Fetching %s", shorten_url(url))
        try:
            response = self.client.get(url, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise FetchError(url, reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError(url, status=response.status_code)

        return response.content
