"""GitHub repository blob storage via the contents API."""

import base64
import logging
from urllib.parse import quote

import httpx

from ..constants import GITHUB_ACCEPT, GITHUB_API_BASE
from ..errors import PublishError

logger = logging.getLogger(__name__)

# Answered when a file already sits at the path, and also for ref conflicts
# and other validation failures; presence is confirmed with a GET.
EXISTS_STATUSES = (409, 422)


class GitHubBlobStore:
    """
    Stores objects as files committed to one branch of a repository.

    Each created object is one commit. Existing objects are never updated.
    """

    def __init__(
        self,
        client: httpx.Client,
        image_repo: str,
        branch: str,
        token: str,
        api_base: str = GITHUB_API_BASE,
    ):
        """
        Initialize GitHub blob store.

        Args:
            client: Shared HTTP client
            image_repo: Target repository as owner/repo
            branch: Branch to commit to
            token: Bearer token with contents write access
            api_base: API root (GitHub Enterprise installs differ)
        """
        self.client = client
        self.image_repo = image_repo
        self.branch = branch
        self.api_base = api_base.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": GITHUB_ACCEPT,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def put(self, path: str, data: bytes, message: str = "") -> bool:
        """
        Create ``path`` on the branch with ``data``.

        Args:
            path: File path inside the repository
            data: File bytes
            message: Commit message

        Returns:
            True if committed, False if the file already existed

        Raises:
            PublishError: On transport errors or any other non-2xx status
        """
        url = self._contents_url(path)
        body = {
            "message": message or f"upload image {path.rsplit('/', 1)[-1]}",
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.branch,
        }
        try:
            response = self.client.put(url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise PublishError(path, body=str(e) or type(e).__name__) from e

        if response.is_success:
            logger.debug("Committed %s to %s@%s", path, self.image_repo, self.branch)
            return True

        if response.status_code in EXISTS_STATUSES:
            if self.exists(path):
                logger.debug("%s already present (HTTP %d)", path, response.status_code)
                return False
            raise PublishError(path, status=response.status_code, body=response.text)

        raise PublishError(path, status=response.status_code, body=response.text)

    def exists(self, path: str) -> bool:
        """
        Whether ``path`` is present on the branch.

        Raises:
            PublishError: On transport errors or a status other than 200/404
        """
        try:
            response = self.client.get(
                self._contents_url(path),
                params={"ref": self.branch},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise PublishError(path, body=str(e) or type(e).__name__) from e

        if response.status_code == 404:
            return False
        if not response.is_success:
            raise PublishError(path, status=response.status_code, body=response.text)
        return True

    def _contents_url(self, path: str) -> str:
        return f"{self.api_base}/repos/{self.image_repo}/contents/{quote(path, safe='/')}"
