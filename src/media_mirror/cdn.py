"""CDN URL convention.

jsDelivr serves any public GitHub repository at
``https://cdn.jsdelivr.net/gh/<owner>/<repo>@<branch>/<path>``; the URL is
formed by string substitution and never read back from a server.
"""

from urllib.parse import quote

from .constants import DEFAULT_CDN_BASE


def cdn_url(image_repo: str, branch: str, path: str, cdn_base: str = DEFAULT_CDN_BASE) -> str:
    """Form the accelerated public URL of a stored object.

    Args:
        image_repo: Repository as owner/repo
        branch: Branch the object was committed to
        path: Object path inside the repository
        cdn_base: CDN prefix, without trailing slash

    Returns:
        CDN-facing URL
    """
    owner, repo = image_repo.split("/", 1)
    return f"{cdn_base.rstrip('/')}/{owner}/{repo}@{branch}/{quote(path.lstrip('/'), safe='/%')}"
