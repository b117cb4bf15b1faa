"""
Release feed access for codeowners-lsp.

Handles:
- Fetching the latest release descriptor from the GitHub API
- Following redirects with an explicit, bounded loop
- Streaming asset downloads
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urljoin

import requests

from codeowners_client._core.version import USER_AGENT, get_latest_release_url
from codeowners_client.errors import NetworkError
from codeowners_client.types import ReleaseAsset, ReleaseDescriptor

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
REQUEST_TIMEOUT = 30
CHUNK_SIZE = 8192

_JSON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/vnd.github.v3+json",
}
_DOWNLOAD_HEADERS = {
    "User-Agent": USER_AGENT,
}


def _get(
    session: requests.Session,
    url: str,
    headers: Dict[str, str],
    stream: bool = False,
) -> requests.Response:
    """
    GET ``url``, following up to MAX_REDIRECTS redirects.

    Returns the terminal 2xx response.

    Raises:
        NetworkError: On transport failure, non-2xx status or too many redirects
    """
    for _ in range(MAX_REDIRECTS + 1):
        try:
            response = session.get(
                url,
                headers=headers,
                stream=stream,
                allow_redirects=False,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}", url=url) from e

        location = response.headers.get("Location")
        if 300 <= response.status_code < 400 and location:
            response.close()
            next_url = urljoin(url, location)
            logger.debug(f"Following redirect {response.status_code}: {url} -> {next_url}")
            url = next_url
            continue

        if not 200 <= response.status_code < 300:
            response.close()
            raise NetworkError(
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
                url=url,
            )

        return response

    raise NetworkError(f"Too many redirects (>{MAX_REDIRECTS}) fetching {url}", url=url)


def parse_release(payload: Any) -> ReleaseDescriptor:
    """
    Build a ReleaseDescriptor from a GitHub release JSON body.

    Raises:
        NetworkError: If required fields are missing or mistyped
    """
    if not isinstance(payload, dict):
        raise NetworkError("Malformed release: expected a JSON object")

    tag_name = payload.get("tag_name")
    assets = payload.get("assets")
    if not isinstance(tag_name, str) or not tag_name:
        raise NetworkError("Malformed release: missing tag_name")
    if not isinstance(assets, list):
        raise NetworkError("Malformed release: missing assets")

    parsed = []
    for entry in assets:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        url = entry.get("browser_download_url")
        if isinstance(name, str) and isinstance(url, str):
            parsed.append(ReleaseAsset(name=name, download_url=url))

    return ReleaseDescriptor(tag_name=tag_name, assets=tuple(parsed))


def fetch_latest_release(session: Optional[requests.Session] = None) -> ReleaseDescriptor:
    """
    Fetch the latest published codeowners-lsp release.

    Args:
        session: requests session to use (a fresh one if omitted)

    Returns:
        ReleaseDescriptor for the latest release

    Raises:
        NetworkError: If the feed is unreachable or the body is malformed
    """
    url = get_latest_release_url()
    owns_session = session is None
    session = session or requests.Session()

    try:
        response = _get(session, url, _JSON_HEADERS)
        try:
            payload = response.json()
        except ValueError as e:
            raise NetworkError(f"Malformed release JSON from {url}: {e}", url=url) from e
        finally:
            response.close()
    finally:
        if owns_session:
            session.close()

    release = parse_release(payload)
    logger.debug(f"Latest release is {release.tag_name} with {len(release.assets)} assets")
    return release


def download_asset(
    url: str,
    session: Optional[requests.Session] = None,
) -> Iterator[bytes]:
    """
    Stream the bytes of a release asset.

    The request is made lazily on first iteration.

    Raises:
        NetworkError: If the download fails before or during streaming
    """
    owns_session = session is None
    session = session or requests.Session()

    try:
        response = _get(session, url, _DOWNLOAD_HEADERS, stream=True)
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Download from {url} interrupted: {e}", url=url) from e
        finally:
            response.close()
    finally:
        if owns_session:
            session.close()
