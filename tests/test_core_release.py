"""Tests for codeowners_client._core.release module."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from codeowners_client._core.release import (
    MAX_REDIRECTS,
    download_asset,
    fetch_latest_release,
    parse_release,
)
from codeowners_client.errors import NetworkError
from conftest import make_response

LATEST_URL = "https://api.github.com/repos/radiosilence/codeowners-lsp/releases/latest"


class TestFetchLatestRelease:
    """Tests for fetch_latest_release function."""

    def test_parses_release(self, release_payload):
        """A 200 response yields a descriptor with the tag and assets."""
        session = MagicMock()
        session.get.return_value = make_response(200, release_payload)

        release = fetch_latest_release(session)

        assert release.tag_name == "v1.2.3"
        assert release.version == "1.2.3"
        assert len(release.assets) == 2
        assert release.assets[0].name == "codeowners-lsp-1.2.3-x86_64-unknown-linux-gnu"

    def test_sends_expected_headers(self, release_payload):
        """Requests carry a client identifier and the v3 Accept header."""
        session = MagicMock()
        session.get.return_value = make_response(200, release_payload)

        fetch_latest_release(session)

        args, kwargs = session.get.call_args
        assert args[0] == LATEST_URL
        assert kwargs["headers"]["Accept"] == "application/vnd.github.v3+json"
        assert kwargs["headers"]["User-Agent"].startswith("codeowners-client/")
        assert kwargs["allow_redirects"] is False
        assert kwargs["timeout"] > 0

    def test_follows_redirect(self, release_payload):
        """3xx with Location is followed transparently."""
        session = MagicMock()
        session.get.side_effect = [
            make_response(302, location="https://mirror.example.com/latest"),
            make_response(200, release_payload),
        ]

        release = fetch_latest_release(session)

        assert release.version == "1.2.3"
        assert session.get.call_args_list[1][0][0] == "https://mirror.example.com/latest"

    def test_relative_redirect_is_joined(self, release_payload):
        """A relative Location resolves against the current URL."""
        session = MagicMock()
        session.get.side_effect = [
            make_response(301, location="/repositories/1/releases/latest"),
            make_response(200, release_payload),
        ]

        fetch_latest_release(session)

        assert session.get.call_args_list[1][0][0] == (
            "https://api.github.com/repositories/1/releases/latest"
        )

    def test_redirect_ceiling(self):
        """Endless redirects stop after MAX_REDIRECTS with NetworkError."""
        session = MagicMock()
        session.get.side_effect = lambda *a, **kw: make_response(
            302, location="https://api.github.com/loop"
        )

        with pytest.raises(NetworkError, match="Too many redirects"):
            fetch_latest_release(session)

        assert session.get.call_count == MAX_REDIRECTS + 1

    def test_redirect_without_location_is_an_error(self):
        """A 3xx without Location is a terminal non-2xx response."""
        session = MagicMock()
        session.get.return_value = make_response(304)

        with pytest.raises(NetworkError) as exc_info:
            fetch_latest_release(session)

        assert exc_info.value.status_code == 304

    def test_http_error_carries_status(self):
        session = MagicMock()
        session.get.return_value = make_response(403)

        with pytest.raises(NetworkError) as exc_info:
            fetch_latest_release(session)

        assert exc_info.value.status_code == 403
        assert exc_info.value.url == LATEST_URL

    def test_transport_error(self):
        """requests exceptions are wrapped in NetworkError."""
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("offline")

        with pytest.raises(NetworkError) as exc_info:
            fetch_latest_release(session)

        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_malformed_json(self):
        session = MagicMock()
        session.get.return_value = make_response(200)

        with pytest.raises(NetworkError, match="Malformed release JSON"):
            fetch_latest_release(session)

    def test_creates_and_closes_own_session(self, release_payload):
        """Without a session, a temporary one is created and closed."""
        with patch("codeowners_client._core.release.requests.Session") as mock_session_cls:
            session = MagicMock()
            session.get.return_value = make_response(200, release_payload)
            mock_session_cls.return_value = session

            fetch_latest_release()

            session.close.assert_called_once()


class TestParseRelease:
    """Tests for parse_release function."""

    def test_missing_tag(self):
        with pytest.raises(NetworkError, match="tag_name"):
            parse_release({"assets": []})

    def test_missing_assets(self):
        with pytest.raises(NetworkError, match="assets"):
            parse_release({"tag_name": "v1.0.0"})

    def test_not_an_object(self):
        with pytest.raises(NetworkError):
            parse_release(["v1.0.0"])

    def test_skips_incomplete_assets(self):
        release = parse_release({
            "tag_name": "v1.0.0",
            "assets": [{"name": "no-url"}, {"name": "ok", "browser_download_url": "https://x/ok"}],
        })

        assert [a.name for a in release.assets] == ["ok"]

    def test_asset_list_is_a_snapshot(self, release_payload):
        release = parse_release(release_payload)
        release_payload["assets"].clear()

        assert len(release.assets) == 2


class TestDownloadAsset:
    """Tests for download_asset function."""

    def test_streams_chunks(self):
        session = MagicMock()
        session.get.return_value = make_response(200, chunks=[b"abc", b"", b"def"])

        data = b"".join(download_asset("https://example.com/bin", session))

        assert data == b"abcdef"
        assert session.get.call_args[1]["stream"] is True

    def test_follows_redirects(self):
        """GitHub download URLs redirect to object storage."""
        session = MagicMock()
        session.get.side_effect = [
            make_response(302, location="https://objects.githubusercontent.com/bin"),
            make_response(200, chunks=[b"binary"]),
        ]

        data = b"".join(download_asset("https://github.com/x/releases/download/v1/bin", session))

        assert data == b"binary"
        assert session.get.call_args_list[1][0][0] == "https://objects.githubusercontent.com/bin"

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value = make_response(404)

        with pytest.raises(NetworkError) as exc_info:
            list(download_asset("https://example.com/missing", session))

        assert exc_info.value.status_code == 404

    def test_interrupted_stream(self):
        session = MagicMock()
        response = make_response(200)
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("reset")
        session.get.return_value = response

        with pytest.raises(NetworkError, match="interrupted"):
            list(download_asset("https://example.com/bin", session))

    def test_lazy_until_iterated(self):
        session = MagicMock()

        download_asset("https://example.com/bin", session)

        session.get.assert_not_called()
