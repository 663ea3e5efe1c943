"""Tests for auth module."""
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from feedsync import auth
from feedsync.errors import CredentialParseError


class TestLoadFromPass:
    """Tests for load_from_pass function."""

    def test_successful_load(self):
        """Should parse pass output correctly."""
        mock_output = "FEED_USERNAME=echo\nFEED_PASSWORD=secret123\n"
        with patch('subprocess.run') as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout=mock_output)
            result = auth.load_from_pass("api/test")

        assert result == {"FEED_USERNAME": "echo", "FEED_PASSWORD": "secret123"}

    def test_skips_comments_and_empty_lines(self):
        mock_output = "# Comment\n\nFEED_USERNAME=test\n  \n"
        with patch('subprocess.run') as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout=mock_output)
            result = auth.load_from_pass("api/test")

        assert result == {"FEED_USERNAME": "test"}

    def test_returns_none_on_failure(self):
        with patch('subprocess.run') as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            assert auth.load_from_pass("api/nonexistent") is None

    def test_returns_none_on_exception(self):
        with patch('subprocess.run') as mock_run:
            mock_run.side_effect = subprocess.TimeoutExpired("pass", 5)
            assert auth.load_from_pass("api/test") is None

    def test_returns_none_when_pass_missing(self):
        with patch('subprocess.run', side_effect=FileNotFoundError("pass")):
            assert auth.load_from_pass("api/test") is None


class TestLoadCredentials:
    def test_environment_overrides_pass(self, monkeypatch):
        monkeypatch.setattr(auth, "load_from_pass", lambda _p=None: {"FEED_USERNAME": "frompass", "FEED_PASSWORD": "pw"})
        monkeypatch.setenv("FEED_USERNAME", "@fromenv")
        for key in ("FEED_PASSWORD", "FEED_EMAIL", "FEED_COOKIES", "FEED_DRY_RUN"):
            monkeypatch.delenv(key, raising=False)

        creds = auth.load_credentials()

        assert creds.username == "fromenv"
        assert creds.password == "pw"
        assert creds.cookies is None
        assert creds.dry_run is False

    def test_dry_run_flag(self):
        creds = auth.load_credentials({"FEED_USERNAME": "echo", "FEED_DRY_RUN": "True"})
        assert creds.dry_run is True

    def test_exits_without_username(self):
        with pytest.raises(SystemExit):
            auth.load_credentials({"FEED_PASSWORD": "pw"})


class TestParseCookies:
    def test_parses_json_array(self):
        cookies = auth.parse_cookies('[{"key": "ct0", "value": "abc", "httpOnly": false}]')
        assert cookies[0].key == "ct0"
        assert cookies[0].http_only is False
        assert cookies[0].same_site == "Lax"

    def test_accepts_decoded_list(self):
        assert auth.parse_cookies([{"key": "a", "value": "b"}])[0].value == "b"

    @pytest.mark.parametrize("raw", ["{not json", '{"key": "a"}', '[{"value": "x"}]', '["str"]'])
    def test_rejects_malformed(self, raw):
        with pytest.raises(CredentialParseError):
            auth.parse_cookies(raw)
