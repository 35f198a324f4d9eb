"""Tests for settings validation, credential resolution, headers and debug output."""

import json
import logging

import pytest
from pydantic import ValidationError

from linkedin_cli.core.config import Settings
from linkedin_cli.core.debug import get_debug_logger
from linkedin_cli.core.exceptions import CredentialsError
from linkedin_cli.linkedin.auth import MISSING_CREDENTIALS_MESSAGE, build_cookie_header, resolve_credentials
from linkedin_cli.linkedin.headers import (
    CLIENT_VERSION,
    build_flagship_headers,
    build_headers,
    build_li_track_header,
    build_web_headers,
)


def make_settings(**overrides) -> Settings:
    values = {"_env_file": None, "LINKEDIN_LI_AT": None, "LINKEDIN_JSESSIONID": None}
    values.update(overrides)
    return Settings(**values)


class TestSettings:
    def test_defaults(self):
        settings = make_settings()

        assert settings.LI_REQUEST_DELAY_MIN_MS is None
        assert settings.LI_REQUEST_TIMEOUT_SECONDS == 30.0
        assert settings.LINKEDIN_MESSAGING_HAR == "www.linkedin.com.fullv3.har"
        assert settings.LI_QUERY_ID_MAX_BUNDLES == 200
        assert settings.LI_QUERY_ID_TIMEOUT_MS == 20000
        assert settings.LI_DEBUG_QUERY_IDS is False
        assert settings.LI_EXPERIMENTAL_CONNECTIONS_OF_SEARCH_DASH is False

    def test_blank_delay_means_unset(self):
        settings = make_settings(LI_REQUEST_DELAY_MIN_MS=" ", LI_REQUEST_DELAY_MAX_MS="250")

        assert settings.LI_REQUEST_DELAY_MIN_MS is None
        assert settings.LI_REQUEST_DELAY_MAX_MS == 250

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LI_REQUEST_DELAY_MIN_MS=-5)

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LI_REQUEST_DELAY_MIN_MS=900, LI_REQUEST_DELAY_MAX_MS=100)

    @pytest.mark.parametrize("field", ["LI_QUERY_ID_MAX_BUNDLES", "LI_QUERY_ID_TIMEOUT_MS"])
    def test_discovery_limits_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            make_settings(**{field: 0})

    def test_jsessionid_quotes_stripped(self):
        settings = make_settings(LINKEDIN_JSESSIONID='"ajax:42"')

        assert settings.LINKEDIN_JSESSIONID == "ajax:42"


class TestResolveCredentials:
    def test_cli_values(self):
        credentials = resolve_credentials(li_at="AQED", jsession_id='"ajax:1"', settings=make_settings())

        assert credentials.li_at == "AQED"
        assert credentials.jsession_id == "ajax:1"
        assert credentials.csrf_token == "ajax:1"
        assert credentials.cookie_header == 'li_at=AQED; JSESSIONID="ajax:1"'
        assert credentials.source == "cli"

    def test_environment_values(self):
        settings = make_settings(LINKEDIN_LI_AT=" env-at ", LINKEDIN_JSESSIONID="ajax:env")

        credentials = resolve_credentials(settings=settings)

        assert credentials.li_at == "env-at"
        assert credentials.jsession_id == "ajax:env"
        assert credentials.source == "env"

    def test_cli_wins_and_mixes_with_environment(self):
        settings = make_settings(LINKEDIN_LI_AT="env-at", LINKEDIN_JSESSIONID="ajax:env")

        credentials = resolve_credentials(li_at="cli-at", settings=settings)

        assert credentials.li_at == "cli-at"
        assert credentials.jsession_id == "ajax:env"
        assert credentials.source == "cli+env"

    @pytest.mark.parametrize("li_at,jsession_id", [(None, None), ("AQED", None), (None, "ajax:1"), ("  ", '""')])
    def test_missing_cookie_raises(self, li_at, jsession_id):
        with pytest.raises(CredentialsError) as exc_info:
            resolve_credentials(li_at=li_at, jsession_id=jsession_id, settings=make_settings())

        assert str(exc_info.value) == MISSING_CREDENTIALS_MESSAGE

    def test_credentials_are_immutable(self):
        credentials = resolve_credentials(li_at="AQED", jsession_id="ajax:1", settings=make_settings())

        with pytest.raises(ValidationError):
            credentials.li_at = "other"

    def test_cookie_header_quotes_jsessionid_once(self):
        assert build_cookie_header("a", '"ajax:9"') == 'li_at=a; JSESSIONID="ajax:9"'


class TestHeaders:
    @pytest.fixture
    def creds(self):
        return resolve_credentials(li_at="AQED", jsession_id="ajax:1", settings=make_settings())

    def test_voyager_headers(self, creds):
        headers = build_headers(creds)

        assert headers["Cookie"] == creds.cookie_header
        assert headers["csrf-token"] == "ajax:1"
        assert headers["X-Restli-Protocol-Version"] == "2.0.0"
        assert headers["X-Li-Lang"] == "en_US"
        assert "Chrome" in headers["User-Agent"]

    def test_li_track_descriptor(self):
        track = json.loads(build_li_track_header())

        assert track["clientVersion"] == CLIENT_VERSION
        assert track["osName"] == "web"
        assert track["deviceFormFactor"] == "DESKTOP"
        assert isinstance(track["timezoneOffset"], (int, float))
        assert track["timezone"]

    def test_web_headers_depend_on_accept(self, creds):
        html = build_web_headers(creds)
        script = build_web_headers(creds, accept="*/*")

        assert html["sec-fetch-dest"] == "document"
        assert script["sec-fetch-dest"] == "script"
        assert "csrf-token" not in html

    def test_flagship_headers(self, creds):
        base = build_headers(creds)
        headers = build_flagship_headers(
            creds,
            referer="https://www.linkedin.com/search/results/people/?keywords=x",
            page_instance="urn:li:page:test",
            rsc_stream=True,
            base_headers=base,
        )

        assert headers["Referer"] == "https://www.linkedin.com/search/results/people/?keywords=x"
        assert headers["X-Li-Page-Instance"] == "urn:li:page:test"
        assert headers["X-Li-Rsc-Stream"] == "true"
        assert headers["Content-Type"] == "application/json"
        assert headers["csrf-token"] == "ajax:1"
        assert base["Accept"] == "application/vnd.linkedin.normalized+json+2.1"

    def test_flagship_headers_without_stream(self, creds):
        headers = build_flagship_headers(creds, referer="r", page_instance="p")

        assert "X-Li-Rsc-Stream" not in headers


class TestDebugLogger:
    def test_enabled_logger_writes_tagged_lines(self, capsys):
        debug = get_debug_logger("unit-test", True)

        debug.debug("hello world")

        assert "[li][unit-test] hello world" in capsys.readouterr().err

    def test_disabled_logger_is_silent(self, capsys):
        debug = get_debug_logger("unit-test-off", False)

        debug.debug("hidden")

        assert capsys.readouterr().err == ""
        assert not debug.isEnabledFor(logging.DEBUG)

    def test_handler_installed_once(self):
        get_debug_logger("unit-test-once", True)
        debug = get_debug_logger("unit-test-once", False)

        assert len(debug.handlers) == 1
