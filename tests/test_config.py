"""Tests for settings and site configuration parsing."""

import json

import pytest

from feedpinger.config import (
    ConfigError,
    PingOMaticConfig,
    Settings,
    SiteConfig,
    dump_site_configs,
    parse_site_configs,
)

SITE = {
    "id": "blog",
    "host": "example.com",
    "feedUrl": "https://example.com/feed.json",
    "indexNowKeyEnv": "INDEXNOW_KEY_BLOG",
    "pingOMatic": {
        "title": "Example Blog",
        "blogUrl": "https://example.com",
        "rssUrl": "https://example.com/feed.json",
    },
    "webSubHubUrl": "https://pubsubhubbub.appspot.com/publish",
}


class TestSiteConfig:
    def test_parses_camel_case(self):
        site = SiteConfig.model_validate(SITE)

        assert site.feed_url == "https://example.com/feed.json"
        assert site.index_now_key_env == "INDEXNOW_KEY_BLOG"
        assert site.ping_o_matic.blog_url == "https://example.com"
        assert site.web_sub_hub_url == "https://pubsubhubbub.appspot.com/publish"

    def test_accepts_snake_case(self):
        site = SiteConfig(id="blog", host="example.com", feed_url="https://example.com/feed.json")

        assert site.ping_o_matic is None
        assert site.web_sub_hub_url is None
        assert site.index_now_key_env == ""

    def test_id_is_required(self):
        with pytest.raises(ValueError):
            SiteConfig.model_validate({"host": "example.com", "feedUrl": "https://example.com/f"})

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            SiteConfig.model_validate({**SITE, "id": ""})

    def test_partial_ping_o_matic_is_allowed(self):
        """Completeness is checked by the notifier, not at load time."""
        site = SiteConfig.model_validate({**SITE, "pingOMatic": {"title": "Only a title"}})

        assert site.ping_o_matic.is_complete is False

    def test_complete_ping_o_matic(self):
        config = PingOMaticConfig(title="t", blog_url="b", rss_url="r")
        assert config.is_complete is True


class TestParseSiteConfigs:
    def test_from_json_string(self):
        sites = parse_site_configs(json.dumps([SITE]))
        assert [s.id for s in sites] == ["blog"]

    def test_from_list(self):
        assert parse_site_configs([SITE])[0].host == "example.com"

    def test_invalid_json(self):
        with pytest.raises(ConfigError, match="not valid JSON"):
            parse_site_configs("[{")

    def test_not_an_array(self):
        with pytest.raises(ConfigError, match="array"):
            parse_site_configs('{"id": "blog"}')

    def test_invalid_entry(self):
        with pytest.raises(ConfigError, match="Invalid site configuration"):
            parse_site_configs([{"id": "blog"}])

    def test_dump_round_trip(self):
        sites = parse_site_configs([SITE])

        dumped = dump_site_configs(sites)

        assert dumped == [SITE]

    def test_dump_omits_unset_optionals(self):
        site = SiteConfig(id="blog", host="example.com", feed_url="https://example.com/feed.json")

        dumped = dump_site_configs([site])[0]

        assert "pingOMatic" not in dumped
        assert "webSubHubUrl" not in dumped


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.first_run_window_hours == 24
        assert settings.index_now_endpoint == "https://api.indexnow.org/IndexNow"
        assert settings.ping_o_matic_endpoint == "https://pingomatic.com/ping/"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FIRST_RUN_WINDOW_HOURS", "48")
        monkeypatch.setenv("STORE_BACKEND", "memory")

        settings = Settings(_env_file=None)

        assert settings.first_run_window_hours == 48
        assert settings.store_backend == "memory"

    def test_admin_configured(self):
        assert Settings(_env_file=None, admin_username=None).admin_configured is False
        assert (
            Settings(_env_file=None, admin_username="admin", admin_password="pw").admin_configured
            is True
        )

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, first_run_window_hours=0)
