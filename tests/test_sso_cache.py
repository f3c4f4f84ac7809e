"""Tests for reading and validating the cached SSO token."""

from __future__ import annotations

import dataclasses
import datetime

import pytest

from awsso.profiles.resolver import Profile, resolve_profile
from awsso.settings import Settings
from awsso.sso.cache import (
    SessionExpiredError,
    SessionMissingError,
    SessionRegionMismatchError,
    SsoCacheReader,
    cache_key,
    parse_expires_at,
)
from awsso.store.config_store import parse

from conftest import CONFIG_TEXT, NOW, write_sso_cache


class TestCacheKey:
    def test_is_lowercase_hex_sha1(self) -> None:
        assert cache_key("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_cache_path_uses_start_url(self, settings: Settings, dev_profile: Profile) -> None:
        reader = SsoCacheReader(settings.sso_cache_dir)
        expected = cache_key("https://x.awsapps.com/start") + ".json"
        assert reader.cache_path(dev_profile).name == expected

    def test_sso_session_profiles_key_on_session_name(self, settings: Settings) -> None:
        profile = resolve_profile(parse(CONFIG_TEXT), "modern")
        reader = SsoCacheReader(settings.sso_cache_dir)
        assert reader.cache_path(profile).name == cache_key("corp") + ".json"


class TestLoad:
    def test_valid_session(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1")
        session = SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

        assert session.start_url == "https://x.awsapps.com/start"
        assert session.region == "eu-west-1"
        assert session.access_token == "sso-token"
        assert session.expires_at == datetime.datetime(2026, 1, 1, 13, tzinfo=datetime.UTC)

    def test_token_is_not_in_repr(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1", access_token="s3cr3t")
        session = SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)
        assert "s3cr3t" not in repr(session)

    def test_missing_file_tells_user_to_log_in(self, settings: Settings, dev_profile: Profile) -> None:
        with pytest.raises(SessionMissingError, match="aws sso login --profile dev"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_invalid_json_is_missing(self, settings: Settings, dev_profile: Profile) -> None:
        path = write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1")
        path.write_text("{not json")
        with pytest.raises(SessionMissingError, match="not valid JSON"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_token_without_access_token_is_missing(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1", access_token="")
        with pytest.raises(SessionMissingError, match="accessToken"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_unparsable_expiry_is_missing(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1", expires_at="tomorrow")
        with pytest.raises(SessionMissingError, match="expiresAt"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_region_mismatch(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="us-east-1")
        with pytest.raises(SessionRegionMismatchError, match="does not match"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_region_is_checked_before_expiry(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(
            settings,
            dev_profile.sso_start_url,
            region="us-east-1",
            expires_at="2020-01-01T00:00:00Z",
        )
        with pytest.raises(SessionRegionMismatchError):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_expired_session(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(
            settings, dev_profile.sso_start_url, region="eu-west-1", expires_at="2026-01-01T11:59:59Z"
        )
        with pytest.raises(SessionExpiredError, match="--login"):
            SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)

    def test_session_valid_at_exact_expiry(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(
            settings, dev_profile.sso_start_url, region="eu-west-1", expires_at="2026-01-01T12:00:00Z"
        )
        session = SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)
        assert not session.is_expired(NOW)

    def test_expiry_moves_with_now(self, settings: Settings, dev_profile: Profile) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1")
        reader = SsoCacheReader(settings.sso_cache_dir)
        reader.load(dev_profile, NOW)
        with pytest.raises(SessionExpiredError):
            reader.load(dev_profile, NOW + datetime.timedelta(hours=2))

    def test_reader_never_writes(self, settings: Settings, dev_profile: Profile) -> None:
        path = write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1")
        before = path.read_bytes()
        SsoCacheReader(settings.sso_cache_dir).load(dev_profile, NOW)
        assert path.read_bytes() == before
        assert len(list(settings.sso_cache_dir.iterdir())) == 1

    def test_profile_region_change_invalidates_session(
        self, settings: Settings, dev_profile: Profile
    ) -> None:
        write_sso_cache(settings, dev_profile.sso_start_url, region="eu-west-1")
        moved = dataclasses.replace(dev_profile, sso_region="ap-southeast-2")
        with pytest.raises(SessionRegionMismatchError):
            SsoCacheReader(settings.sso_cache_dir).load(moved, NOW)


class TestParseExpiresAt:
    def test_zulu(self) -> None:
        assert parse_expires_at("2026-01-01T12:00:00Z") == NOW

    def test_legacy_utc_suffix(self) -> None:
        assert parse_expires_at("2026-01-01T12:00:00UTC") == NOW

    def test_explicit_offset(self) -> None:
        assert parse_expires_at("2026-01-01T14:00:00+02:00") == NOW

    def test_naive_is_utc(self) -> None:
        assert parse_expires_at("2026-01-01T12:00:00") == NOW

    def test_fractional_seconds(self) -> None:
        parsed = parse_expires_at("2026-01-01T12:00:00.500Z")
        assert parsed - NOW == datetime.timedelta(milliseconds=500)

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_expires_at("soon")
