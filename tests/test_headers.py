"""Tests for cachestatus.models.headers: header normalisation."""

from __future__ import annotations

from types import SimpleNamespace

import pydantic
import pytest

from cachestatus.models.headers import TRACKED_HEADERS, HeaderSet


class TestFromRaw:
    """Tests for HeaderSet.from_raw()."""

    def test_webrequest_list(self, cloudflare_hit_headers: list[dict[str, str]]) -> None:
        headers = HeaderSet.from_raw(cloudflare_hit_headers)
        assert dict(headers.items()) == {
            "cf-cache-status": "HIT",
            "cf-ray": "8a1b2c3d4e5f-FRA",
            "server": "cloudflare",
            "content-type": "text/html; charset=utf-8",
        }

    def test_mapping_names_are_lowercased(self, cloudfront_miss_headers: dict[str, str]) -> None:
        headers = HeaderSet.from_raw(cloudfront_miss_headers)
        assert set(headers) == {"x-amz-cf-id", "x-amz-cf-pop", "x-cache", "age"}

    def test_values_are_kept_raw(self) -> None:
        headers = HeaderSet.from_raw({"X-Cache": "  Hit from CloudFront "})
        assert headers["x-cache"] == "  Hit from CloudFront "

    def test_unknown_headers_dropped(self) -> None:
        headers = HeaderSet.from_raw({"set-cookie": "a=1", "x-powered-by": "PHP"})
        assert len(headers) == 0

    def test_last_value_wins(self) -> None:
        headers = HeaderSet.from_raw([("Age", "10"), ("age", "20")])
        assert headers["age"] == "20"

    def test_entries_without_string_value_skipped(self) -> None:
        headers = HeaderSet.from_raw([
            {"name": "x-cache"},
            {"name": "age", "value": None},
            {"name": "via", "value": "1.1 varnish"},
        ])
        assert dict(headers.items()) == {"via": "1.1 varnish"}

    def test_objects_with_name_and_value(self) -> None:
        raw = [SimpleNamespace(name="Server", value="AkamaiGHost")]
        assert HeaderSet.from_raw(raw).get("server") == "AkamaiGHost"

    def test_none_is_empty(self) -> None:
        assert len(HeaderSet.from_raw(None)) == 0

    def test_only_allowlisted_names_stored(self) -> None:
        raw = {name.upper(): "x" for name in TRACKED_HEADERS}
        raw["x-unrelated"] = "y"
        headers = HeaderSet.from_raw(raw)
        assert set(headers) == set(TRACKED_HEADERS)


class TestHeaderSetMapping:
    """Mapping behaviour and immutability."""

    def test_get_default(self) -> None:
        assert HeaderSet.empty().get("age", "n/a") == "n/a"

    def test_contains(self) -> None:
        headers = HeaderSet.from_raw({"age": "1"})
        assert "age" in headers
        assert "via" not in headers

    def test_equality_by_content(self) -> None:
        assert HeaderSet.from_raw({"Age": "1"}) == HeaderSet.from_raw([{"name": "age", "value": "1"}])

    def test_frozen(self) -> None:
        headers = HeaderSet.from_raw({"age": "1"})
        with pytest.raises(pydantic.ValidationError):
            headers.root = {}  # type: ignore[misc]

    def test_serializes_as_plain_mapping(self) -> None:
        assert HeaderSet.from_raw({"Age": "5"}).model_dump() == {"age": "5"}
