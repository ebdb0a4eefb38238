# Tests for latencymap/registry.py

import logging

import pytest

from latencymap.models import ExchangeMapping, ExchangeRegion
from latencymap.registry import (
    RegistryError,
    endpoints_by_provider,
    endpoints_for_regions,
    get_endpoint,
    get_endpoint_map,
    get_exchange_mapping,
    get_primary_region,
    list_endpoints,
    list_exchanges,
    parse_endpoints,
    parse_exchanges,
    validate_registry,
)

RAW_REGION = {
    "region": "eu-central-1",
    "address": "https://s3.eu-central-1.amazonaws.com",
    "provider": "AWS",
    "location": {"city": "Frankfurt", "country": "Germany", "latitude": 50.11, "longitude": 8.68},
}


class TestPackagedData:
    def test_registry_loads(self):
        endpoints = list_endpoints()
        assert len(endpoints) == 55
        assert len(get_endpoint_map()) == len(endpoints)

    def test_packaged_data_is_consistent(self):
        validate_registry()

    def test_lookup(self):
        ep = get_endpoint("us-east-1")
        assert ep is not None
        assert ep.provider == "AWS"
        assert ep.address.startswith("https://")
        assert get_endpoint("mars-north-1") is None

    def test_endpoints_by_provider(self):
        for provider in ("AWS", "GCP", "Azure"):
            eps = endpoints_by_provider(provider)
            assert eps
            assert all(ep.provider == provider for ep in eps)

    def test_exchanges(self):
        names = list_exchanges()
        assert "Binance" in names
        assert len(names) == 13

    def test_exchange_lookup_is_case_insensitive(self):
        assert get_exchange_mapping("binance").exchange == "Binance"
        assert get_exchange_mapping("OKX").exchange == "OKX"

    def test_unknown_exchange_raises(self):
        with pytest.raises(ValueError, match="Unknown exchange"):
            get_exchange_mapping("MtGox")

    def test_primary_region(self):
        primary = get_primary_region("Binance")
        assert primary.region_id == "ap-northeast-1"
        assert primary.primary is True


class TestParsing:
    def test_parse_endpoints(self):
        endpoints = parse_endpoints([RAW_REGION])
        ep = endpoints["eu-central-1"]
        assert ep.location.coordinates == (8.68, 50.11)

    def test_duplicate_region_rejected(self):
        with pytest.raises(RegistryError, match="Duplicate"):
            parse_endpoints([RAW_REGION, RAW_REGION])

    def test_malformed_region_rejected(self):
        with pytest.raises(RegistryError):
            parse_endpoints([{"region": "x"}])

    def test_parse_exchanges(self):
        mappings = parse_exchanges([
            {"exchange": "Foo", "regions": [{"region": "eu-central-1", "provider": "AWS", "primary": True}]},
        ])
        assert mappings == [ExchangeMapping("Foo", (ExchangeRegion("eu-central-1", "AWS", True),))]


class TestValidate:
    def test_unknown_region_is_fatal(self):
        endpoints = parse_endpoints([RAW_REGION])
        mappings = [ExchangeMapping("Foo", (ExchangeRegion("nowhere-1", "AWS"),))]
        with pytest.raises(RegistryError, match="unknown region"):
            validate_registry(endpoints, mappings)

    def test_provider_mismatch_is_fatal(self):
        endpoints = parse_endpoints([RAW_REGION])
        mappings = [ExchangeMapping("Foo", (ExchangeRegion("eu-central-1", "GCP"),))]
        with pytest.raises(RegistryError, match="registry says AWS"):
            validate_registry(endpoints, mappings)

    def test_unknown_provider_is_fatal(self):
        endpoints = parse_endpoints([{**RAW_REGION, "provider": "Oracle"}])
        with pytest.raises(RegistryError, match="unknown provider"):
            validate_registry(endpoints, [])

    def test_duplicate_exchange_is_fatal(self):
        endpoints = parse_endpoints([RAW_REGION])
        mappings = [ExchangeMapping("Foo"), ExchangeMapping("foo")]
        with pytest.raises(RegistryError, match="Duplicate exchange"):
            validate_registry(endpoints, mappings)


def test_endpoints_for_regions_skips_unavailable(caplog):
    with caplog.at_level(logging.WARNING, logger="latencymap.registry"):
        eps = endpoints_for_regions(["us-east-1", "atlantis-1", "us-east-1", "eu-west-1"])
    assert [ep.region_id for ep in eps] == ["us-east-1", "eu-west-1"]
    assert "atlantis-1" in caplog.text
