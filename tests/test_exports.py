"""Tests for package exports."""


def test_cache_exports_available() -> None:
    """Test that the cache API is importable from the package root."""
    from consigncache import (
        BulkCache,
        CacheConfig,
        CacheManager,
        CachingClient,
        fingerprint,
        is_compatible,
        parse_duration,
    )

    # Just verify they're importable
    assert BulkCache is not None
    assert CacheConfig is not None
    assert CacheManager is not None
    assert CachingClient is not None
    assert fingerprint is not None
    assert is_compatible is not None
    assert parse_duration is not None


def test_upstream_exports_available() -> None:
    """Test that the upstream API is importable from the package root."""
    from consigncache import (
        ConsignCloudClient,
        Page,
        UpstreamClient,
        UpstreamConnectionError,
        UpstreamError,
    )

    assert issubclass(UpstreamConnectionError, UpstreamError)
    assert ConsignCloudClient is not None
    assert Page is not None
    assert UpstreamClient is not None


def test_http_client_satisfies_protocol() -> None:
    """Test that ConsignCloudClient implements the upstream protocol."""
    from consigncache import ConsignCloudClient, UpstreamClient

    client = ConsignCloudClient(api_key="test")
    assert isinstance(client, UpstreamClient)
