"""Unit tests for GeoResolver."""
import asyncio
import logging
from unittest.mock import AsyncMock

from location.geo_resolver import (
    GeoResolver,
    LocationDenied,
    LocationStore,
    ResolverState,
    StaticLocationProvider,
    UserLocation,
)


class SlowProvider:
    """Provider that never answers within the test timeout."""

    async def get_current_position(self, high_accuracy, timeout, maximum_age):
        await asyncio.sleep(5)
        return 1.0, 2.0


class TestGeoResolver:
    """Test cases for GeoResolver class."""

    def test_resolves_and_stores_location(self):
        """Test a successful resolution is kept in the session store."""
        store = LocationStore()
        resolver = GeoResolver(StaticLocationProvider(38.9, -77.0), store=store)

        location = asyncio.run(resolver.resolve())

        assert location == UserLocation(lat=38.9, lon=-77.0)
        assert location.is_resolved
        assert resolver.state is ResolverState.RESOLVED
        assert store.current() == location

    def test_requests_high_accuracy_fresh_position(self):
        """Test the options passed to the provider."""
        provider = AsyncMock()
        provider.get_current_position.return_value = (1.0, 2.0)
        resolver = GeoResolver(provider)

        asyncio.run(resolver.resolve())

        provider.get_current_position.assert_awaited_once_with(
            high_accuracy=True, timeout=10.0, maximum_age=0
        )

    def test_no_provider_is_denied(self):
        """Test that a platform without geolocation resolves as denied."""
        resolver = GeoResolver(None)

        location = asyncio.run(resolver.resolve())

        assert location.permission_denied
        assert not location.is_resolved
        assert resolver.store.current() is None

    def test_permission_denied(self, caplog):
        """Test that a refusal resolves as denied without raising."""
        provider = AsyncMock()
        provider.get_current_position.side_effect = LocationDenied()
        resolver = GeoResolver(provider)

        with caplog.at_level(logging.WARNING):
            location = asyncio.run(resolver.resolve())

        assert location == UserLocation.denied()
        assert any('denied' in record.message for record in caplog.records)

    def test_timeout(self):
        """Test that a slow provider is abandoned after the timeout."""
        resolver = GeoResolver(SlowProvider(), timeout=0.01)

        location = asyncio.run(resolver.resolve())

        assert location.permission_denied
        assert resolver.state is ResolverState.RESOLVED

    def test_provider_error(self):
        """Test that unexpected provider errors degrade to denied."""
        provider = AsyncMock()
        provider.get_current_position.side_effect = OSError('sensor unavailable')
        resolver = GeoResolver(provider)

        location = asyncio.run(resolver.resolve())

        assert location.permission_denied

    def test_resolves_only_once(self):
        """Test that later calls never contact the provider again."""
        provider = AsyncMock()
        provider.get_current_position.return_value = (1.0, 2.0)
        resolver = GeoResolver(provider)

        async def resolve_twice():
            first = await resolver.resolve()
            second = await resolver.resolve()
            return first, second

        first, second = asyncio.run(resolve_twice())

        assert first == second
        provider.get_current_position.assert_awaited_once()

    def test_reentrant_call_while_resolving(self):
        """Test that a call made during resolution is a no-op."""
        resolver = GeoResolver(SlowProvider(), timeout=0.05)

        async def overlapping():
            task = asyncio.ensure_future(resolver.resolve())
            await asyncio.sleep(0)
            assert resolver.state is ResolverState.RESOLVING
            during = await resolver.resolve()
            after = await task
            return during, after

        during, after = asyncio.run(overlapping())

        assert during is None
        assert after.permission_denied

    def test_denied_location_not_stored(self):
        """Test that the session store only keeps usable coordinates."""
        store = LocationStore()
        store.save(UserLocation.denied())

        assert store.current() is None
