"""
Tests for the Google Books metadata provider.

HTTP traffic is mocked with aioresponses; no test reaches the network.
"""
import re

import pytest
from aiohttp import ClientConnectionError, ClientSession

from app.internal.metadata.google_books import (
    GoogleBooksProvider,
    is_valid_book_details,
    search_cache,
)
from app.util.exceptions import MetadataProviderError

VOLUME_URL = "https://www.googleapis.com/books/v1/volumes/abc123"
SEARCH_PATTERN = re.compile(r"^https://www\.googleapis\.com/books/v1/volumes\?.*$")


class TestIsValidBookDetails:
    def test_volume_with_title_is_valid(self):
        assert is_valid_book_details({"volumeInfo": {"title": "Dune"}}) is True

    @pytest.mark.parametrize(
        "book_details",
        [
            None,
            "Dune",
            [],
            {},
            {"volumeInfo": None},
            {"volumeInfo": "Dune"},
            {"volumeInfo": {}},
            {"volumeInfo": {"title": None}},
            {"volumeInfo": {"title": ""}},
            {"volumeInfo": {"title": "  "}},
            {"volumeInfo": {"title": 42}},
            {"title": "Dune"},
        ],
    )
    def test_anything_else_is_stale(self, book_details):
        assert is_valid_book_details(book_details) is False


class TestResolveQuickLink:
    def test_bare_id_resolves_to_volume_url(self):
        provider = GoogleBooksProvider(client_session=None, api_key="")  # pyright: ignore[reportArgumentType]
        assert provider.resolve_quick_link("abc123") == VOLUME_URL

    def test_http_link_is_upgraded(self):
        provider = GoogleBooksProvider(client_session=None, api_key="")  # pyright: ignore[reportArgumentType]
        assert provider.resolve_quick_link("http://www.googleapis.com/books/v1/volumes/abc123") == VOLUME_URL

    def test_https_link_is_kept(self):
        provider = GoogleBooksProvider(client_session=None, api_key="")  # pyright: ignore[reportArgumentType]
        assert provider.resolve_quick_link(f"  {VOLUME_URL} ") == VOLUME_URL


class TestFetchByLink:
    @pytest.mark.asyncio
    async def test_fetch_returns_volume_payload(self, aioresponses_mocker, google_volume_response):
        aioresponses_mocker.get(VOLUME_URL, payload=google_volume_response)

        async with ClientSession() as session:
            details = await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

        assert details["id"] == "abc123"
        assert details["volumeInfo"]["title"] == "The Way of Kings"
        assert details["volumeInfo"]["publisher"] == "Tor Books"
        # unknown fields are kept
        assert details["kind"] == "books#volume"
        assert is_valid_book_details(details)

    @pytest.mark.asyncio
    async def test_fetch_by_full_link(self, aioresponses_mocker, google_volume_response):
        aioresponses_mocker.get(VOLUME_URL, payload=google_volume_response)

        async with ClientSession() as session:
            details = await GoogleBooksProvider(session, api_key="").fetch_by_link(
                "http://www.googleapis.com/books/v1/volumes/abc123"
            )

        assert details["volumeInfo"]["title"] == "The Way of Kings"

    @pytest.mark.asyncio
    async def test_api_key_is_sent(self, aioresponses_mocker, google_volume_response):
        aioresponses_mocker.get(f"{VOLUME_URL}?key=secret", payload=google_volume_response)

        async with ClientSession() as session:
            details = await GoogleBooksProvider(session, api_key="secret").fetch_by_link("abc123")

        assert details["id"] == "abc123"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, aioresponses_mocker):
        aioresponses_mocker.get(VOLUME_URL, status=503)

        async with ClientSession() as session:
            with pytest.raises(MetadataProviderError, match="503"):
                await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

    @pytest.mark.asyncio
    async def test_not_found_raises(self, aioresponses_mocker):
        aioresponses_mocker.get(VOLUME_URL, status=404, payload={"error": {"code": 404}})

        async with ClientSession() as session:
            with pytest.raises(MetadataProviderError):
                await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, aioresponses_mocker):
        aioresponses_mocker.get(VOLUME_URL, exception=ClientConnectionError("connection reset"))

        async with ClientSession() as session:
            with pytest.raises(MetadataProviderError) as exc_info:
                await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

        assert isinstance(exc_info.value.__cause__, ClientConnectionError)

    @pytest.mark.asyncio
    async def test_invalid_volume_raises(self, aioresponses_mocker):
        aioresponses_mocker.get(VOLUME_URL, payload={"volumeInfo": {"authors": "not-a-list"}})

        async with ClientSession() as session:
            with pytest.raises(MetadataProviderError, match="invalid volume"):
                await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

    @pytest.mark.asyncio
    async def test_volume_without_title_is_returned_as_is(self, aioresponses_mocker):
        """Title checks belong to callers; the provider only validates the shape."""
        aioresponses_mocker.get(VOLUME_URL, payload={"id": "abc123", "volumeInfo": {}})

        async with ClientSession() as session:
            details = await GoogleBooksProvider(session, api_key="").fetch_by_link("abc123")

        assert not is_valid_book_details(details)


class TestSearchVolumes:
    @pytest.mark.asyncio
    async def test_search_maps_results(self, aioresponses_mocker, google_search_response):
        aioresponses_mocker.get(SEARCH_PATTERN, payload=google_search_response)

        async with ClientSession() as session:
            results = await GoogleBooksProvider(session, api_key="").search_volumes("stormlight")

        assert [r.title for r in results] == ["The Way of Kings", "Words of Radiance"]
        first, second = results
        assert first.quick_link == VOLUME_URL
        assert first.authors == ["Brandon Sanderson"]
        assert first.isbn == "9780765326355"
        assert first.cover_image.startswith("https://")
        assert second.quick_link == "https://www.googleapis.com/books/v1/volumes/def456"
        assert second.cover_image is None

    @pytest.mark.asyncio
    async def test_search_skips_untitled_items(self, aioresponses_mocker):
        aioresponses_mocker.get(
            SEARCH_PATTERN,
            payload={"items": [{"id": "x1", "volumeInfo": {}}], "totalItems": 1},
        )

        async with ClientSession() as session:
            results = await GoogleBooksProvider(session, api_key="").search_volumes("nothing")

        assert results == []

    @pytest.mark.asyncio
    async def test_search_results_are_cached(self, aioresponses_mocker, google_search_response):
        aioresponses_mocker.get(SEARCH_PATTERN, payload=google_search_response)

        async with ClientSession() as session:
            provider = GoogleBooksProvider(session, api_key="")
            first = await provider.search_volumes("stormlight")
            # only one response is registered; a second HTTP call would fail
            second = await provider.search_volumes("stormlight")

        assert first == second
        assert search_cache.get_metrics().hits >= 1

    @pytest.mark.asyncio
    async def test_search_failure_raises(self, aioresponses_mocker):
        aioresponses_mocker.get(SEARCH_PATTERN, status=500)

        async with ClientSession() as session:
            with pytest.raises(MetadataProviderError):
                await GoogleBooksProvider(session, api_key="").search_volumes("stormlight")

        assert search_cache.size() == 0
