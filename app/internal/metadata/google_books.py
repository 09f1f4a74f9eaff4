"""
Google Books API provider for book metadata.

Books are identified by a "quick link": the volume's selfLink URL, or a bare
volume id. The payload returned for a quick link is cached on the Book row by
the user book service; this module only talks to the API.
"""
import json
from collections.abc import Mapping
from typing import Annotated, Any, Dict, List, Optional, Protocol

from aiohttp import ClientError, ClientSession
from fastapi import Depends
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.internal.env_settings import Settings
from app.util.cache import SimpleCache
from app.util.connection import get_connection
from app.util.exceptions import (
    MetadataProviderError,
    handle_external_api_error,
    handle_validation_error,
)
from app.util.log import logger

VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"


class GoogleBooksVolumeInfo(BaseModel):
    """Google Books API volume info response model."""
    model_config = ConfigDict(extra="allow")

    title: str = ""
    subtitle: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    publisher: Optional[str] = None
    publishedDate: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    imageLinks: Optional[Dict[str, str]] = None
    pageCount: Optional[int] = None
    averageRating: Optional[float] = None
    ratingsCount: Optional[int] = None
    industryIdentifiers: Optional[List[Dict[str, str]]] = None


class GoogleBooksVolume(BaseModel):
    """A single Google Books volume, as returned by the volume endpoint and inside search results."""
    model_config = ConfigDict(extra="allow")

    id: str = ""
    selfLink: Optional[str] = None
    volumeInfo: GoogleBooksVolumeInfo = Field(default_factory=GoogleBooksVolumeInfo)


class GoogleBooksResponse(BaseModel):
    """Google Books API search response model."""
    items: List[GoogleBooksVolume] = Field(default_factory=list)
    totalItems: int = 0


class BookSearchResult(BaseModel):
    quick_link: str
    title: str
    authors: List[str] = Field(default_factory=list)
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    cover_image: Optional[str] = None
    isbn: Optional[str] = None


class MetadataProvider(Protocol):
    async def fetch_by_link(self, quick_link: str) -> dict[str, Any]:
        """Return the metadata blob for a quick link, or raise MetadataProviderError."""
        ...


def is_valid_book_details(book_details: Any) -> bool:
    """Cached metadata is usable only if it is a mapping whose volumeInfo carries a non-empty title."""
    if not isinstance(book_details, Mapping):
        return False
    volume_info = book_details.get("volumeInfo")
    if not isinstance(volume_info, Mapping):
        return False
    title = volume_info.get("title")
    return isinstance(title, str) and bool(title.strip())


def _https(url: str) -> str:
    if url.startswith("http://"):
        return url.replace("http://", "https://", 1)
    return url


def _extract_isbn(volume_info: GoogleBooksVolumeInfo) -> Optional[str]:
    """Extract ISBN from industry identifiers, preferring ISBN_13."""
    if not volume_info.industryIdentifiers:
        return None

    for kind in ("ISBN_13", "ISBN_10"):
        for identifier in volume_info.industryIdentifiers:
            if identifier.get("type") == kind:
                return identifier.get("identifier")

    return None


def _get_best_cover(image_links: Optional[Dict[str, str]]) -> Optional[str]:
    if not image_links:
        return None

    for size in ["extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail"]:
        if image_links.get(size):
            return _https(image_links[size])

    return None


# (results, query, max_results)
search_cache: SimpleCache[list[BookSearchResult], str, int] = SimpleCache(
    maxsize=Settings().app.search_cache_maxsize
)


class GoogleBooksProvider:
    """Provider for Google Books volume lookups and searches."""

    client_session: ClientSession
    api_key: str
    base_url: str

    def __init__(self, client_session: ClientSession, api_key: str | None = None):
        self.client_session = client_session
        self.api_key = api_key if api_key is not None else Settings().app.google_books_api_key
        self.base_url = VOLUMES_URL

    def resolve_quick_link(self, quick_link: str) -> str:
        quick_link = quick_link.strip()
        if quick_link.startswith(("http://", "https://")):
            return _https(quick_link)
        return f"{self.base_url}/{quick_link}"

    def _params(self, **params: Any) -> dict[str, Any]:
        if self.api_key:
            params["key"] = self.api_key
        return params

    async def _get_json(self, url: str, operation: str, **params: Any) -> Any:
        try:
            async with self.client_session.get(url, params=self._params(**params)) as response:
                if response.status != 200:
                    logger.warning(
                        f"Google Books API returned {response.status}",
                        operation=operation,
                        url=url,
                    )
                    raise MetadataProviderError(
                        f"Google Books returned status {response.status}"
                    )
                return await response.json()
        except ClientError as e:
            handle_external_api_error(e, "Google Books", operation, url=url)
            raise MetadataProviderError("Google Books request failed") from e
        except json.JSONDecodeError as e:
            handle_external_api_error(e, "Google Books", operation, url=url)
            raise MetadataProviderError("Google Books returned an invalid body") from e

    async def fetch_by_link(self, quick_link: str) -> dict[str, Any]:
        url = self.resolve_quick_link(quick_link)
        logger.debug("Fetching Google Books volume", quick_link=quick_link)

        data = await self._get_json(url, "fetch volume")
        try:
            volume = GoogleBooksVolume.model_validate(data)
        except ValidationError as e:
            handle_validation_error(e, "Google Books volume", quick_link=quick_link)
            raise MetadataProviderError("Google Books returned an invalid volume") from e

        return volume.model_dump(mode="json", exclude_none=True)

    async def search_volumes(self, query: str, max_results: int = 10) -> list[BookSearchResult]:
        ttl = Settings().app.search_cache_ttl
        cached = search_cache.get(ttl, query, max_results)
        if cached is not None:
            logger.debug(
                "Using cached search results", query=query, **search_cache.get_metrics().as_dict()
            )
            return cached

        data = await self._get_json(
            self.base_url,
            "search",
            q=query,
            maxResults=max_results,
            printType="books",
            orderBy="relevance",
        )
        try:
            response = GoogleBooksResponse.model_validate(data)
        except ValidationError as e:
            handle_validation_error(e, "Google Books response", query=query)
            raise MetadataProviderError("Google Books returned an invalid search response") from e

        results = [
            BookSearchResult(
                quick_link=_https(item.selfLink) if item.selfLink else self.resolve_quick_link(item.id),
                title=item.volumeInfo.title,
                authors=item.volumeInfo.authors,
                publisher=item.volumeInfo.publisher,
                published_date=item.volumeInfo.publishedDate,
                cover_image=_get_best_cover(item.volumeInfo.imageLinks),
                isbn=_extract_isbn(item.volumeInfo),
            )
            for item in response.items
            if item.id and item.volumeInfo.title
        ]
        search_cache.set(results, query, max_results)
        logger.info("Google Books search complete", query=query, results=len(results))
        return results


def get_metadata_provider(
    client_session: Annotated[ClientSession, Depends(get_connection)],
) -> MetadataProvider:
    return GoogleBooksProvider(client_session)
