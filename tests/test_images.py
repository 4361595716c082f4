"""
Tests for keyword -> image URL resolution and its cache.
"""
import pytest

from storyline.config import ImageConfig
from storyline.clients.unsplash import UnsplashClient
from storyline.images import MediaResolver, fallback_image_url

from conftest import FakePhotoSearch


def test_fallback_url_is_deterministic():
    a = fallback_image_url("mountain lake")
    b = fallback_image_url("mountain lake")

    assert a == b
    assert a.startswith("https://source.unsplash.com/800x600/?mountain%20lake&sig=")
    assert fallback_image_url("mountain lake", index=1) != a
    assert fallback_image_url("desert dunes") != a


def test_fallback_url_escapes_query():
    url = fallback_image_url("cats & dogs/friends")
    assert "cats%20%26%20dogs%2Ffriends" in url


@pytest.mark.asyncio
async def test_cache_hit_skips_remote_search(resolver, photo_search):
    first = await resolver.resolve_image("espresso machine")
    second = await resolver.resolve_image("espresso machine")

    assert first == second
    assert first.startswith("https://images.unsplash.test/")
    assert photo_search.queries == ["espresso machine"]


@pytest.mark.asyncio
async def test_sizes_cached_independently(resolver, photo_search):
    regular = await resolver.resolve_image("harbor boats")
    thumb = await resolver.resolve_image("harbor boats", size="thumb")
    await resolver.resolve_image("harbor boats", size="thumb")

    assert regular.endswith("size=regular")
    assert thumb.endswith("size=thumb")
    assert photo_search.queries == ["harbor boats", "harbor boats"]


@pytest.mark.asyncio
async def test_default_size_applies():
    search = FakePhotoSearch()
    resolver = MediaResolver(search, default_size="small")

    url = await resolver.resolve_image("forest trail")

    assert url.endswith("size=small")


@pytest.mark.asyncio
async def test_failure_falls_back_and_is_not_cached():
    search = FakePhotoSearch(fail=True)
    resolver = MediaResolver(search)

    first = await resolver.resolve_image("quantum computing")
    assert first == fallback_image_url("quantum computing")
    assert resolver.cache == {}

    # Remote search recovers: the next call must try it again
    search.fail = False
    second = await resolver.resolve_image("quantum computing")

    assert second.startswith("https://images.unsplash.test/")
    assert search.queries == ["quantum computing", "quantum computing"]
    assert resolver.cache[("quantum computing", "regular")] == second


@pytest.mark.asyncio
async def test_empty_results_fall_back():
    resolver = MediaResolver(FakePhotoSearch(empty=True))
    assert await resolver.resolve_image("obscure topic") == fallback_image_url("obscure topic")


@pytest.mark.asyncio
async def test_empty_keywords_fall_back_without_search(resolver, photo_search):
    url = await resolver.resolve_image("   ")

    assert url == fallback_image_url("   ")
    assert photo_search.queries == []


@pytest.mark.asyncio
async def test_no_client_falls_back():
    resolver = MediaResolver()
    assert await resolver.resolve_image("sunset") == fallback_image_url("sunset")


@pytest.mark.asyncio
async def test_unconfigured_client_falls_back():
    client = UnsplashClient(ImageConfig(access_key=None))
    resolver = MediaResolver(client)

    assert await resolver.resolve_image("sunset") == fallback_image_url("sunset")
    await resolver.aclose()


@pytest.mark.asyncio
async def test_resolve_many_preserves_order(resolver, photo_search):
    urls = await resolver.resolve_many(["alpha", "beta", "alpha"])

    assert len(urls) == 3
    assert "alpha" in urls[0]
    assert "beta" in urls[1]
    assert urls[2] == urls[0]
    assert set(photo_search.queries) == {"alpha", "beta"}


@pytest.mark.asyncio
async def test_clear_forces_new_search(resolver, photo_search):
    await resolver.resolve_image("library books")
    resolver.clear()
    await resolver.resolve_image("library books")

    assert photo_search.queries == ["library books", "library books"]


@pytest.mark.asyncio
async def test_shared_cache_between_resolvers():
    cache = {}
    first_search = FakePhotoSearch()
    second_search = FakePhotoSearch()

    await MediaResolver(first_search, cache=cache).resolve_image("city lights")
    await MediaResolver(second_search, cache=cache).resolve_image("city lights")

    assert first_search.queries == ["city lights"]
    assert second_search.queries == []


@pytest.mark.asyncio
async def test_aclose_closes_client(resolver, photo_search):
    await resolver.aclose()
    assert photo_search.closed
