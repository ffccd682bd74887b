"""Tests for objstore/base.py - endpoints, value types and the contract helpers."""

import io

import pytest

from objstore.base import (
    Endpoint,
    StorageBackend,
    StorageObject,
    join_url,
    normalize_path,
)

from tests.helpers import MemoryStorage


class TestEndpoint:
    """Tests for Endpoint rendering."""

    def test_full_url(self):
        """Scheme, host and path render in order."""
        assert Endpoint("https", "example.com", "/root").url() == "https://example.com/root"

    def test_host_relative(self):
        """An empty scheme omits the :// separator."""
        assert Endpoint("", "cdn", "/x").url() == "cdn/x"

    def test_path_only(self):
        """A path-only endpoint renders the path."""
        assert Endpoint(path="/static").url() == "/static"

    def test_dynamic_url_overrides(self):
        """Non-empty overrides replace scheme and host."""
        endpoint = Endpoint("https", "example.com", "/root")
        assert endpoint.dynamic_url("http") == "http://example.com/root"
        assert endpoint.dynamic_url(host="cdn") == "https://cdn/root"
        assert endpoint.dynamic_url("", "") == endpoint.url()

    def test_dynamic_url_adds_scheme(self):
        """A scheme override works on a host-relative endpoint."""
        assert Endpoint("", "cdn", "/x").dynamic_url("http") == "http://cdn/x"

    def test_parse(self):
        """URL strings parse into their parts without a trailing slash."""
        assert Endpoint.parse("https://cdn.example.com/media/") == Endpoint("https", "cdn.example.com", "/media")
        assert Endpoint.parse("//cdn/x") == Endpoint("", "cdn", "/x")
        assert Endpoint.parse("/x") == Endpoint("", "", "/x")
        assert Endpoint.parse("") == Endpoint()

    def test_immutable(self):
        """Endpoints cannot be modified."""
        endpoint = Endpoint("https", "example.com")
        with pytest.raises(AttributeError):
            endpoint.host = "other"


class TestPaths:
    """Tests for path and URL helpers."""

    def test_normalize_path(self):
        """Outer slashes and duplicate separators are removed."""
        assert normalize_path("/a//b/") == "a/b"
        assert normalize_path("a/./b") == "a/b"
        assert normalize_path("") == ""
        assert normalize_path("/") == ""
        assert normalize_path("a\\b") == "a/b"

    def test_join_url(self):
        """Segments join with single slashes."""
        assert join_url("https://h/root/", ["/a", "b"]) == "https://h/root/a/b"
        assert join_url("https://h/root", []) == "https://h/root"


class TestStorageBackend:
    """Tests for the behaviour StorageBackend provides to subclasses."""

    def test_get_url(self):
        """get_url() appends segments to the endpoint."""
        storage = MemoryStorage(Endpoint("https", "example.com", "/root"))
        assert storage.get_url("a", "b") == "https://example.com/root/a/b"
        assert storage.get_url() == "https://example.com/root"

    def test_as_stream_rewinds(self):
        """Seekable streams are rewound before use."""
        buf = io.BytesIO(b"abcdef")
        buf.seek(3)
        storage = MemoryStorage()
        storage.put("x", buf)
        assert storage.data["x"] == b"abcdef"

    def test_exists_and_read_bytes(self):
        """Convenience methods build on stat() and get()."""
        storage = MemoryStorage()
        storage.put("a/b", bytearray(b"data"))
        assert storage.exists("a/b")
        assert not storage.exists("a/c")
        assert storage.read_bytes("a/b") == b"data"

    def test_cannot_instantiate_abstract(self):
        """The abstract base cannot be instantiated."""
        with pytest.raises(TypeError):
            StorageBackend()


class TestStorageObject:
    """Tests for StorageObject."""

    def test_fields(self):
        """path, name and owning storage are set by put()."""
        storage = MemoryStorage(Endpoint(path="/files"))
        obj = storage.put("docs/a.txt", b"x")
        assert obj.path == "docs/a.txt"
        assert obj.name == "a.txt"
        assert obj.storage is storage
        assert obj.url() == "/files/docs/a.txt"

    def test_get_is_not_cached(self):
        """get() fetches through the storage each time."""
        storage = MemoryStorage()
        obj = storage.put("k", b"one")
        storage.put("k", b"two")
        assert obj.get().read() == b"two"

    def test_equality_ignores_storage(self):
        """Objects compare by path, name and timestamp."""
        assert StorageObject("a", "a", MemoryStorage()) == StorageObject("a", "a", MemoryStorage())
        assert "storage" not in repr(StorageObject("a", "a", MemoryStorage()))
