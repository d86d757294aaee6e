"""Tests for the asset store, resource URIs and payload decoding

Run with pytest from project root:
    pytest tests/test_asset_store.py -v
"""

import asyncio
import base64
import json

import pytest

import managers.asset_store as asset_store_module
from asset_processor import (
    BinaryPayload,
    RemoteRefPayload,
    StructuredPayload,
    TextPayload,
    decode_payload,
    get_mime_type,
)
from errors import AssetNotFoundError, PersistenceError
from managers.asset_store import AssetStore, is_within, parse_resource_uri, split_asset_name


@pytest.fixture
def store(tmp_path):
    return AssetStore(tmp_path / "assets")


def persist(store, data, prefix="2d_asset", extension="png", origin="generate_2d_asset"):
    return asyncio.run(store.persist(data, prefix, extension, origin))


class TestPersist:
    """Tests for AssetStore.persist"""

    def test_persist_bytes(self, store):
        """Bytes are written verbatim and addressed by type"""
        result = persist(store, b"\x89PNG fake")
        assert result.storage_path.read_bytes() == b"\x89PNG fake"
        assert result.resource_uri == f"asset://2d_asset/{result.storage_path.name}"
        assert result.record.asset_type == "2d_asset"
        assert result.record.origin == "generate_2d_asset"
        assert result.record.mime_type == "image/png"

    def test_filename_shape(self, store):
        """Name is prefix_origin_timestamp_hex.ext"""
        result = persist(store, b"x", prefix="3d_model", extension="glb", origin="generate_3d_asset")
        name = result.storage_path.name
        assert name.startswith("3d_model_generate_3d_asset_")
        assert name.endswith(".glb")

    def test_concurrent_persist_unique(self, store):
        """1000 concurrent writes with the same prefix produce 1000 distinct files"""
        async def burst():
            return await asyncio.gather(*(
                store.persist(f"item {i}".encode(), "2d_asset", "png", "burst") for i in range(1000)
            ))

        results = asyncio.run(burst())
        paths = {r.storage_path for r in results}
        assert len(paths) == 1000
        assert len(list(store.root.iterdir())) == 1000

    def test_collision_regenerates_name(self, store, monkeypatch):
        """An existing filename is never overwritten"""
        names = iter(["2d_asset_t_1_aa.png", "2d_asset_t_1_aa.png", "2d_asset_t_1_bb.png"])
        monkeypatch.setattr(asset_store_module, "generate_unique_filename", lambda *a: next(names))
        first = persist(store, b"first")
        second = persist(store, b"second")
        assert first.storage_path.name == "2d_asset_t_1_aa.png"
        assert second.storage_path.name == "2d_asset_t_1_bb.png"
        assert first.storage_path.read_bytes() == b"first"

    def test_malformed_data_uri(self, store):
        """Undecodable base64 surfaces as PersistenceError with a snapshot and writes nothing"""
        with pytest.raises(PersistenceError) as exc_info:
            persist(store, "data:image/png;base64,@@@notb64")
        assert "@@@notb64" in exc_info.value.payload_snapshot
        assert list(store.root.iterdir()) == []

    def test_escape_rejected_before_write(self, store, tmp_path, monkeypatch):
        """A filename resolving outside the root raises and writes nothing"""
        monkeypatch.setattr(asset_store_module, "generate_unique_filename", lambda *a: "../escaped.png")
        with pytest.raises(PersistenceError):
            persist(store, b"payload")
        assert not (tmp_path / "escaped.png").exists()
        assert list(store.root.iterdir()) == []

    def test_none_rejected(self, store):
        """None is not a payload"""
        with pytest.raises(PersistenceError):
            persist(store, None)

    def test_structured_payload_written_as_json(self, store):
        """Dicts without a url are stored as pretty JSON"""
        result = persist(store, {"outputs": [1, 2]}, prefix="3d_debug", extension="json")
        assert json.loads(result.storage_path.read_text()) == {"outputs": [1, 2]}
        assert result.record.mime_type == "application/json"

    def test_data_uri_decoded(self, store):
        """Base64 data URIs are stored as their decoded bytes"""
        encoded = base64.b64encode(b"decoded bytes").decode()
        result = persist(store, f"data:image/png;base64,{encoded}")
        assert result.storage_path.read_bytes() == b"decoded bytes"

    def test_remote_reference_fetched(self, tmp_path):
        """File references are downloaded through the fetcher"""
        fetched = []

        def fetcher(url):
            fetched.append(url)
            return b"glb bytes"

        store = AssetStore(tmp_path / "assets", fetcher=fetcher)
        result = persist(store, {"value": {"url": "https://space/file=mesh.glb"}}, prefix="3d_model", extension="glb")
        assert fetched == ["https://space/file=mesh.glb"]
        assert result.storage_path.read_bytes() == b"glb bytes"

    def test_remote_fetch_failure(self, tmp_path):
        """A failing download becomes PersistenceError with a payload snapshot"""
        def fetcher(url):
            raise OSError("network down")

        store = AssetStore(tmp_path / "assets", fetcher=fetcher)
        with pytest.raises(PersistenceError) as exc_info:
            persist(store, {"url": "https://space/file=x.glb"}, prefix="3d_model", extension="glb")
        assert "x.glb" in exc_info.value.payload_snapshot


class TestListAndResolve:
    """Tests for listing and URI resolution"""

    def test_list_filters_by_type(self, store):
        """Type filter uses the derived type, including underscored prefixes"""
        persist(store, b"a", prefix="2d_asset")
        persist(store, b"b", prefix="3d_model", extension="glb", origin="generate_3d_asset")
        persist(store, b"c", prefix="3d_model", extension="obj", origin="generate_3d_asset")

        assert len(store.list()) == 3
        models = store.list("3d_model")
        assert len(models) == 2
        assert all(r.asset_type == "3d_model" for r in models)
        assert store.list("3d_image") == []

    def test_list_skips_vanished_file(self, store, monkeypatch):
        """A file deleted between directory scan and stat is left out"""
        kept = persist(store, b"a")
        gone = persist(store, b"b")
        build_record = AssetStore._build_record

        def racing_build_record(self, path):
            if path == gone.storage_path:
                path.unlink()
            return build_record(self, path)

        monkeypatch.setattr(AssetStore, "_build_record", racing_build_record)
        records = store.list()
        assert [r.asset_id for r in records] == [kept.record.asset_id]

    def test_both_uri_forms_resolve(self, store):
        """asset://{type}/{id} and asset://{id} address the same file"""
        result = persist(store, b"content")
        name = result.storage_path.name
        assert store.resolve(f"asset://2d_asset/{name}") == result.storage_path
        assert store.resolve(f"asset://{name}") == result.storage_path

    def test_read_returns_mime(self, store):
        """read() returns bytes with MIME from the extension"""
        result = persist(store, b"mesh", prefix="3d_model", extension="glb")
        data, mime = store.read(result.resource_uri)
        assert data == b"mesh"
        assert mime == "model/gltf-binary"

    def test_missing_asset(self, store):
        """Unknown files raise AssetNotFoundError"""
        with pytest.raises(AssetNotFoundError):
            store.resolve("asset://2d_asset/nope.png")

    def test_traversal_rejected(self, store):
        """Dot segments never leave the root"""
        with pytest.raises(AssetNotFoundError):
            store.resolve("asset://..")

    def test_malformed_uri(self, store):
        """Wrong scheme or extra segments are rejected"""
        with pytest.raises(AssetNotFoundError):
            store.resolve("file:///etc/passwd")
        with pytest.raises(AssetNotFoundError):
            store.resolve("asset://a/b/c")


class TestNaming:
    """Tests for filename and URI helpers"""

    def test_parse_resource_uri(self):
        assert parse_resource_uri("asset://3d_model/x.glb") == ("3d_model", "x.glb")
        assert parse_resource_uri("asset://x.glb") == (None, "x.glb")
        assert parse_resource_uri("http://x") is None

    def test_split_known_types(self):
        """Known underscored prefixes win over the first segment"""
        assert split_asset_name("3d_processed_generate_3d_asset_1700000000000_ab12.png") == (
            "3d_processed", "generate_3d_asset")
        assert split_asset_name("2d_asset_generate_2d_asset_1700000000000_ab12.png") == (
            "2d_asset", "generate_2d_asset")

    def test_split_unknown_type(self):
        """Unknown prefixes fall back to the first segment"""
        assert split_asset_name("sprite_tool_1700000000000_ab12.png") == ("sprite", "tool")

    def test_is_within(self, tmp_path):
        parent = tmp_path / "root"
        parent.mkdir()
        assert is_within(parent / "a.png", parent, child_must_exist=False) is True
        assert is_within(parent / ".." / "a.png", parent, child_must_exist=False) is False


class TestPayloadDecoding:
    """Tests for decode_payload and MIME mapping"""

    def test_shapes(self):
        assert decode_payload(b"x") == BinaryPayload(b"x")
        assert decode_payload("plain") == TextPayload("plain")
        assert decode_payload({"url": "u"}) == RemoteRefPayload("u")
        assert decode_payload([{"url": "u"}]) == RemoteRefPayload("u")
        assert decode_payload({"a": 1}) == StructuredPayload({"a": 1})
        assert decode_payload([1, 2]) == StructuredPayload([1, 2])
        assert decode_payload(42) == TextPayload("42")

    def test_mime_types(self):
        assert get_mime_type("a.PNG") == "image/png"
        assert get_mime_type("a.jpeg") == "image/jpeg"
        assert get_mime_type("a.obj") == "model/obj"
        assert get_mime_type("a.glb") == "model/gltf-binary"
        assert get_mime_type("a.bin") == "application/octet-stream"
