import json

import httpx
import pytest

from imgsync.domain.image.model.descriptor import OCI_INDEX, OCI_MANIFEST
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.shared.error import (
    DigestMismatchError,
    ManifestNotFoundError,
    PlatformNotFoundError,
    RegistryAuthError,
)
from imgsync.infrastructure.registry.client import HttpRegistryClientFactory
from imgsync.infrastructure.registry.credentials import DockerCredentialStore
from imgsync.infrastructure.registry.memory import MemoryStore

SOURCE = Registry(name="source", url="source.example.com")
TARGET = Registry(name="target", url="target.example.com")


class TestFetchAndExist:
    async def test_fetch_resolves_with_head(self, factory, target):
        expected = target.add_image("app", "1.0")

        descriptor = await factory.for_registry(TARGET).fetch("app", "1.0")

        assert descriptor.digest == expected["digest"]
        assert descriptor.media_type == OCI_MANIFEST
        assert target.count("GET", "/manifests/") == 0

    async def test_missing_manifest(self, factory, target):
        client = factory.for_registry(TARGET)

        assert await client.exist("app", "1.0") is False
        with pytest.raises(ManifestNotFoundError):
            await client.fetch("app", "1.0")

    async def test_auth_failure_is_not_absence(self, factory, target, monkeypatch):
        monkeypatch.setattr(target, "handle", lambda request: httpx.Response(403))

        with pytest.raises(RegistryAuthError):
            await factory.for_registry(TARGET).exist("app", "1.0")

    async def test_existence_is_repeatable(self, factory, target):
        target.add_image("app", "1.0")
        client = factory.for_registry(TARGET)

        assert [await client.exist("app", "1.0") for _ in range(3)] == [True, True, True]


class TestPush:
    async def test_push_then_fetch_yields_source_digest(self, factory, source, target):
        expected = source.add_image("library/app", "1.0")

        pushed = await factory.for_registry(TARGET).push(SOURCE, "library/app", "1.0")
        fetched = await factory.for_registry(TARGET).fetch("library/app", "1.0")

        assert pushed.digest == expected["digest"]
        assert fetched.digest == expected["digest"]
        assert len(target.repo("library/app").blobs) == 2

    async def test_existing_blobs_are_not_uploaded_again(self, factory, source, target):
        source.add_image("app", "1.0")
        client = factory.for_registry(TARGET)

        await client.push(SOURCE, "app", "1.0")
        await client.push(SOURCE, "app", "1.0")

        assert target.count("POST", "/blobs/uploads/") == 2

    async def test_index_is_copied_with_children(self, factory, source, target):
        index = source.add_index("app", "1.0", ["amd64", "arm64"])

        pushed = await factory.for_registry(TARGET).push(SOURCE, "app", "1.0")

        assert pushed.digest == index["digest"]
        assert pushed.media_type == OCI_INDEX
        assert len(target.repo("app").manifests) == 3

    async def test_architecture_selects_one_platform(self, factory, source, target):
        source.add_index("app", "1.0", ["amd64", "arm64"])
        _, index_body = source.repo("app").manifest("1.0")
        arm64 = json.loads(index_body)["manifests"][1]

        pushed = await factory.for_registry(TARGET).push(SOURCE, "app", "1.0", "linux/arm64")

        assert pushed.digest == arm64["digest"]
        assert pushed.media_type == OCI_MANIFEST
        assert list(target.repo("app").manifests) == [arm64["digest"]]

    async def test_architecture_missing_from_index(self, factory, source, target):
        source.add_index("app", "1.0", ["amd64"])

        with pytest.raises(PlatformNotFoundError) as exc_info:
            await factory.for_registry(TARGET).push(SOURCE, "app", "1.0", "linux/s390x")
        assert exc_info.value.platform == "linux/s390x"
        assert target.repo("app").manifests == {}

    async def test_architecture_checked_against_single_manifest_config(
        self, factory, source, target
    ):
        source.add_image("app", "1.0", "amd64")

        with pytest.raises(PlatformNotFoundError):
            await factory.for_registry(TARGET).push(SOURCE, "app", "1.0", "arm64")
        pushed = await factory.for_registry(TARGET).push(SOURCE, "app", "1.0", "amd64")
        assert pushed.media_type == OCI_MANIFEST

    async def test_push_by_digest(self, factory, source, target):
        expected = source.add_image("app", None)

        await factory.for_registry(TARGET).push(
            SOURCE, "app", "1.0", source_ref=expected["digest"]
        )

        assert target.repo("app").tags["1.0"] == expected["digest"]

    async def test_digest_destination_sets_no_tag(self, factory, source, target):
        expected = source.add_image("app", None)
        target.add_image("app", "latest", layer=b"unrelated")
        latest = target.repo("app").tags["latest"]

        pushed = await factory.for_registry(TARGET).push(
            SOURCE, "app", expected["digest"], source_ref=expected["digest"]
        )

        assert pushed.digest == expected["digest"]
        assert expected["digest"] in target.repo("app").manifests
        assert target.repo("app").tags == {"latest": latest}
        assert await factory.for_registry(TARGET).exist("app", expected["digest"])

    async def test_prefix_is_applied_at_destination(self, factory, source, target):
        source.add_image("app", "1.0")
        prefixed = Registry(name="target", url="target.example.com/mirror")

        await factory.for_registry(prefixed).push(SOURCE, "app", "1.0")

        assert "1.0" in target.repo("mirror/app").tags

    async def test_corrupted_blob_is_rejected(self, factory, source, target):
        source.add_image("app", "1.0")
        source.corrupt_blobs = True

        with pytest.raises(DigestMismatchError):
            await factory.for_registry(TARGET).push(SOURCE, "app", "1.0")

    async def test_local_source_uses_plain_http(self, factory, network, add_registry, target):
        local = add_registry("localhost:5000")
        local.add_image("app", "1.0")

        await factory.for_registry(TARGET).push(Registry.endpoint("localhost:5000"), "app", "1.0")

        assert ("localhost:5000", "http") in network.schemes
        assert ("target.example.com", "https") in network.schemes


class TestPull:
    async def test_pull_into_memory(self, factory, target):
        expected = target.add_image("app", "1.0")
        store = MemoryStore()

        descriptor = await factory.for_registry(TARGET).pull("app", "1.0", store=store)

        assert descriptor.digest == expected["digest"]
        assert store.blob_count == 2
        assert store.tags == {"1.0": expected["digest"]}


class TestAuth:
    async def test_bearer_token_fetched_once_per_scope(self, factory, add_registry):
        secured = add_registry("secure.example.com", token="s3cret")
        secured.add_image("app", "1.0")
        client = factory.for_registry(Registry(name="secure", url="secure.example.com"))

        assert await client.exist("app", "1.0")
        assert await client.exist("app", "1.0")

        assert secured.token_requests == 1

    async def test_push_to_token_protected_registry(self, factory, add_registry, source):
        secured = add_registry("secure.example.com", token="s3cret")
        expected = source.add_image("app", "1.0")
        client = factory.for_registry(Registry(name="secure", url="secure.example.com"))

        pushed = await client.push(SOURCE, "app", "1.0")

        assert pushed.digest == expected["digest"]
        assert "1.0" in secured.repo("app").tags


class TestBlobTransfer:
    async def test_large_blob_is_uploaded_in_chunks(self, network, source, target, tmp_path):
        layer = b"0123456789" * 3
        source.add_image("app", "1.0", layer=layer)
        factory = HttpRegistryClientFactory(
            DockerCredentialStore(tmp_path / "config.json"),
            transport=httpx.MockTransport(network.handle),
            chunk_size=8,
        )

        await factory.for_registry(TARGET).push(SOURCE, "app", "1.0")

        patches = [r for r in target.requests if r.method == "PATCH"]
        assert len(patches) > 2
        assert max(len(r.content) for r in patches) <= 8
        assert source.repo("app").blobs == target.repo("app").blobs

    async def test_corrupted_blob_is_never_committed(self, factory, source, target):
        source.add_image("app", "1.0")
        source.corrupt_blobs = True

        with pytest.raises(DigestMismatchError):
            await factory.for_registry(TARGET).push(SOURCE, "app", "1.0")

        assert target.repo("app").blobs == {}
        assert target.count("PUT", "/blobs/uploads/") == 0
