import hashlib
import io
import json
import tarfile
from pathlib import Path

import pytest

from imgsync.domain.image.model.descriptor import OCI_MANIFEST
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.shared.error import NotFoundError
from imgsync.infrastructure.registry.archive import OciLayoutArchive

TARGET = Registry(name="target", url="target.example.com")


def digest_of(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def _write_layout(path: Path, tag: str = "1.0") -> str:
    """Build a docker-save style OCI layout tarball; returns the manifest digest."""
    config = json.dumps({"architecture": "amd64", "os": "linux"}).encode()
    layer = b"patched-layer"
    manifest = json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST,
            "config": {
                "mediaType": "application/vnd.oci.image.config.v1+json",
                "digest": digest_of(config),
                "size": len(config),
            },
            "layers": [
                {
                    "mediaType": "application/vnd.oci.image.layer.v1.tar",
                    "digest": digest_of(layer),
                    "size": len(layer),
                }
            ],
        }
    ).encode()
    index = json.dumps(
        {
            "schemaVersion": 2,
            "manifests": [
                {
                    "mediaType": OCI_MANIFEST,
                    "digest": digest_of(manifest),
                    "size": len(manifest),
                    "annotations": {"io.containerd.image.name": f"registry.local/app:{tag}"},
                }
            ],
        }
    ).encode()

    members = {
        "oci-layout": b'{"imageLayoutVersion": "1.0.0"}',
        "index.json": index,
        **{f"blobs/sha256/{digest_of(b).split(':')[1]}": b for b in (config, layer, manifest)},
    }
    with tarfile.open(path, "w") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return digest_of(manifest)


class TestOciLayoutArchive:
    async def test_root_manifest_by_tag(self, tmp_path):
        archive_path = tmp_path / "app:1.0.tar"
        digest = _write_layout(archive_path)

        descriptor, _ = await OciLayoutArchive(archive_path).get_manifest("1.0")

        assert descriptor.digest == digest
        assert descriptor.media_type == OCI_MANIFEST

    async def test_missing_blob(self, tmp_path):
        archive_path = tmp_path / "app:1.0.tar"
        _write_layout(archive_path)

        with pytest.raises(NotFoundError):
            await OciLayoutArchive(archive_path).get_blob("sha256:" + "0" * 64)

    async def test_blob_streams_from_layout(self, tmp_path):
        archive_path = tmp_path / "app:1.0.tar"
        _write_layout(archive_path)
        archive = OciLayoutArchive(archive_path)

        chunks = [c async for c in archive.iter_blob(digest_of(b"patched-layer"))]

        assert b"".join(chunks) == b"patched-layer"

    async def test_missing_blob_stream(self, tmp_path):
        archive_path = tmp_path / "app:1.0.tar"
        _write_layout(archive_path)

        with pytest.raises(NotFoundError):
            async for _ in OciLayoutArchive(archive_path).iter_blob("sha256:" + "0" * 64):
                pass

    async def test_push_archive_uploads_layout(self, factory, target, tmp_path):
        archive_path = tmp_path / "app:1.0.tar"
        digest = _write_layout(archive_path)

        pushed = await factory.for_registry(TARGET).push_archive(archive_path, "app", "1.0")

        assert pushed.digest == digest
        assert target.repo("app").tags["1.0"] == digest
        assert len(target.repo("app").blobs) == 2
