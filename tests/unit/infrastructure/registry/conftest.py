import hashlib
import json
import re
import uuid
from dataclasses import dataclass, field

import httpx
import pytest

from imgsync.domain.image.model.descriptor import OCI_INDEX, OCI_MANIFEST
from imgsync.infrastructure.registry.client import HttpRegistryClientFactory
from imgsync.infrastructure.registry.credentials import DockerCredentialStore

_UPLOAD_RE = re.compile(r"^/v2/(?P<repo>.+)/blobs/uploads/(?P<session>[^/]*)$")
_CONTENT_RE = re.compile(r"^/v2/(?P<repo>.+)/(?P<kind>manifests|blobs)/(?P<ref>[^/]+)$")


def digest_of(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


@dataclass
class Repo:
    blobs: dict[str, bytes] = field(default_factory=dict)
    manifests: dict[str, tuple[str, bytes]] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)

    def manifest(self, reference: str) -> tuple[str, bytes] | None:
        return self.manifests.get(self.tags.get(reference, reference))


@dataclass
class FakeRegistry:
    """Minimal OCI distribution server for one host."""

    host: str
    token: str | None = None  # require "Bearer <token>" when set
    repos: dict[str, Repo] = field(default_factory=dict)
    uploads: dict[str, tuple[str, bytearray]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)
    token_requests: int = 0
    corrupt_blobs: bool = False

    def repo(self, name: str) -> Repo:
        return self.repos.setdefault(name, Repo())

    def add_blob(self, repo: str, data: bytes) -> dict:
        digest = digest_of(data)
        self.repo(repo).blobs[digest] = data
        return {"mediaType": "application/octet-stream", "digest": digest, "size": len(data)}

    def add_manifest(self, repo: str, doc: dict, tag: str | None = None) -> dict:
        body = json.dumps(doc).encode()
        digest = digest_of(body)
        self.repo(repo).manifests[digest] = (doc["mediaType"], body)
        if tag:
            self.repo(repo).tags[tag] = digest
        return {"mediaType": doc["mediaType"], "digest": digest, "size": len(body)}

    def add_image(
        self, repo: str, tag: str | None, architecture: str = "amd64", layer: bytes = b"layer"
    ) -> dict:
        config = self.add_blob(
            repo, json.dumps({"architecture": architecture, "os": "linux"}).encode()
        )
        layer_descriptor = self.add_blob(repo, layer + architecture.encode())
        doc = {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST,
            "config": {**config, "mediaType": "application/vnd.oci.image.config.v1+json"},
            "layers": [layer_descriptor],
        }
        return self.add_manifest(repo, doc, tag)

    def add_index(self, repo: str, tag: str, architectures: list[str]) -> dict:
        children = []
        for arch in architectures:
            child = self.add_image(repo, None, arch)
            children.append({**child, "platform": {"architecture": arch, "os": "linux"}})
        doc = {"schemaVersion": 2, "mediaType": OCI_INDEX, "manifests": children}
        return self.add_manifest(repo, doc, tag)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.token and request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(
                401,
                headers={
                    "WWW-Authenticate": f'Bearer realm="https://auth.example.com/token",'
                    f'service="{self.host}"'
                },
            )

        path = request.url.path
        if match := _UPLOAD_RE.match(path):
            return self._upload(request, match["repo"], match["session"])
        match = _CONTENT_RE.match(path)
        if not match:
            return httpx.Response(404)
        repo = self.repo(match["repo"])
        if match["kind"] == "manifests":
            return self._manifest(request, repo, match["ref"])
        return self._blob(request, repo, match["ref"])

    def _upload(self, request: httpx.Request, repo: str, session: str) -> httpx.Response:
        if request.method == "POST":
            session = uuid.uuid4().hex
            self.uploads[session] = (repo, bytearray())
            return self._upload_accepted(repo, session)
        assert request.url.params["_state"] == "abc"
        repo, received = self.uploads[session]
        if request.method == "PATCH":
            start, _, end = request.headers["Content-Range"].partition("-")
            assert int(start) == len(received)
            assert int(end) == len(received) + len(request.content) - 1
            received.extend(request.content)
            return self._upload_accepted(repo, session)
        digest = request.url.params["digest"]
        data = bytes(received) + request.content
        assert digest_of(data) == digest
        del self.uploads[session]
        self.repo(repo).blobs[digest] = data
        return httpx.Response(201, headers={"Docker-Content-Digest": digest})

    @staticmethod
    def _upload_accepted(repo: str, session: str) -> httpx.Response:
        return httpx.Response(
            202, headers={"Location": f"/v2/{repo}/blobs/uploads/{session}?_state=abc"}
        )

    def _manifest(self, request: httpx.Request, repo: Repo, reference: str) -> httpx.Response:
        if request.method == "PUT":
            body = request.content
            digest = digest_of(body)
            repo.manifests[digest] = (request.headers["Content-Type"], body)
            if reference != digest:
                repo.tags[reference] = digest
            return httpx.Response(201, headers={"Docker-Content-Digest": digest})
        found = repo.manifest(reference)
        if found is None:
            return httpx.Response(404)
        media_type, body = found
        headers = {"Content-Type": media_type, "Docker-Content-Digest": digest_of(body)}
        if request.method == "HEAD":
            return httpx.Response(200, headers={**headers, "Content-Length": str(len(body))})
        return httpx.Response(200, headers=headers, content=body)

    def _blob(self, request: httpx.Request, repo: Repo, digest: str) -> httpx.Response:
        data = repo.blobs.get(digest)
        if data is None:
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Length": str(len(data))})
        return httpx.Response(200, content=b"tampered" if self.corrupt_blobs else data)

    def count(self, method: str, fragment: str) -> int:
        return sum(1 for r in self.requests if r.method == method and fragment in r.url.path)


class FakeNetwork:
    """Routes requests to fake registries by host, plus a token endpoint."""

    def __init__(self) -> None:
        self.registries: dict[str, FakeRegistry] = {}
        self.schemes: list[tuple[str, str]] = []

    def add(self, registry: FakeRegistry) -> FakeRegistry:
        self.registries[registry.host] = registry
        return registry

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "auth.example.com":
            service = request.url.params["service"]
            registry = self.registries[service]
            registry.token_requests += 1
            return httpx.Response(200, json={"token": registry.token})
        host = request.url.netloc.decode()
        self.schemes.append((host, request.url.scheme))
        return self.registries[host].handle(request)


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def source(network: FakeNetwork) -> FakeRegistry:
    return network.add(FakeRegistry(host="source.example.com"))


@pytest.fixture
def target(network: FakeNetwork) -> FakeRegistry:
    return network.add(FakeRegistry(host="target.example.com"))


@pytest.fixture
def factory(network: FakeNetwork, tmp_path) -> HttpRegistryClientFactory:
    return HttpRegistryClientFactory(
        DockerCredentialStore(tmp_path / "docker" / "config.json"),
        transport=httpx.MockTransport(network.handle),
    )


@pytest.fixture
def add_registry(network: FakeNetwork):
    def add(host: str, token: str | None = None) -> FakeRegistry:
        return network.add(FakeRegistry(host=host, token=token))

    return add
