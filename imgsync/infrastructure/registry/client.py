"""OCI distribution client on httpx."""

import logging
from collections.abc import AsyncIterable, AsyncIterator
from pathlib import Path

import httpx

from imgsync.domain.image.model.descriptor import ALL_MANIFEST_MEDIA_TYPES, Descriptor, Platform
from imgsync.domain.image.model.registry import Registry
from imgsync.domain.image.port.registry_client import RegistryClient, RegistryClientFactory
from imgsync.domain.shared.error import (
    ManifestNotFoundError,
    NotFoundError,
    RegistryAuthError,
    RegistryError,
)
from imgsync.infrastructure.registry.archive import OciLayoutArchive
from imgsync.infrastructure.registry.auth import RegistryAuth
from imgsync.infrastructure.registry.content import (
    BLOB_CHUNK_SIZE,
    copy_graph,
    is_digest,
    manifest_descriptor,
    verify_digest,
)
from imgsync.infrastructure.registry.credentials import DockerCredentialStore
from imgsync.infrastructure.registry.memory import MemoryStore

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = ", ".join(sorted(ALL_MANIFEST_MEDIA_TYPES))

# Docker Hub serves the distribution API from a different host than its name
_API_HOSTS = {"docker.io": "registry-1.docker.io", "index.docker.io": "registry-1.docker.io"}


def api_host(host: str) -> str:
    return _API_HOSTS.get(host, host)


class RemoteRepository:
    """One repository on one registry endpoint; a ContentSource and a ContentTarget."""

    def __init__(
        self,
        registry: Registry,
        name: str,
        http: httpx.AsyncClient,
        auth: httpx.Auth,
        chunk_size: int = BLOB_CHUNK_SIZE,
    ) -> None:
        self.registry = registry
        self.chunk_size = chunk_size
        self.name = registry.repository(name)
        self.base_url = f"{registry.scheme}://{api_host(registry.host)}/v2/{self.name}"
        self._http = http
        self._auth = auth

    async def _request(self, method: str, url: str | httpx.URL, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, url, auth=self._auth, **kwargs)
        except httpx.HTTPError as e:
            raise RegistryError(f"{method} {url} failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response, what: str) -> None:
        status = response.status_code
        if status < 300:
            return
        if status in (401, 403):
            raise RegistryAuthError(
                f"Access to {what} on {self.registry.url} denied ({status})", status_code=status
            )
        if status == 404:
            raise NotFoundError(f"{what} not found on {self.registry.url}")
        raise RegistryError(
            f"{what} on {self.registry.url} failed with status {status}", status_code=status
        )

    def _manifest_url(self, reference: str) -> str:
        return f"{self.base_url}/manifests/{reference}"

    async def resolve(self, reference: str) -> Descriptor:
        """HEAD the manifest; falls back to GET when the registry omits the digest."""
        response = await self._request(
            "HEAD", self._manifest_url(reference), headers={"Accept": MANIFEST_ACCEPT}
        )
        if response.status_code == 404:
            raise ManifestNotFoundError(f"{self.name}:{reference} not found on {self.registry.url}")
        self._raise_for_status(response, f"manifest {self.name}:{reference}")

        digest = response.headers.get("Docker-Content-Digest")
        media_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if not digest or media_type not in ALL_MANIFEST_MEDIA_TYPES:
            descriptor, _ = await self.get_manifest(reference)
            return descriptor
        return Descriptor(
            media_type=media_type,
            digest=digest,
            size=int(response.headers.get("Content-Length", 0)),
        )

    async def get_manifest(self, reference: str) -> tuple[Descriptor, bytes]:
        response = await self._request(
            "GET", self._manifest_url(reference), headers={"Accept": MANIFEST_ACCEPT}
        )
        if response.status_code == 404:
            raise ManifestNotFoundError(f"{self.name}:{reference} not found on {self.registry.url}")
        self._raise_for_status(response, f"manifest {self.name}:{reference}")

        body = response.content
        if is_digest(reference):
            verify_digest(reference, body)
        media_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        descriptor = manifest_descriptor(
            body, media_type if media_type in ALL_MANIFEST_MEDIA_TYPES else None
        )
        advertised = response.headers.get("Docker-Content-Digest")
        if advertised and advertised != descriptor.digest:
            verify_digest(advertised, body)
        return descriptor, body

    async def has_blob(self, digest: str) -> bool:
        response = await self._request("HEAD", f"{self.base_url}/blobs/{digest}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"blob {digest}")
        return True

    async def get_blob(self, digest: str) -> bytes:
        response = await self._request("GET", f"{self.base_url}/blobs/{digest}")
        self._raise_for_status(response, f"blob {digest}")
        verify_digest(digest, response.content)
        return response.content

    async def iter_blob(self, digest: str) -> AsyncIterator[bytes]:
        """Stream a blob in chunks; the caller verifies the digest."""
        url = f"{self.base_url}/blobs/{digest}"
        try:
            async with self._http.stream("GET", url, auth=self._auth) as response:
                self._raise_for_status(response, f"blob {digest}")
                async for chunk in response.aiter_bytes(self.chunk_size):
                    yield chunk
        except httpx.HTTPError as e:
            raise RegistryError(f"GET {url} failed: {e}") from e

    def _upload_location(self, response: httpx.Response, digest: str) -> httpx.URL:
        self._raise_for_status(response, f"upload of {digest}")
        location = response.headers.get("Location")
        if not location:
            raise RegistryError(f"Registry {self.registry.url} returned no upload location")
        return response.url.join(location)

    async def put_blob(self, digest: str, chunks: AsyncIterable[bytes]) -> None:
        """Chunked upload: POST opens a session, one PATCH per chunk, PUT commits.

        Nothing is committed if `chunks` raises, so a digest mismatch detected
        while streaming leaves no blob behind.
        """
        response = await self._request("POST", f"{self.base_url}/blobs/uploads/")
        location = self._upload_location(response, digest)

        offset = 0
        async for chunk in chunks:
            if not chunk:
                continue
            response = await self._request(
                "PATCH",
                location,
                content=chunk,
                headers={
                    "Content-Type": "application/octet-stream",
                    "Content-Range": f"{offset}-{offset + len(chunk) - 1}",
                },
            )
            location = self._upload_location(response, digest)
            offset += len(chunk)

        response = await self._request("PUT", location.copy_merge_params({"digest": digest}))
        self._raise_for_status(response, f"upload of {digest}")
        logger.debug("Uploaded blob %s (%d bytes) to %s", digest, offset, self.registry.url)

    async def put_manifest(self, reference: str, media_type: str, body: bytes) -> Descriptor:
        response = await self._request(
            "PUT",
            self._manifest_url(reference),
            content=body,
            headers={"Content-Type": media_type},
        )
        self._raise_for_status(response, f"manifest {self.name}:{reference}")
        descriptor = manifest_descriptor(body, media_type)
        advertised = response.headers.get("Docker-Content-Digest")
        if advertised and advertised != descriptor.digest:
            verify_digest(advertised, body)
        return descriptor


class OciRegistryClient(RegistryClient):
    """RegistryClient for one configured registry endpoint."""

    def __init__(self, registry: Registry, factory: "HttpRegistryClientFactory") -> None:
        self.registry = registry
        self._factory = factory

    def _repository(self, name: str, registry: Registry | None = None) -> RemoteRepository:
        return self._factory.repository(registry or self.registry, name)

    async def fetch(self, name: str, tag: str) -> Descriptor:
        return await self._repository(name).resolve(tag)

    async def exist(self, name: str, tag: str) -> bool:
        try:
            await self.fetch(name, tag)
        except ManifestNotFoundError:
            return False
        return True

    async def pull(self, name: str, tag: str, store: MemoryStore | None = None) -> Descriptor:
        store = store if store is not None else MemoryStore()
        return await copy_graph(self._repository(name), tag, store, tag)

    async def push(
        self,
        source: Registry,
        name: str,
        tag: str,
        architecture: str | None = None,
        *,
        source_ref: str | None = None,
    ) -> Descriptor:
        platform = Platform.parse(architecture) if architecture else None
        src = self._repository(name, source)
        logger.debug("Copying %s/%s:%s to %s", source.url, name, tag, self.registry.url)
        return await copy_graph(
            src, source_ref or tag, self._repository(name), tag, platform=platform
        )

    async def push_archive(self, archive: Path, name: str, tag: str) -> Descriptor:
        logger.debug("Uploading %s as %s:%s to %s", archive, name, tag, self.registry.url)
        return await copy_graph(OciLayoutArchive(archive), tag, self._repository(name), tag)


class HttpRegistryClientFactory(RegistryClientFactory):
    """Creates registry clients sharing connection pools and per-host auth state.

    One httpx client per TLS-verification mode; transport-level retries cover
    connection failures.
    """

    def __init__(
        self,
        credentials: DockerCredentialStore,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        chunk_size: int = BLOB_CHUNK_SIZE,
    ) -> None:
        self._credentials = credentials
        self._chunk_size = chunk_size
        self._transport = transport
        self._timeout = timeout
        self._retries = retries
        self._http: dict[bool, httpx.AsyncClient] = {}
        self._auth: dict[str, RegistryAuth] = {}
        self._clients: dict[Registry, OciRegistryClient] = {}

    def http_client(self, insecure: bool) -> httpx.AsyncClient:
        if insecure not in self._http:
            self._http[insecure] = httpx.AsyncClient(
                transport=self._transport
                or httpx.AsyncHTTPTransport(retries=self._retries, verify=not insecure),
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._http[insecure]

    def auth(self, host: str) -> RegistryAuth:
        if host not in self._auth:
            self._auth[host] = RegistryAuth(self._credentials.get(host))
        return self._auth[host]

    def repository(self, registry: Registry, name: str) -> RemoteRepository:
        return RemoteRepository(
            registry,
            name,
            self.http_client(registry.insecure),
            self.auth(registry.host),
            self._chunk_size,
        )

    def for_registry(self, registry: Registry) -> OciRegistryClient:
        if registry not in self._clients:
            self._clients[registry] = OciRegistryClient(registry, self)
        return self._clients[registry]

    async def aclose(self) -> None:
        for client in self._http.values():
            await client.aclose()
        self._http.clear()
