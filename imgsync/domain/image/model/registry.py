"""Registry endpoint model."""

from pydantic import field_validator

from imgsync.domain.shared.model.value import ValueObject

# Source endpoints naming one of these are reached over plain HTTP
LOCAL_ADDRESSES = ("localhost", "127.0.0.1", "0.0.0.0")


def is_local_address(url: str) -> bool:
    return any(addr in url for addr in LOCAL_ADDRESSES)


class Registry(ValueObject):
    """A target (or source) registry endpoint.

    `url` is host[:port] with an optional path prefix, e.g. "myacr.azurecr.io/mirror".
    """

    name: str
    url: str
    insecure: bool = False  # skip TLS verification
    plain_http: bool = False

    @field_validator("url")
    @classmethod
    def _strip_scheme(cls, v: str) -> str:
        for scheme in ("https://", "http://"):
            if v.startswith(scheme):
                v = v[len(scheme) :]
        return v.rstrip("/")

    @classmethod
    def endpoint(cls, url: str) -> "Registry":
        """Build an ad hoc source endpoint, plain HTTP for local addresses."""
        return cls(name=url, url=url, plain_http=is_local_address(url))

    @property
    def host(self) -> str:
        return self.url.split("/", 1)[0]

    @property
    def prefix(self) -> str:
        _, _, prefix = self.url.partition("/")
        return prefix

    @property
    def scheme(self) -> str:
        return "http" if self.plain_http else "https"

    def repository(self, name: str) -> str:
        """Repository path of `name` inside this registry (prefix applied)."""
        return f"{self.prefix}/{name}" if self.prefix else name

    def reference(self, name: str, tag: str) -> str:
        """`url/name:tag`, or `url/name@digest` when `tag` is a digest."""
        separator = "@" if ":" in tag else ":"
        return f"{self.url}/{name}{separator}{tag}"

    def __str__(self) -> str:
        return self.url
