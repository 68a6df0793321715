"""httpx auth flow for registry Bearer/Basic challenges."""

import base64
import logging
import re
from collections.abc import Generator

import httpx

from imgsync.infrastructure.registry.credentials import Credential

logger = logging.getLogger(__name__)

_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')
_REPO_PATH_RE = re.compile(r"^/v2/(?P<repo>.+)/(?:manifests|blobs)/")
_CLIENT_ID = "imgsync"


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Split a WWW-Authenticate header into (scheme, params)."""
    scheme, _, rest = header.strip().partition(" ")
    return scheme.lower(), dict(_PARAM_RE.findall(rest))


def scope_for(request: httpx.Request) -> str | None:
    """Token scope a registry request needs, e.g. "repository:app:pull"."""
    match = _REPO_PATH_RE.match(request.url.path)
    if not match:
        return None
    actions = "pull" if request.method in ("GET", "HEAD") else "pull,push"
    return f"repository:{match.group('repo')}:{actions}"


class RegistryAuth(httpx.Auth):
    """Answers 401 challenges from one registry host.

    Bearer: fetches a token from the challenge realm (with basic credentials or an
    identity token when we have them) and caches it per scope.
    Basic: resends with basic credentials.
    """

    requires_response_body = True

    def __init__(self, credential: Credential | None) -> None:
        self._credential = credential
        self._tokens: dict[str, str] = {}
        self._use_basic = False

    def _basic_header(self) -> str | None:
        if self._credential is None or not self._credential.username:
            return None
        userpass = f"{self._credential.username}:{self._credential.password}"
        return "Basic " + base64.b64encode(userpass.encode()).decode("ascii")

    def _token_request(self, realm: str, service: str | None, scope: str | None) -> httpx.Request:
        params = {k: v for k, v in (("service", service), ("scope", scope)) if v}
        credential = self._credential
        if credential is not None and credential.identity_token:
            return httpx.Request(
                "POST",
                realm,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": credential.identity_token,
                    "client_id": _CLIENT_ID,
                    **params,
                },
            )
        headers = {}
        basic = self._basic_header()
        if basic:
            headers["Authorization"] = basic
        return httpx.Request("GET", realm, params=params, headers=headers)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        scope = scope_for(request)
        token = self._tokens.get(scope or "")
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        elif self._use_basic and (basic := self._basic_header()):
            request.headers["Authorization"] = basic

        response = yield request
        if response.status_code != 401:
            return

        scheme, params = parse_challenge(response.headers.get("WWW-Authenticate", ""))
        if scheme == "basic":
            basic = self._basic_header()
            if basic is None:
                return
            self._use_basic = True
            request.headers["Authorization"] = basic
            yield request
            return

        if scheme != "bearer" or "realm" not in params:
            return

        token_response = yield self._token_request(
            params["realm"], params.get("service"), scope or params.get("scope")
        )
        if token_response.status_code != 200:
            logger.debug(
                "Token request to %s failed with status %s",
                params["realm"],
                token_response.status_code,
            )
            return
        body = token_response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            return
        if scope:
            self._tokens[scope] = token
        request.headers["Authorization"] = f"Bearer {token}"
        yield request
