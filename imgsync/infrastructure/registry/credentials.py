"""Docker credential store lookup (config.json, credHelpers, credsStore)."""

import base64
import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DOCKER_HUB_HOSTS = ("docker.io", "index.docker.io", "registry-1.docker.io")
DOCKER_HUB_AUTH_KEY = "https://index.docker.io/v1/"

_HELPER_TIMEOUT = 10


@dataclass(frozen=True)
class Credential:
    username: str = ""
    password: str = ""
    identity_token: str | None = None  # refresh token for OAuth2 token endpoints


class DockerCredentialStore:
    """Reads registry credentials the way the Docker CLI stores them.

    Lookup order per host: `credHelpers[host]`, then `credsStore`, then the
    `auths` section of `$DOCKER_CONFIG/config.json` (default `~/.docker`).
    Results are cached for the lifetime of the store.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        if config_path is None:
            config_dir = Path(os.environ.get("DOCKER_CONFIG", "~/.docker")).expanduser()
            config_path = config_dir / "config.json"
        self._config_path = config_path
        self._cache: dict[str, Credential | None] = {}

    def _load_config(self) -> dict:
        if not self._config_path.exists():
            return {}
        try:
            return json.loads(self._config_path.read_text()) or {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable Docker config %s: %s", self._config_path, e)
            return {}

    @staticmethod
    def _auth_keys(host: str) -> list[str]:
        if host in DOCKER_HUB_HOSTS:
            return [DOCKER_HUB_AUTH_KEY, *DOCKER_HUB_HOSTS]
        return [host, f"https://{host}", f"http://{host}"]

    def get(self, host: str) -> Credential | None:
        """Credential for `host`, or None for anonymous access."""
        if host not in self._cache:
            self._cache[host] = self._lookup(host)
        return self._cache[host]

    def _lookup(self, host: str) -> Credential | None:
        config = self._load_config()
        keys = self._auth_keys(host)

        helpers = config.get("credHelpers") or {}
        helper = next((helpers[k] for k in keys if k in helpers), None) or config.get("credsStore")
        if helper:
            for key in keys:
                credential = self._from_helper(helper, key)
                if credential is not None:
                    return credential

        auths = config.get("auths") or {}
        for key in keys:
            entry = auths.get(key)
            if entry:
                return self._from_entry(entry)
        return None

    @staticmethod
    def _from_entry(entry: dict) -> Credential | None:
        username = entry.get("username", "")
        password = entry.get("password", "")
        if entry.get("auth"):
            decoded = base64.b64decode(entry["auth"]).decode("utf-8")
            username, _, password = decoded.partition(":")
        token = entry.get("identitytoken")
        if not (username or password or token):
            return None
        return Credential(username=username, password=password, identity_token=token)

    @staticmethod
    def _from_helper(helper: str, server: str) -> Credential | None:
        try:
            result = subprocess.run(
                [f"docker-credential-{helper}", "get"],
                input=server,
                capture_output=True,
                text=True,
                timeout=_HELPER_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Credential helper %s unavailable: %s", helper, e)
            return None
        if result.returncode != 0:
            # "credentials not found in native keychain" is the normal miss
            logger.debug("Credential helper %s has nothing for %s", helper, server)
            return None
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.debug("Credential helper %s returned invalid JSON", helper)
            return None
        username = data.get("Username", "")
        secret = data.get("Secret", "")
        if username == "<token>":
            return Credential(identity_token=secret)
        return Credential(username=username, password=secret)
