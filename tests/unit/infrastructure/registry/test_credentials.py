import base64
import json
import subprocess
from unittest.mock import patch

from imgsync.infrastructure.registry.credentials import Credential, DockerCredentialStore


def _write_config(tmp_path, data: dict):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


class TestDockerCredentialStore:
    def test_missing_config_is_anonymous(self, tmp_path):
        assert DockerCredentialStore(tmp_path / "nope.json").get("r.io") is None

    def test_auth_entry_is_decoded(self, tmp_path):
        auth = base64.b64encode(b"user:p:ss").decode()
        store = DockerCredentialStore(_write_config(tmp_path, {"auths": {"r.io": {"auth": auth}}}))

        assert store.get("r.io") == Credential(username="user", password="p:ss")

    def test_docker_hub_uses_legacy_key(self, tmp_path):
        auth = base64.b64encode(b"hubuser:token").decode()
        store = DockerCredentialStore(
            _write_config(tmp_path, {"auths": {"https://index.docker.io/v1/": {"auth": auth}}})
        )

        assert store.get("docker.io").username == "hubuser"

    def test_docker_config_env(self, tmp_path, monkeypatch):
        auth = base64.b64encode(b"envuser:pw").decode()
        _write_config(tmp_path, {"auths": {"https://r.io": {"auth": auth}}})
        monkeypatch.setenv("DOCKER_CONFIG", str(tmp_path))

        assert DockerCredentialStore().get("r.io").username == "envuser"

    def test_cred_helper_takes_precedence(self, tmp_path):
        config = _write_config(
            tmp_path,
            {
                "credHelpers": {"acr.io": "acr"},
                "auths": {"acr.io": {"auth": base64.b64encode(b"stale:x").decode()}},
            },
        )
        helper_output = json.dumps({"Username": "<token>", "Secret": "refresh-token"})
        completed = subprocess.CompletedProcess([], 0, stdout=helper_output, stderr="")

        with patch("subprocess.run", return_value=completed) as run:
            credential = DockerCredentialStore(config).get("acr.io")

        assert credential == Credential(identity_token="refresh-token")
        assert run.call_args.args[0] == ["docker-credential-acr", "get"]

    def test_missing_helper_falls_back_to_auths(self, tmp_path):
        config = _write_config(
            tmp_path,
            {
                "credsStore": "desktop",
                "auths": {"r.io": {"username": "u", "password": "p"}},
            },
        )

        with patch("subprocess.run", side_effect=FileNotFoundError("docker-credential-desktop")):
            credential = DockerCredentialStore(config).get("r.io")

        assert credential == Credential(username="u", password="p")

    def test_lookups_are_cached(self, tmp_path):
        config = _write_config(tmp_path, {"credsStore": "desktop"})
        missing = subprocess.CompletedProcess([], 1, stdout="", stderr="not found")

        with patch("subprocess.run", return_value=missing) as run:
            store = DockerCredentialStore(config)
            assert store.get("r.io") is None
            assert store.get("r.io") is None

        assert run.call_count == 3  # one call per candidate server key
