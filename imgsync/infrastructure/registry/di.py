"""DI provider for registry infrastructure."""

from typing import AsyncIterable

from dishka import provide

from imgsync.config import Config
from imgsync.domain.image.port.registry_client import RegistryClientFactory
from imgsync.domain.image.service.registry_set import RegistrySet
from imgsync.infrastructure.registry.client import HttpRegistryClientFactory
from imgsync.infrastructure.registry.credentials import DockerCredentialStore
from imgsync.util.di.base import Provider
from imgsync.util.di.scope import Scope


class RegistryProvider(Provider):
    @provide(scope=Scope.APP)
    def get_credentials(self) -> DockerCredentialStore:
        return DockerCredentialStore()

    @provide(scope=Scope.APP)
    async def get_client_factory(
        self, credentials: DockerCredentialStore, config: Config
    ) -> AsyncIterable[RegistryClientFactory]:
        factory = HttpRegistryClientFactory(
            credentials,
            timeout=config.registry.timeout,
            retries=config.registry.retries,
        )
        yield factory
        await factory.aclose()

    @provide(scope=Scope.BATCH)
    def get_registry_set(self, clients: RegistryClientFactory, config: Config) -> RegistrySet:
        return RegistrySet(
            clients=clients,
            concurrency=config.registry.concurrency,
            strict=config.registry.strict_existence,
        )
