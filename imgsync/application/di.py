from dishka import AsyncContainer, from_context, make_async_container, provide

from imgsync.application.pipeline import Pipeline
from imgsync.config import Config
from imgsync.domain.image.port.registry_client import RegistryClientFactory
from imgsync.domain.image.service.registry_set import RegistrySet
from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.patch.port.scanner import Scanner
from imgsync.domain.patch.port.signer import Signer
from imgsync.domain.patch.service.artifacts import ArtifactStore
from imgsync.domain.patch.service.patch import PatchCoordinator
from imgsync.domain.patch.service.scan import ScanCoordinator
from imgsync.domain.patch.service.sign import SignCoordinator
from imgsync.domain.shared.port.reporter import NullReporter, ProgressReporter
from imgsync.infrastructure.di import ToolProvider
from imgsync.infrastructure.registry.di import RegistryProvider
from imgsync.util.di.base import Provider
from imgsync.util.di.scope import Scope


class PipelineProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)
    reporter = from_context(provides=ProgressReporter, scope=Scope.APP)

    @provide(scope=Scope.BATCH)
    def get_pipeline(
        self,
        config: Config,
        registry_set: RegistrySet,
        clients: RegistryClientFactory,
        scanner: Scanner,
        patcher: Patcher,
        signer: Signer,
        reporter: ProgressReporter,
    ) -> Pipeline:
        imports = config.import_
        copacetic = imports.copacetic
        cosign = imports.cosign

        patching = imports.enabled and copacetic.enabled
        sign_coordinator = None
        if imports.enabled and cosign.enabled:
            sign_coordinator = SignCoordinator(
                signer=signer,
                clients=clients,
                key_ref=cosign.key_ref,
                key_ref_pass=cosign.key_ref_pass,
                allow_insecure=cosign.allow_insecure,
                allow_http_registry=cosign.allow_http_registry,
                concurrency=config.registry.concurrency,
            )

        return Pipeline(
            registries=config.target_registries(),
            registry_set=registry_set,
            scanner=ScanCoordinator(
                scanner=scanner, patcher=patcher, architecture=imports.architecture
            )
            if patching
            else None,
            patcher=PatchCoordinator(patcher=patcher, ignore_errors=copacetic.ignore_errors)
            if patching
            else None,
            signer=sign_coordinator,
            artifacts=ArtifactStore(
                reports_dir=copacetic.output.reports.folder,
                tars_dir=copacetic.output.tars.folder,
            )
            if patching
            else None,
            reporter=reporter,
            mirrors=tuple(config.mirrors),
            import_enabled=imports.enabled,
            include_all=config.all,
            architecture=imports.architecture,
            clean_reports=copacetic.output.reports.clean,
            clean_archives=copacetic.output.tars.clean,
        )


def create_container(
    config: Config, reporter: ProgressReporter | None = None
) -> AsyncContainer:
    return make_async_container(
        PipelineProvider(),
        RegistryProvider(),
        ToolProvider(),
        context={Config: config, ProgressReporter: reporter or NullReporter()},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
