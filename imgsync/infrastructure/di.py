"""DI provider for the external tool adapters and chart discovery."""

from dishka import provide

from imgsync.config import Config
from imgsync.domain.image.port.discovery import ChartDiscovery
from imgsync.domain.patch.port.patcher import Patcher
from imgsync.domain.patch.port.scanner import Scanner
from imgsync.domain.patch.port.signer import Signer
from imgsync.infrastructure.copa.patcher import CopaPatcher
from imgsync.infrastructure.cosign.signer import CosignSigner
from imgsync.infrastructure.discovery.config import ConfigChartDiscovery
from imgsync.infrastructure.process import ProcessRunner
from imgsync.infrastructure.trivy.scanner import TrivyScanner
from imgsync.util.di.base import Provider
from imgsync.util.di.scope import Scope


class ToolProvider(Provider):
    runner = provide(ProcessRunner, scope=Scope.APP)

    @provide(scope=Scope.APP)
    def get_scanner(self, runner: ProcessRunner, config: Config) -> Scanner:
        trivy = config.import_.copacetic.trivy
        return TrivyScanner(
            runner,
            trivy.addr,
            insecure=trivy.insecure,
            ignore_unfixed=trivy.ignore_unfixed,
            timeout=trivy.timeout,
        )

    @provide(scope=Scope.APP)
    def get_patcher(self, runner: ProcessRunner, config: Config) -> Patcher:
        copacetic = config.import_.copacetic
        return CopaPatcher(
            runner,
            copacetic.buildkitd.addr,
            ca_cert_path=copacetic.buildkitd.ca_cert_path,
            cert_path=copacetic.buildkitd.cert_path,
            key_path=copacetic.buildkitd.key_path,
            timeout=copacetic.timeout,
        )

    @provide(scope=Scope.APP)
    def get_signer(self, runner: ProcessRunner, config: Config) -> Signer:
        return CosignSigner(runner, timeout=config.import_.cosign.timeout)

    @provide(scope=Scope.APP)
    def get_discovery(self, config: Config) -> ChartDiscovery:
        return ConfigChartDiscovery(config.charts)
