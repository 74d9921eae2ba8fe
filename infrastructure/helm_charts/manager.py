"""
Helm Chart Manager
Templates, pulls, pushes, installs, upgrades, lists and deletes chart releases
by driving the helm executable
"""
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from functools import reduce
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

import yaml

from infrastructure.executable import Executable
from infrastructure.errors import DeletionError, HelmError, SerializationError
from infrastructure.registry_mirror import RegistryMirror

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

INSECURE_SKIP_VERIFY_FLAG = "--insecure-skip-tls-verify"
# `helm registry login` has its own spelling of the flag
REGISTRY_LOGIN_INSECURE_FLAG = "--insecure"


def _default_env() -> Dict[str, str]:
    return {"HELM_EXPERIMENTAL_OCI": "1"}


@dataclass(frozen=True)
class HelmConfig:
    """Settings applied to every helm invocation"""
    env: Dict[str, str] = field(default_factory=_default_env)
    registry_mirror: Optional[RegistryMirror] = None
    insecure: bool = False


HelmOption = Callable[[HelmConfig], HelmConfig]


def with_registry_mirror(mirror: Optional[RegistryMirror]) -> HelmOption:
    """Route chart references through a registry mirror"""
    return lambda config: dataclasses.replace(config, registry_mirror=mirror)


def with_insecure() -> HelmOption:
    """Skip TLS certificate verification on every invocation"""
    return lambda config: dataclasses.replace(config, insecure=True)


def with_env(env: Dict[str, str]) -> HelmOption:
    """Add variables to the helm environment, keeping the existing ones"""
    return lambda config: dataclasses.replace(config, env={**config.env, **env})


def apply_options(config: HelmConfig, options: Iterable[HelmOption]) -> HelmConfig:
    return reduce(lambda current, option: option(current), options, config)


def get_helm_value_args(values: Sequence[str]) -> List[str]:
    """Turn ``key=value`` overrides into ``--set`` arguments"""
    args: List[str] = []
    for value in values:
        args.extend(["--set", value])
    return args


class ChartManager:
    """Manages helm chart releases through the helm executable

    Every operation runs a single helm process. ``timeout`` bounds it in
    seconds; when omitted the executable's default applies.

    ``upgrade_chart_with_values_file`` applies its options to this instance
    and they stay in effect for every later call. Do not share an instance
    between concurrent callers that expect a fixed configuration; use
    ``with_options`` for a one-off variant instead.
    """

    def __init__(self, executable: Executable, *options: HelmOption):
        self.executable = executable
        self._config = apply_options(HelmConfig(), options)
        self._lock = threading.Lock()

    @property
    def config(self) -> HelmConfig:
        return self._config

    def with_options(self, *options: HelmOption) -> "ChartManager":
        """Return a new manager with ``options`` applied on top of this one's config"""
        manager = ChartManager(self.executable)
        manager._config = apply_options(self._config, options)
        return manager

    async def template(self,
                       chart_uri: str,
                       version: str,
                       namespace: str,
                       values: object,
                       kube_version: str,
                       timeout: Optional[float] = None) -> bytes:
        """Render a chart's manifests with the given values"""

        try:
            values_yaml = yaml.safe_dump(values, default_flow_style=False).encode("utf-8")
        except yaml.YAMLError as e:
            raise SerializationError(f"failed marshalling values for helm template: {e}") from e

        config = self._config
        params = [
            "template", self._url(config, chart_uri),
            "--version", version,
            "--namespace", namespace,
            "--kube-version", kube_version,
            "-f", "-",
        ]
        return await self._run(config, params, stdin=values_yaml, timeout=timeout)

    async def pull_chart(self, chart_uri: str, version: str, timeout: Optional[float] = None) -> None:
        config = self._config
        params = ["pull", self._url(config, chart_uri), "--version", version]
        await self._run(config, params, timeout=timeout)

    async def show_values(self, chart_uri: str, version: str, timeout: Optional[float] = None) -> bytes:
        """Get the default values of a chart"""
        config = self._config
        params = ["show", "values", self._url(config, chart_uri), "--version", version]
        return await self._run(config, params, timeout=timeout)

    async def push_chart(self, chart: str, registry: str, timeout: Optional[float] = None) -> None:
        logger.info("Pushing chart %s to %s", chart, registry)
        config = self._config
        await self._run(config, ["push", chart, registry], timeout=timeout)

    async def registry_login(self,
                             registry: str,
                             username: str,
                             password: str,
                             timeout: Optional[float] = None) -> None:
        """Log in to an OCI registry, passing the password on stdin"""

        logger.info("Logging in to helm registry %s", registry)
        config = self._config
        params = ["registry", "login", registry, "--username", username, "--password-stdin"]
        await self._run(config, params,
                        stdin=password.encode("utf-8"),
                        insecure_flag=REGISTRY_LOGIN_INSECURE_FLAG,
                        timeout=timeout)

    async def save_chart(self, chart_uri: str, version: str, folder: str, timeout: Optional[float] = None) -> None:
        config = self._config
        params = ["pull", self._url(config, chart_uri), "--version", version, "--destination", folder]
        await self._run(config, params, timeout=timeout)

    async def install_chart_from_name(self,
                                      chart_uri: str,
                                      kubeconfig: str,
                                      name: str,
                                      version: str,
                                      timeout: Optional[float] = None) -> None:
        # upgrade --install creates the release when missing and upgrades it
        # otherwise; plain install fails on an existing release.
        config = self._config
        params = [
            "upgrade", "--install", name, self._url(config, chart_uri),
            "--version", version,
            "--kubeconfig", kubeconfig,
        ]
        await self._run(config, params, timeout=timeout)

    async def install_chart(self,
                            name: str,
                            chart_uri: str,
                            version: str,
                            kubeconfig: Optional[str] = None,
                            namespace: Optional[str] = None,
                            values_file: Optional[str] = None,
                            skip_crds: bool = False,
                            values: Sequence[str] = (),
                            timeout: Optional[float] = None) -> None:
        """Install or upgrade a chart release on the target cluster

        ``kubeconfig``, ``namespace`` and ``values_file`` are only passed to
        helm when set.
        """

        config = self._config
        params = ["upgrade", "--install", name, self._url(config, chart_uri), "--version", version]
        if skip_crds:
            params.append("--skip-crds")
        params.extend(get_helm_value_args(values))
        if kubeconfig:
            params.extend(["--kubeconfig", kubeconfig])
        if namespace:
            params.extend(["--create-namespace", "--namespace", namespace])
        if values_file:
            params.extend(["-f", values_file])

        logger.info("Installing helm chart %s version %s", name, version)
        await self._run(config, params, timeout=timeout)

    async def install_chart_with_values_file(self,
                                             name: str,
                                             chart_uri: str,
                                             version: str,
                                             kubeconfig: str,
                                             values_file: str,
                                             timeout: Optional[float] = None) -> None:
        """Install or upgrade a release and wait for its resources to be ready

        helm waits up to its default of 5m for the release to become ready.
        """

        config = self._config
        params = [
            "upgrade", "--install", name, self._url(config, chart_uri),
            "--version", version,
            "--values", values_file,
            "--kubeconfig", kubeconfig,
            "--wait",
        ]
        await self._run(config, params, timeout=timeout)

    async def delete(self,
                     kubeconfig: str,
                     install_name: str,
                     namespace: Optional[str] = None,
                     timeout: Optional[float] = None) -> None:
        """Remove a release"""

        config = self._config
        params = ["delete", install_name, "--kubeconfig", kubeconfig]
        if namespace:
            params.extend(["--namespace", namespace])

        try:
            await self._run(config, params, timeout=timeout)
        except HelmError as e:
            raise DeletionError(f"deleting helm installation {install_name}: {e}") from e

        logger.debug("Deleted helm installation %s in namespace %s", install_name, namespace or "<default>")

    async def list_charts(self, kubeconfig: str, timeout: Optional[float] = None) -> List[str]:
        """List release names on the cluster"""
        config = self._config
        out = await self._run(config, ["list", "-q", "--kubeconfig", kubeconfig], timeout=timeout)
        return [line for line in out.decode("utf-8").split("\n") if line]

    async def upgrade_chart_with_values_file(self,
                                             name: str,
                                             chart_uri: str,
                                             version: str,
                                             kubeconfig: str,
                                             values_file: str,
                                             *options: HelmOption,
                                             timeout: Optional[float] = None) -> None:
        """Upgrade an existing release and wait for it to be ready

        ``options`` are applied to this manager before running and remain in
        effect for all later calls on it.
        """

        with self._lock:
            self._config = apply_options(self._config, options)
            config = self._config

        params = [
            "upgrade", name, self._url(config, chart_uri),
            "--version", version,
            "--values", values_file,
            "--kubeconfig", kubeconfig,
            "--wait",
        ]
        await self._run(config, params, timeout=timeout)

    async def _run(self,
                   config: HelmConfig,
                   params: List[str],
                   stdin: Optional[bytes] = None,
                   insecure_flag: str = INSECURE_SKIP_VERIFY_FLAG,
                   timeout: Optional[float] = None) -> bytes:
        if config.insecure:
            params = [*params, insecure_flag]
        return await self.executable.execute(*params, stdin=stdin, env=config.env, timeout=timeout)

    @staticmethod
    def _url(config: HelmConfig, original: str) -> str:
        if config.registry_mirror is None:
            return original
        return config.registry_mirror.replace_registry(original)


def build_chart_manager(settings: "Settings") -> ChartManager:
    """Create a chart manager configured from application settings"""

    options: List[HelmOption] = [with_env(settings.helm_env)]
    insecure = settings.helm_insecure

    if settings.registry_mirror_endpoint:
        mirror = RegistryMirror.from_endpoint(
            settings.registry_mirror_endpoint,
            port=settings.registry_mirror_port,
            namespaces=settings.registry_mirror_namespaces,
            insecure_skip_verify=settings.registry_mirror_insecure,
        )
        options.append(with_registry_mirror(mirror))
        # Mirror TLS settings apply to every helm call
        insecure = insecure or mirror.insecure_skip_verify

    if insecure:
        options.append(with_insecure())

    executable = Executable(settings.helm_binary, timeout=settings.helm_timeout_seconds)
    return ChartManager(executable, *options)
