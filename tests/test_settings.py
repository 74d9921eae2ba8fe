from config.settings import Settings
from infrastructure.helm_charts import build_chart_manager


def test_defaults(monkeypatch):
    for name in ("HELM_BINARY", "HELM_INSECURE", "REGISTRY_MIRROR_ENDPOINT", "HELM_EXTRA_ENV"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.helm_binary == "helm"
    assert settings.helm_timeout_seconds == 600.0
    assert settings.helm_insecure is False
    assert settings.registry_mirror_endpoint is None
    assert settings.helm_env == {}


def test_from_environment(monkeypatch):
    monkeypatch.setenv("HELM_BINARY", "/usr/local/bin/helm")
    monkeypatch.setenv("HELM_INSECURE", "true")
    monkeypatch.setenv("HELM_EXTRA_ENV", '{"HTTPS_PROXY": "proxy:3128"}')
    monkeypatch.setenv("REGISTRY_MIRROR_ENDPOINT", "harbor.local")
    monkeypatch.setenv("REGISTRY_MIRROR_PORT", "443")
    monkeypatch.setenv("REGISTRY_MIRROR_NAMESPACES", '{"public.ecr.aws": "eks-anywhere"}')

    settings = Settings(_env_file=None)

    assert settings.helm_binary == "/usr/local/bin/helm"
    assert settings.helm_insecure is True
    assert settings.helm_env == {"HTTPS_PROXY": "proxy:3128"}
    assert settings.registry_mirror_port == 443
    assert settings.registry_mirror_namespaces == {"public.ecr.aws": "eks-anywhere"}


def test_build_chart_manager_plain():
    manager = build_chart_manager(Settings(_env_file=None, helm_binary="helm3", helm_timeout_seconds=30,
                                           helm_insecure=False, registry_mirror_endpoint=None,
                                           registry_mirror_insecure=False, helm_env={}))

    assert manager.executable.binary == "helm3"
    assert manager.executable.timeout == 30
    assert manager.config.insecure is False
    assert manager.config.registry_mirror is None
    assert manager.config.env == {"HELM_EXPERIMENTAL_OCI": "1"}


def test_build_chart_manager_with_mirror():
    settings = Settings(
        _env_file=None,
        helm_insecure=False,
        registry_mirror_endpoint="harbor.local",
        registry_mirror_port=443,
        registry_mirror_namespaces={"public.ecr.aws": "eks-anywhere"},
        registry_mirror_insecure=True,
        helm_env={"NO_PROXY": "10.0.0.0/8"},
    )

    manager = build_chart_manager(settings)

    assert manager.config.insecure is True
    assert manager.config.registry_mirror.core_mirror() == "harbor.local:443/eks-anywhere"
    assert manager.config.env == {"HELM_EXPERIMENTAL_OCI": "1", "NO_PROXY": "10.0.0.0/8"}


def test_mirror_insecure_needs_a_mirror():
    manager = build_chart_manager(Settings(_env_file=None, helm_insecure=False,
                                           registry_mirror_endpoint=None, registry_mirror_insecure=True))

    assert manager.config.registry_mirror is None
    assert manager.config.insecure is False


def test_insecure_follows_the_mirror():
    manager = build_chart_manager(Settings(_env_file=None, helm_insecure=False,
                                           registry_mirror_endpoint="harbor.local", registry_mirror_insecure=True))

    assert manager.config.registry_mirror.insecure_skip_verify is True
    assert manager.config.insecure is True
