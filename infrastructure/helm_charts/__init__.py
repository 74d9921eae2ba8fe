"""Helm charts management module"""
from infrastructure.errors import (
    CancellationError,
    DeletionError,
    ExternalProcessError,
    HelmError,
    SerializationError,
)
from infrastructure.helm_charts.manager import (
    ChartManager,
    HelmConfig,
    HelmOption,
    apply_options,
    build_chart_manager,
    get_helm_value_args,
    with_env,
    with_insecure,
    with_registry_mirror,
)

__all__ = [
    "ChartManager",
    "HelmConfig",
    "HelmOption",
    "apply_options",
    "build_chart_manager",
    "get_helm_value_args",
    "with_env",
    "with_insecure",
    "with_registry_mirror",
    # Errors
    "HelmError",
    "SerializationError",
    "ExternalProcessError",
    "CancellationError",
    "DeletionError",
]
