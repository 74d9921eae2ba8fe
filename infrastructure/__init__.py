"""Infrastructure module"""
from infrastructure.executable import Executable
from infrastructure.registry_mirror import RegistryMirror
from infrastructure.helm_charts.manager import ChartManager

__all__ = [
    "Executable",
    "RegistryMirror",
    "ChartManager",
]
