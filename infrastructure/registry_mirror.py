"""
Registry mirror support
Rewrites chart and image references so they are pulled from a local mirror
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

# Registry the cluster lifecycle charts are published to by default
DEFAULT_REGISTRY = "public.ecr.aws"


@dataclass(frozen=True)
class RegistryMirror:
    """A registry mirror and the registries it stands in for

    ``namespaced_registry_map`` maps an original registry host to the
    location on the mirror that replaces it (``host[:port]/namespace``).
    """
    base_registry: str
    namespaced_registry_map: Dict[str, str] = field(default_factory=dict)
    insecure_skip_verify: bool = False

    @classmethod
    def from_endpoint(cls,
                      endpoint: str,
                      port: Optional[int] = None,
                      namespaces: Optional[Dict[str, str]] = None,
                      insecure_skip_verify: bool = False) -> "RegistryMirror":
        """Build a mirror from its endpoint and per-registry namespaces"""

        base_registry = f"{endpoint}:{port}" if port else endpoint

        registry_map: Dict[str, str] = {}
        if namespaces:
            for registry, namespace in namespaces.items():
                namespace = namespace.strip("/")
                registry_map[registry] = f"{base_registry}/{namespace}" if namespace else base_registry
        else:
            registry_map[DEFAULT_REGISTRY] = base_registry

        return cls(
            base_registry=base_registry,
            namespaced_registry_map=registry_map,
            insecure_skip_verify=insecure_skip_verify,
        )

    def core_mirror(self) -> str:
        """Mirror location used in place of the default registry"""
        return self.namespaced_registry_map.get(DEFAULT_REGISTRY, self.base_registry)

    def replace_registry(self, uri: str) -> str:
        """Point ``uri`` at the mirror if its registry is mirrored

        The scheme (e.g. ``oci://``) is kept. URIs whose registry host has
        no mirror entry are returned unchanged.
        """

        scheme, sep, rest = uri.partition("://")
        if not sep:
            scheme, rest = "", uri

        host, slash, path = rest.partition("/")
        mirror = self.namespaced_registry_map.get(host)
        if mirror is None:
            return uri

        replaced = f"{mirror}{slash}{path}"
        return f"{scheme}://{replaced}" if scheme else replaced
