"""Catalog of supported container registries."""

from enum import Enum
from typing import Optional


class Registry(str, Enum):
    """Known container registries, valued by their canonical domain."""

    DOCKER_HUB = "index.docker.io"
    GITHUB = "ghcr.io"
    QUAY = "quay.io"
    RED_HAT = "registry.access.redhat.com"
    K8S = "registry.k8s.io"
    GOOGLE = "gcr.io"
    MICROSOFT = "mcr.microsoft.com"

    def __str__(self) -> str:
        return self.value

    @property
    def domain(self) -> str:
        return self.value

    @property
    def needs_auth(self) -> bool:
        return self in _AUTHENTICATED

    @classmethod
    def from_domain(cls, domain: str) -> Optional["Registry"]:
        """Resolve a domain (or known alias) to a registry, None if unknown."""
        return _DOMAINS.get(domain)


_AUTHENTICATED = frozenset({Registry.DOCKER_HUB, Registry.GITHUB, Registry.QUAY})

_DOMAINS = {registry.value: registry for registry in Registry}
_DOMAINS["docker.io"] = Registry.DOCKER_HUB


def domain_of(registry: Registry) -> str:
    return registry.domain


def needs_auth(registry: Registry) -> bool:
    return registry.needs_auth


def from_domain(domain: str) -> Optional[Registry]:
    return Registry.from_domain(domain)
