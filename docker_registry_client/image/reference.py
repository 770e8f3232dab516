"""
Image reference parsing.

Turns human-readable references such as ``alpine``, ``prom/prometheus:v2.53.2``
or ``ghcr.io/sigstore/cosign/cosign:v2.4.0`` into structured ``ImageReference``
values. There is no marker telling a registry domain apart from a repository,
so the number of ``/``-separated components decides how each one is read:

- ``name``                                  Docker Hub, repository ``library``
- ``registry/name`` or ``repository/name``  catalog lookup decides
- ``registry/repository/name``
- ``registry/namespace/repository/name``
"""

import re
from dataclasses import dataclass
from typing import Annotated, Optional, Union

from pydantic import PlainSerializer, PlainValidator

from docker_registry_client.exceptions import (
    ImageReferenceError,
    MissingFirstComponentError,
    ParseDigestError,
    ParseImageNameError,
    ParseRegistryError,
    ParseTagError,
    UnsupportedImageNameError,
)
from docker_registry_client.image.registry import Registry
from docker_registry_client.logging_config import configure_module_logging

logger = configure_module_logging("image.reference")

DEFAULT_TAG = "latest"
DEFAULT_REPOSITORY = "library"

NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*$")
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[A-Za-z0-9=_-]+$")


@dataclass(frozen=True)
class Tag:
    """Symbolic, mutable image label."""

    value: str = DEFAULT_TAG

    @property
    def is_latest(self) -> bool:
        return self.value == DEFAULT_TAG

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Digest:
    """Algorithm-prefixed content hash, e.g. ``sha256:2247f1...``."""

    value: str

    @property
    def algorithm(self) -> str:
        return self.value.partition(":")[0]

    @property
    def encoded(self) -> str:
        return self.value.partition(":")[2]

    def __str__(self) -> str:
        return self.value


Identifier = Union[Tag, Digest]


@dataclass(frozen=True)
class ImageReference:
    """A parsed image reference."""

    registry: Registry
    name: str
    identifier: Identifier = Tag()
    namespace: Optional[str] = None
    repository: Optional[str] = None

    @property
    def path(self) -> str:
        """Repository path below the registry, e.g. ``sigstore/cosign/cosign``."""
        parts = [self.namespace, self.repository, self.name]
        return "/".join(part for part in parts if part is not None)

    @property
    def reference(self) -> str:
        """The tag or digest, as used in manifest URLs."""
        return str(self.identifier)

    @property
    def is_digest(self) -> bool:
        return isinstance(self.identifier, Digest)

    def __str__(self) -> str:
        separator = "@" if self.is_digest else ":"
        return f"{self.registry.domain}/{self.path}{separator}{self.identifier}"

    @classmethod
    def parse(cls, value: str) -> "ImageReference":
        return parse(value)


def _logged(err: ImageReferenceError) -> ImageReferenceError:
    logger.error(str(err))
    return err


def parse_identifier(segment: str):
    """
    Split the trailing path segment into a name and its tag or digest.

    ``@`` takes priority over ``:``; without either the tag is ``latest``.

    Returns:
        Tuple of (name, Tag | Digest)

    Raises:
        ParseImageNameError: Name part is empty or malformed
        ParseTagError: Tag part is empty or malformed
        ParseDigestError: Digest part is empty or malformed
    """
    if "@" in segment:
        name, _, digest = segment.partition("@")
        if not DIGEST_PATTERN.match(digest):
            raise _logged(ParseDigestError(segment))
        identifier: Identifier = Digest(digest)
    elif ":" in segment:
        name, _, tag = segment.partition(":")
        if not TAG_PATTERN.match(tag):
            raise _logged(ParseTagError(segment))
        identifier = Tag(tag)
    else:
        name = segment
        identifier = Tag()

    if not NAME_PATTERN.match(name):
        raise _logged(ParseImageNameError(segment))

    return name, identifier


def _path_component(segment: str) -> str:
    # Namespace and repository share the name grammar; they end up in URL paths
    if not NAME_PATTERN.match(segment):
        raise _logged(ParseImageNameError(segment, "invalid repository path component"))
    return segment


def _resolve_registry(domain: str) -> Registry:
    registry = Registry.from_domain(domain)
    if registry is None:
        raise _logged(ParseRegistryError(domain))
    return registry


def parse(value: str) -> ImageReference:
    """
    Parse an image reference string.

    Args:
        value: Reference such as ``quay.io/argoproj/argocd:latest``

    Returns:
        ImageReference

    Raises:
        ImageReferenceError: Any of its subclasses, depending on what is wrong
    """
    components = value.split("/")

    if not components[0]:
        raise _logged(MissingFirstComponentError())

    if len(components) > 4 or any(not component for component in components):
        raise _logged(UnsupportedImageNameError(value))

    name, identifier = parse_identifier(components[-1])

    if len(components) == 1:
        return ImageReference(
            registry=Registry.DOCKER_HUB,
            repository=DEFAULT_REPOSITORY,
            name=name,
            identifier=identifier,
        )

    if len(components) == 2:
        registry = Registry.from_domain(components[0])
        if registry is not None:
            return ImageReference(registry=registry, name=name, identifier=identifier)
        # Not a known domain, so a Docker Hub repository ("prom/prometheus")
        return ImageReference(
            registry=Registry.DOCKER_HUB,
            repository=_path_component(components[0]),
            name=name,
            identifier=identifier,
        )

    if len(components) == 3:
        return ImageReference(
            registry=_resolve_registry(components[0]),
            repository=_path_component(components[1]),
            name=name,
            identifier=identifier,
        )

    return ImageReference(
        registry=_resolve_registry(components[0]),
        namespace=_path_component(components[1]),
        repository=_path_component(components[2]),
        name=name,
        identifier=identifier,
    )


def _validate_reference(value) -> ImageReference:
    if isinstance(value, ImageReference):
        return value
    if isinstance(value, str):
        return parse(value)
    raise ValueError(f"expected an image reference string, got {type(value).__name__}")


# Pydantic field type: validates from a reference string, serializes back to one
ImageReferenceField = Annotated[
    ImageReference,
    PlainValidator(_validate_reference),
    PlainSerializer(str, return_type=str),
]
