"""
Manifest models and decoding.

A manifest endpoint answers with one of three JSON shapes and none of them
carries a reliable discriminator (``mediaType`` is optional and absent from
schema 1). ``decode_manifest`` therefore checks a fixed list of candidates,
in order, and returns the first one whose structure matches:

1. ``ManifestList``   - ``schemaVersion`` 2 with a ``manifests`` array
2. ``ImageManifest``  - ``schemaVersion`` 2 with a ``layers`` array
3. ``LegacyManifest`` - ``schemaVersion`` 1 with an ``fsLayers`` array

Architecture and OS strings are closed enumerations; values this library does
not know decode to ``UNKNOWN`` rather than failing.
"""

import json
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from docker_registry_client.exceptions import DeserializeManifestError
from docker_registry_client.logging_config import configure_module_logging
from docker_registry_client.timestamps import Timestamp

logger = configure_module_logging("manifest")


class Architecture(str, Enum):
    """CPU architecture, as named by GOARCH."""

    I386 = "386"
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"
    LOONG64 = "loong64"
    MIPS = "mips"
    MIPS64 = "mips64"
    MIPS64LE = "mips64le"
    MIPSLE = "mipsle"
    PPC64 = "ppc64"
    PPC64LE = "ppc64le"
    RISCV64 = "riscv64"
    S390X = "s390x"
    WASM = "wasm"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.UNKNOWN
        return None


class OperatingSystem(str, Enum):
    """Operating system, as named by GOOS."""

    AIX = "aix"
    ANDROID = "android"
    DARWIN = "darwin"
    DRAGONFLY = "dragonfly"
    FREEBSD = "freebsd"
    ILLUMOS = "illumos"
    IOS = "ios"
    JS = "js"
    LINUX = "linux"
    NETBSD = "netbsd"
    OPENBSD = "openbsd"
    PLAN9 = "plan9"
    SOLARIS = "solaris"
    WASIP1 = "wasip1"
    WINDOWS = "windows"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.UNKNOWN
        return None


# Route strings through the enum constructor so _missing_ applies
ArchitectureField = Annotated[Architecture, BeforeValidator(Architecture)]
OperatingSystemField = Annotated[OperatingSystem, BeforeValidator(OperatingSystem)]


class Descriptor(BaseModel):
    """Content descriptor (used for the image config)"""

    mediaType: str
    size: int
    digest: str


class Layer(BaseModel):
    """Image layer descriptor"""

    mediaType: str
    size: int
    digest: str
    urls: Optional[List[str]] = None
    annotations: Dict[str, str] = Field(default_factory=dict)


class Platform(BaseModel):
    """Platform an entry of a manifest list is built for"""

    model_config = ConfigDict(populate_by_name=True)

    architecture: ArchitectureField
    os: OperatingSystemField
    os_version: Optional[str] = Field(default=None, alias="os.version")
    os_features: Optional[List[str]] = Field(default=None, alias="os.features")
    variant: Optional[str] = None
    features: Optional[List[str]] = None


class ManifestEntry(BaseModel):
    """Platform-specific manifest referenced from a manifest list"""

    mediaType: str
    size: int
    digest: str
    platform: Platform


class ImageManifest(BaseModel):
    """Schema 2 image manifest (Docker v2 or OCI)"""

    schemaVersion: Literal[2]
    mediaType: Optional[str] = None
    config: Descriptor
    layers: List[Layer]


class ManifestList(BaseModel):
    """Schema 2 manifest list / OCI image index"""

    schemaVersion: Literal[2]
    mediaType: Optional[str] = None
    manifests: List[ManifestEntry]


class ContainerConfig(BaseModel):
    """Container configuration recorded in a schema 1 history entry"""

    Hostname: Optional[str] = None
    Domainname: Optional[str] = None
    User: Optional[str] = None
    AttachStdin: Optional[bool] = None
    AttachStdout: Optional[bool] = None
    AttachStderr: Optional[bool] = None
    Tty: Optional[bool] = None
    OpenStdin: Optional[bool] = None
    StdinOnce: Optional[bool] = None
    Env: Optional[List[str]] = None
    Cmd: Optional[List[str]] = None
    Image: Optional[str] = None
    Volumes: Optional[Dict[str, Any]] = None
    WorkingDir: Optional[str] = None
    Entrypoint: Optional[List[str]] = None
    OnBuild: Optional[List[str]] = None
    Labels: Optional[Dict[str, str]] = None


class V1Compatibility(BaseModel):
    """Layer metadata embedded as a JSON string in schema 1 history"""

    id: str
    created: Timestamp
    parent: Optional[str] = None
    container: Optional[str] = None
    container_config: Optional[ContainerConfig] = None


class History(BaseModel):
    """Schema 1 history entry"""

    v1Compatibility: V1Compatibility

    @field_validator("v1Compatibility", mode="before")
    @classmethod
    def decode_nested_document(cls, v):
        # The wire value is a JSON document serialized into a string
        if isinstance(v, str):
            return json.loads(v)
        return v


class FsLayer(BaseModel):
    """Schema 1 filesystem layer reference"""

    blobSum: str


class LegacyManifest(BaseModel):
    """Schema 1 image manifest"""

    schemaVersion: Literal[1]
    name: str
    tag: str
    architecture: ArchitectureField
    fsLayers: List[FsLayer]
    history: List[History]


Manifest = Union[ImageManifest, ManifestList, LegacyManifest]


def _is_schema(document: Dict[str, Any], version: int, field: str) -> bool:
    return document.get("schemaVersion") == version and field in document


# Order matters: the first candidate whose predicate holds and which validates wins
MANIFEST_CANDIDATES: Tuple[Tuple[Type[BaseModel], Callable[[Dict[str, Any]], bool]], ...] = (
    (ManifestList, lambda document: _is_schema(document, 2, "manifests")),
    (ImageManifest, lambda document: _is_schema(document, 2, "layers")),
    (LegacyManifest, lambda document: _is_schema(document, 1, "fsLayers")),
)


def decode_manifest(body: str) -> Manifest:
    """
    Decode a manifest response body.

    Args:
        body: Raw response body text

    Returns:
        ManifestList, ImageManifest or LegacyManifest

    Raises:
        DeserializeManifestError: Body is not JSON or matches no manifest shape
    """
    try:
        document = json.loads(body)
    except json.JSONDecodeError as e:
        logger.error(f"Manifest body is not valid JSON: {e}")
        raise DeserializeManifestError(f"invalid JSON: {e}", body) from e

    if not isinstance(document, dict):
        raise DeserializeManifestError("manifest is not a JSON object", body)

    failures: List[str] = []
    for model, matches in MANIFEST_CANDIDATES:
        if not matches(document):
            continue
        try:
            manifest = model.model_validate(document)
        except ValidationError as e:
            logger.debug(f"Body looked like {model.__name__} but failed validation: {e}")
            failures.append(f"{model.__name__}: {e}")
            continue
        logger.debug(f"Decoded manifest as {model.__name__}")
        return manifest

    reason = "; ".join(failures) if failures else "no manifest shape matched"
    logger.error(f"Failed to decode manifest: {reason}")
    raise DeserializeManifestError(reason, body)
