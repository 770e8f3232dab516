import os
from typing import Optional

from pydantic import BaseModel, Field

from docker_registry_client.image.reference import ImageReferenceField
from docker_registry_client.manifest import Manifest

DEFAULT_USER_AGENT = "docker-registry-client/0.1.0"


class ManifestResponse(BaseModel):
    """Manifest fetched from a registry"""

    digest: Optional[str] = None
    manifest: Manifest
    reference: Optional[ImageReferenceField] = None


class ClientConfig(BaseModel):
    """Registry client configuration"""

    timeout: float = Field(default=30.0, gt=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    coalesce_token_requests: bool = False

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from DRC_* environment variables, falling back to defaults."""
        values = {}
        if os.getenv("DRC_TIMEOUT"):
            values["timeout"] = os.getenv("DRC_TIMEOUT")
        if os.getenv("DRC_USER_AGENT"):
            values["user_agent"] = os.getenv("DRC_USER_AGENT")
        if os.getenv("DRC_COALESCE_TOKENS"):
            values["coalesce_token_requests"] = os.getenv("DRC_COALESCE_TOKENS") == "1"
        return cls.model_validate(values)
