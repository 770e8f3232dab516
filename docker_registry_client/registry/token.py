"""Bearer tokens and the keys they are cached under."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from docker_registry_client.exceptions import InvalidAuthorizationHeaderError
from docker_registry_client.image.reference import ImageReference
from docker_registry_client.image.registry import Registry
from docker_registry_client.timestamps import Timestamp


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Token(BaseModel):
    """Pull token issued by a registry token endpoint.

    Only ``token``, ``expires_in`` and ``issued_at`` are read from the
    endpoint response; anything else (``access_token`` etc.) is ignored.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    value: str = Field(alias="token")
    expires_in: Optional[int] = None
    issued_at: Optional[Timestamp] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.expires_in is None or self.issued_at is None:
            return None
        issued_at = self.issued_at
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        return issued_at + timedelta(seconds=self.expires_in)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """A token without ``expires_in`` never expires.

        With ``expires_in`` but no ``issued_at`` the expiry cannot be known,
        so the token counts as expired.
        """
        if self.expires_in is None:
            return True
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (now or utc_now()) < expires_at

    def authorization_headers(self) -> Dict[str, str]:
        """
        Build the Authorization header for this token.

        Raises:
            InvalidAuthorizationHeaderError: Token is not a legal header value
        """
        if not self.value or not self.value.isascii() or not self.value.isprintable():
            raise InvalidAuthorizationHeaderError(
                "Token value cannot be used in an Authorization header"
            )
        return {"Authorization": f"Bearer {self.value}"}


@dataclass(frozen=True)
class CacheKey:
    """Token cache key.

    Pull scope is per repository, so the tag or digest is not part of the key.
    """

    registry: Registry
    namespace: Optional[str]
    repository: Optional[str]
    name: str

    @classmethod
    def from_reference(cls, reference: ImageReference) -> "CacheKey":
        return cls(
            registry=reference.registry,
            namespace=reference.namespace,
            repository=reference.repository,
            name=reference.name,
        )

    @property
    def scope_path(self) -> str:
        parts = [self.namespace, self.repository, self.name]
        return "/".join(part for part in parts if part is not None)

    def __str__(self) -> str:
        # "-" marks an absent component
        return "/".join(
            [
                self.registry.domain,
                self.namespace or "-",
                self.repository or "-",
                self.name,
            ]
        )
