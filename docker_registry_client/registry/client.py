import asyncio
from typing import Dict, Optional, Union

import httpx
from pydantic import ValidationError

from docker_registry_client.exceptions import (
    DeserializeTokenError,
    FailedManifestRequestError,
    FailedTokenRequestError,
    GetManifestError,
    GetTokenError,
    InvalidManifestUrlError,
    InvalidTokenUrlError,
    ManifestNotFoundError,
)
from docker_registry_client.image.reference import ImageReference, parse
from docker_registry_client.image.registry import Registry
from docker_registry_client.logging_config import configure_module_logging
from docker_registry_client.manifest import decode_manifest
from docker_registry_client.registry.models import ClientConfig, ManifestResponse
from docker_registry_client.registry.token import CacheKey, Token, utc_now
from docker_registry_client.registry.token_cache import MemoryTokenCache, TokenCache

logger = configure_module_logging("registry.client")

MANIFEST_MEDIA_TYPES = (
    "application/vnd.docker.container.image.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.image.rootfs.diff.tar.gzip",
    "application/vnd.docker.image.rootfs.foreign.diff.tar.gzip",
    "application/vnd.docker.plugin.v1+json",
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.oci.image.manifest.v1+json",
)

ACCEPT_HEADER = ", ".join(MANIFEST_MEDIA_TYPES)

DIGEST_HEADER = "Docker-Content-Digest"

# Registries without an entry here need no token
TOKEN_URL_TEMPLATES = {
    Registry.GITHUB: "https://ghcr.io/token?scope=repository:{repo}:pull&service=ghcr.io",
    Registry.DOCKER_HUB: (
        "https://auth.docker.io/token?service=registry.docker.io"
        "&scope=repository:{repo}:pull&service=registry.docker.io"
    ),
    Registry.QUAY: "https://quay.io/v2/auth?scope=repository:{repo}:pull&service=quay.io",
}


class RegistryClient:
    """Async client for fetching image manifests from container registries

    One instance can be shared between concurrent tasks.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        token_cache: Optional[TokenCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or ClientConfig()
        self.token_cache = token_cache if token_cache is not None else MemoryTokenCache()
        self._owns_client = http_client is None
        self._client = http_client or self._create_client()
        self._inflight: Dict[CacheKey, "asyncio.Future[Token]"] = {}

    def _create_client(self) -> httpx.AsyncClient:
        """Create configured httpx client"""
        return httpx.AsyncClient(
            headers={"User-Agent": self.config.user_agent},
            timeout=self.config.timeout,
        )

    def manifest_url(self, reference: ImageReference) -> str:
        """Manifest endpoint URL for a reference"""
        return (
            f"https://{reference.registry.domain}/v2/{reference.path}"
            f"/manifests/{reference.reference}"
        )

    def token_url(self, reference: ImageReference) -> Optional[str]:
        """Token endpoint URL for a reference, None if the registry has none"""
        template = TOKEN_URL_TEMPLATES.get(reference.registry)
        if template is None:
            return None
        return template.format(repo=CacheKey.from_reference(reference).scope_path)

    async def get_headers(self, reference: ImageReference) -> Dict[str, str]:
        """
        Authorization headers for pulling ``reference``

        Uses the token cache and requests a new token on a miss.

        Returns:
            Header dict, empty for registries that need no authentication

        Raises:
            TokenCacheError: Cache backend failed
            TokenError: Token could not be obtained or used
        """
        if not reference.registry.needs_auth:
            return {}

        key = CacheKey.from_reference(reference)
        token = await self.token_cache.fetch(key)

        if token is None:
            logger.debug(f"No cached token for {key}")
            if self.config.coalesce_token_requests:
                token = await self._coalesced_token(reference, key)
            else:
                token = await self._refresh_token(reference, key)
        else:
            logger.debug(f"Using cached token for {key}")

        return token.authorization_headers()

    async def _coalesced_token(self, reference: ImageReference, key: CacheKey) -> Token:
        """Share one in-flight token request between concurrent misses on a key"""
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._refresh_token(reference, key))
            self._inflight[key] = future
            future.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight token request for {key}")
        return await asyncio.shield(future)

    async def _refresh_token(self, reference: ImageReference, key: CacheKey) -> Token:
        token = await self._request_token(reference)
        await self.token_cache.store(key, token)
        return token

    async def _request_token(self, reference: ImageReference) -> Token:
        """
        Request a pull token from the registry token endpoint

        Raises:
            InvalidTokenUrlError: Registry has no token endpoint or URL is invalid
            GetTokenError: Transport failure
            FailedTokenRequestError: Non-success status
            DeserializeTokenError: Body has no usable token
        """
        url = self.token_url(reference)
        if url is None:
            raise InvalidTokenUrlError(f"No token endpoint known for {reference.registry}")

        try:
            httpx.URL(url)
        except httpx.InvalidURL as e:
            logger.error(f"Invalid token URL {url}: {e}")
            raise InvalidTokenUrlError(f"Invalid token URL {url}: {e}") from e

        logger.debug(f"Requesting token from: {url}")
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Failed to get token for {reference}: {e}")
            raise GetTokenError(f"Token request failed: {e}") from e

        body = response.text

        if not response.is_success:
            logger.error(f"Token request for {reference} failed with status {response.status_code}")
            raise FailedTokenRequestError(response.status_code, body)

        try:
            token = Token.model_validate_json(body)
        except ValidationError as e:
            logger.error(f"Invalid token response for {reference}: {e}")
            raise DeserializeTokenError(str(e), body) from e

        if token.expires_in is not None and token.issued_at is None:
            token = token.model_copy(update={"issued_at": utc_now()})

        return token

    async def get_manifest(
        self, reference: Union[ImageReference, str]
    ) -> ManifestResponse:
        """
        Get the manifest for an image reference

        Args:
            reference: ImageReference or reference string (e.g. "alpine:3.20")

        Returns:
            ManifestResponse with the optional content digest and the manifest

        Raises:
            ImageReferenceError: Reference string could not be parsed
            TokenCacheError: Cache backend failed
            TokenError: Token could not be obtained
            ManifestError: Manifest request failed or body could not be decoded
        """
        if isinstance(reference, str):
            reference = parse(reference)

        url = self.manifest_url(reference)
        try:
            httpx.URL(url)
        except httpx.InvalidURL as e:
            logger.error(f"Invalid manifest URL {url}: {e}")
            raise InvalidManifestUrlError(f"Invalid manifest URL {url}: {e}") from e

        return await self.get_manifest_url(url, reference)

    async def get_manifest_url(
        self, url: str, reference: ImageReference
    ) -> ManifestResponse:
        """
        Get a manifest from an explicit URL, authenticating as for ``reference``

        Args:
            url: Manifest URL
            reference: Reference that selects registry and token scope

        Returns:
            ManifestResponse
        """
        headers = await self.get_headers(reference)
        headers["Accept"] = ACCEPT_HEADER

        logger.debug(f"Fetching manifest from: {url}")
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to get manifest {reference}: {e}")
            raise GetManifestError(f"Manifest fetch failed: {e}") from e

        digest = response.headers.get(DIGEST_HEADER)
        # Error bodies are diagnostics, read before looking at the status
        body = response.text

        if response.status_code == 404:
            logger.error(f"Manifest not found: {url}")
            raise ManifestNotFoundError(url, body)

        if not response.is_success:
            logger.error(f"Manifest request {url} failed with status {response.status_code}")
            raise FailedManifestRequestError(response.status_code, body)

        manifest = decode_manifest(body)
        logger.info(f"Fetched {type(manifest).__name__} for {reference}")

        return ManifestResponse(digest=digest, manifest=manifest, reference=reference)

    async def aclose(self):
        """Close the underlying HTTP client if this client created it"""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exec_type, exec_val, exec_tb):
        await self.aclose()
