"""
Registry client exceptions

Provides a hierarchy of exceptions for different failure modes of reference
parsing, token handling and manifest retrieval, enabling precise error
handling in client code.
"""

from typing import Optional


class RegistryClientError(Exception):
    """Base exception for registry client operations"""

    pass


# Reference parsing


class ImageReferenceError(RegistryClientError, ValueError):
    """Image reference could not be parsed"""

    pass


class MissingFirstComponentError(ImageReferenceError):
    """Reference is empty or starts with a separator"""

    def __init__(self):
        super().__init__("missing first component")


class UnsupportedImageNameError(ImageReferenceError):
    """Reference has an unsupported number of path components"""

    def __init__(self, image_name: str):
        self.image_name = image_name
        super().__init__(f"unsupported image name: {image_name}")


class ParseRegistryError(ImageReferenceError):
    """Registry domain is not in the catalog"""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"unknown registry: {domain}")


class ParseImageNameError(ImageReferenceError):
    """Trailing name[:tag|@digest] segment is malformed"""

    def __init__(self, segment: str, reason: str = "invalid image name"):
        self.segment = segment
        super().__init__(f"{reason}: {segment!r}")


class ParseTagError(ParseImageNameError):
    """Tag part of the trailing segment is malformed"""

    def __init__(self, segment: str):
        super().__init__(segment, "invalid tag")


class ParseDigestError(ParseImageNameError):
    """Digest part of the trailing segment is malformed"""

    def __init__(self, segment: str):
        super().__init__(segment, "invalid digest")


# Token cache


class TokenCacheError(RegistryClientError):
    """Token cache backend failed"""

    pass


class FetchTokenError(TokenCacheError):
    """Reading a token from the cache backend failed"""

    pass


class StoreTokenError(TokenCacheError):
    """Writing a token to the cache backend failed"""

    pass


# Token endpoint


class TokenError(RegistryClientError):
    """Bearer token could not be obtained"""

    pass


class InvalidTokenUrlError(TokenError):
    """Token endpoint URL could not be built"""

    pass


class GetTokenError(TokenError):
    """Token request failed at the transport level"""

    pass


class FailedTokenRequestError(TokenError):
    """Token endpoint answered with a non-success status"""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed token request: status: {status_code}, body: {body}")


class DeserializeTokenError(TokenError):
    """Token endpoint body is not a valid token document"""

    def __init__(self, reason: str, body: str):
        self.body = body
        super().__init__(f"Failed to deserialize token: {reason}, body: {body}")


class InvalidAuthorizationHeaderError(TokenError):
    """Token value cannot be used in an Authorization header"""

    pass


# Manifest endpoint


class ManifestError(RegistryClientError):
    """Manifest could not be retrieved or decoded"""

    pass


class InvalidManifestUrlError(ManifestError):
    """Manifest URL could not be built"""

    pass


class GetManifestError(ManifestError):
    """Manifest request failed at the transport level"""

    pass


class ManifestNotFoundError(ManifestError):
    """Registry answered 404 for the manifest"""

    def __init__(self, url: str, body: Optional[str] = None):
        self.url = url
        self.body = body
        super().__init__(f"Manifest at url {url} was not found")


class FailedManifestRequestError(ManifestError):
    """Registry answered with a non-success status other than 404"""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Failed manifest request: status: {status_code}, body: {body}"
        )


class DeserializeManifestError(ManifestError):
    """Body is not valid JSON or matches none of the manifest shapes"""

    def __init__(self, reason: str, body: str):
        self.reason = reason
        self.body = body
        super().__init__(f"Failed to deserialize manifest body: {reason}, body: {body}")
