"""Exception hierarchy shared by providers, the gateway and the pipelines."""

from typing import Optional


class InfinetError(Exception):
    """Base error for the gateway."""


class ConfigurationError(InfinetError):
    """A required setting or credential is missing or malformed."""


class CapabilityUnavailableError(ConfigurationError):
    """No provider is configured for the requested capability."""

    def __init__(self, capability: str):
        super().__init__(f"No provider configured for capability '{capability}'")
        self.capability = capability


class ProviderError(InfinetError):
    """A provider answered with a non-success status or an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.provider = provider

    @classmethod
    def from_response(cls, provider: str, status_code: int, body: str) -> "ProviderError":
        return cls(
            f"{provider} API error: {status_code} - {body[:500]}",
            status_code=status_code,
            body=body,
            provider=provider,
        )


class EmptyResponseError(ProviderError):
    """The provider succeeded but returned nothing usable."""


class MediaError(InfinetError):
    """Downloading or reading an attachment failed."""


class ImageDecodeError(MediaError):
    """Provider image output did not match any known shape."""


class RoutingAmbiguousError(InfinetError):
    """An inbound attachment kind has no pipeline."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported attachment kind '{kind}'")
        self.kind = kind


class NativeAudioUnavailable(InfinetError):
    """The native-audio voice path failed; switch to transcribe-then-generate.

    This is a pipeline-shape signal, not a provider failure class.
    """

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(f"Native audio path unavailable: {cause}" if cause else "Native audio path unavailable")
        self.cause = cause
