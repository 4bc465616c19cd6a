from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..models import ScanRequest

# Upstream bodies are logged for diagnosis, cut to this many characters.
LOG_BODY_LIMIT = 500


@dataclass
class ProviderRequest:
    """A provider-specific request, ready to send."""

    model: str
    payload: Any


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = ""
    # Providers that report search sources alongside their answer.
    supplies_grounding: bool = False

    @abstractmethod
    def build_request(self, scan: ScanRequest) -> ProviderRequest:
        """Render the scanner prompt and toggles into this provider's request shape."""

    @abstractmethod
    async def invoke(self, request: ProviderRequest) -> Any:
        """Call the provider. Raises an UpstreamError subclass on failure."""

    @abstractmethod
    def extract_text(self, response: Any) -> str:
        """Model output text from a provider response."""

    def extract_grounding_urls(self, response: Any) -> list[str] | None:
        """Source URLs the provider searched, or None if it never reports them."""
        return None
