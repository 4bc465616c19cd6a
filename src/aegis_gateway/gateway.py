"""Scan request pipeline: throttle, validate, call the AI provider, normalize."""

import logging
from collections.abc import Callable
from typing import Any

from .errors import RateLimitExceeded, ValidationError
from .llm import LLMProvider, get_provider
from .models import ScanRequest, ScanResponse
from .normalizer import normalize
from .rate_limit import RateLimiter
from .validation import to_scan_request, validate_body

logger = logging.getLogger(__name__)


class ScanGateway:
    """Runs one scan request end to end.

    Failures surface as ScanGatewayError subclasses; the web layer turns
    them into status codes. Nothing is retried.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        provider_factory: Callable[[], LLMProvider] | None = None,
    ):
        self.rate_limiter = rate_limiter
        self.provider_factory = provider_factory

    async def scan(self, body: Any, identity: str) -> ScanResponse:
        if self.rate_limiter is not None and not self.rate_limiter.allow(identity):
            logger.warning(f"Rate limit reached for {identity}")
            raise RateLimitExceeded(f"Rate limit reached for {identity}")

        message = validate_body(body)
        if message:
            raise ValidationError(message)
        request = to_scan_request(body)

        # Credentials are read per request so a missing key is reported, not cached.
        provider = (self.provider_factory or get_provider)()
        return await self.run(request, provider)

    async def run(self, request: ScanRequest, provider: LLMProvider) -> ScanResponse:
        logger.info(
            f"Scanning {request.target_type.value} target ({len(request.target)} chars) "
            f"with {provider.name}"
        )
        provider_request = provider.build_request(request)
        response = await provider.invoke(provider_request)

        text = provider.extract_text(response)
        grounding_urls = None
        if provider.supplies_grounding:
            grounding_urls = provider.extract_grounding_urls(response)
        findings = normalize(text, grounding_urls, request.settings)

        logger.info(f"Scan complete: {len(findings)} findings")
        return ScanResponse(findings=findings)
