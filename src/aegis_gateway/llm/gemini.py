import logging
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import UpstreamTransportError, upstream_error_for_status
from ..models import ScanRequest
from ..prompts import SCANNER_PROMPT, build_user_message, wants_search
from .base import LOG_BODY_LIMIT, LLMProvider, ProviderRequest

logger = logging.getLogger(__name__)

THINKING_BUDGET = 16000

_STRING = types.Schema(type=types.Type.STRING)

FINDING_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "id": _STRING,
        "title": _STRING,
        "severity": types.Schema(
            type=types.Type.STRING,
            description="CRITICAL, HIGH, MEDIUM, LOW, or INFO",
        ),
        "category": _STRING,
        "description": _STRING,
        "location": _STRING,
        "remediation": _STRING,
        "codeFix": _STRING,
        "references": types.Schema(type=types.Type.ARRAY, items=_STRING),
        "cweId": _STRING,
    },
    required=[
        "id", "title", "severity", "category",
        "description", "location", "remediation", "references", "cweId",
    ],
)

VULNERABILITY_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={"findings": types.Schema(type=types.Type.ARRAY, items=FINDING_SCHEMA)},
    required=["findings"],
)


class GeminiProvider(LLMProvider):
    """Google Gemini provider with schema-enforced output and Google Search grounding."""

    name = "gemini"
    supplies_grounding = True

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-pro",
        timeout: float | None = None,
        client: genai.Client | None = None,
    ):
        self.model_name = model
        if client is None:
            http_options = types.HttpOptions(timeout=int(timeout * 1000)) if timeout else None
            client = genai.Client(api_key=api_key, http_options=http_options)
        self.client = client

    def build_request(self, scan: ScanRequest) -> ProviderRequest:
        config: dict[str, Any] = {
            "system_instruction": SCANNER_PROMPT,
            "response_mime_type": "application/json",
            "response_schema": VULNERABILITY_SCHEMA,
        }
        if wants_search(scan):
            config["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        if scan.settings.deep_thinking:
            config["thinking_config"] = types.ThinkingConfig(thinking_budget=THINKING_BUDGET)

        return ProviderRequest(
            model=self.model_name,
            payload={
                "contents": build_user_message(scan),
                "config": types.GenerateContentConfig(**config),
            },
        )

    async def invoke(self, request: ProviderRequest) -> types.GenerateContentResponse:
        logger.info(f"Calling Gemini {request.model}")
        try:
            return await self.client.aio.models.generate_content(
                model=request.model,
                contents=request.payload["contents"],
                config=request.payload["config"],
            )
        except genai_errors.APIError as e:
            body = str(e)[:LOG_BODY_LIMIT]
            logger.error(f"Gemini API error: {e.code} {body}")
            raise upstream_error_for_status(e.code, body) from e
        except httpx.TransportError as e:
            logger.error(f"Gemini transport error: {e!r}")
            raise UpstreamTransportError(str(e)) from e

    def extract_text(self, response: Any) -> str:
        candidate = _first_candidate(response)
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        # Thought summaries are not part of the answer.
        return "".join(
            part.text for part in parts if part.text and not getattr(part, "thought", False)
        )

    def extract_grounding_urls(self, response: Any) -> list[str]:
        candidate = _first_candidate(response)
        metadata = getattr(candidate, "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None) or []
        urls = []
        for chunk in chunks:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if uri:
                urls.append(uri)
        return urls


def _first_candidate(response: Any) -> Any:
    candidates = getattr(response, "candidates", None) or []
    return candidates[0] if candidates else None
