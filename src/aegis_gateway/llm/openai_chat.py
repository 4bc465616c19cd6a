import json
import logging
from typing import Any

import httpx

from ..errors import MalformedUpstreamResponse, UpstreamTransportError, upstream_error_for_status
from ..models import ScanRequest
from ..prompts import JSON_FORMAT_DIRECTIVE, SCANNER_PROMPT, build_user_message
from .base import LOG_BODY_LIMIT, LLMProvider, ProviderRequest

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible chat completions provider.

    There is no schema enforcement and no search tool: the JSON shape is asked
    for in the prompt, and the answer may come back wrapped in a markdown
    code fence.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "o4-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model_name = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def build_request(self, scan: ScanRequest) -> ProviderRequest:
        body: dict[str, Any] = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": f"{SCANNER_PROMPT}\n\n{JSON_FORMAT_DIRECTIVE}"},
                {"role": "user", "content": build_user_message(scan)},
            ],
        }
        if scan.settings.deep_thinking:
            body["reasoning_effort"] = "high"
        return ProviderRequest(model=self.model_name, payload=body)

    async def invoke(self, request: ProviderRequest) -> dict[str, Any]:
        logger.info(f"Calling OpenAI-compatible model {request.model}")
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/chat/completions", json=request.payload, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"OpenAI transport error: {e!r}")
            raise UpstreamTransportError(str(e)) from e

        if not response.is_success:
            body = response.text[:LOG_BODY_LIMIT]
            logger.error(f"OpenAI API error: {response.status_code} {body}")
            raise upstream_error_for_status(response.status_code, body)

        try:
            return response.json()
        except json.JSONDecodeError as e:
            logger.error(f"OpenAI returned a non-JSON envelope: {response.text[:LOG_BODY_LIMIT]}")
            raise MalformedUpstreamResponse(str(e)) from e

    def extract_text(self, response: dict[str, Any]) -> str:
        """Return the first choice's message content.

        Content may be a plain string or a list of text parts, which are
        joined. Any other envelope shape is a malformed upstream response.
        """
        if not isinstance(response, dict):
            raise self._malformed(f"envelope is {type(response).__name__}, not an object")
        choices = response.get("choices") or []
        if not isinstance(choices, list):
            raise self._malformed("choices is not a list")
        if not choices:
            return ""
        choice = choices[0]
        if not isinstance(choice, dict):
            raise self._malformed("choice is not an object")
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise self._malformed("message is not an object")

        content = message.get("content")
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part["text"]
                for part in content
                if isinstance(part, dict) and isinstance(part.get("text"), str)
            )
        raise self._malformed(f"content is {type(content).__name__}")

    def _malformed(self, reason: str) -> MalformedUpstreamResponse:
        logger.error(f"Unexpected OpenAI response shape: {reason}")
        return MalformedUpstreamResponse(f"Unexpected response shape: {reason}")
