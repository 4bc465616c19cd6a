"""Turn raw model output into the stable findings schema."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import MalformedUpstreamResponse
from .models import Finding, ScanSettings

logger = logging.getLogger(__name__)

_FENCED_RE = re.compile(r"^\s*```[\w-]*\s*(.*?)\s*```\s*$", re.DOTALL)

EMPTY_RESULT = '{"findings": []}'


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around the whole text, if any."""
    match = _FENCED_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_findings_payload(raw_text: str) -> list[dict[str, Any]]:
    """Strip fences, parse JSON and return the findings array (possibly empty)."""
    if raw_text is not None and not isinstance(raw_text, str):
        logger.error(f"Model output is {type(raw_text).__name__}, not text")
        raise MalformedUpstreamResponse("Model output must be text")
    text = strip_code_fences(raw_text or "") or EMPTY_RESULT
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse model JSON: {text[:500]}")
        raise MalformedUpstreamResponse(f"Invalid JSON from model: {e}") from e

    if not isinstance(data, dict):
        logger.error(f"Model JSON is not an object: {text[:500]}")
        raise MalformedUpstreamResponse("Model JSON must be an object")

    findings = data.get("findings")
    if not isinstance(findings, list):
        if findings is not None:
            logger.warning("findings is not a list; defaulting to empty list")
        return []
    return findings


def fallback_id(index: int) -> str:
    return f"AEGIS-{index + 1:03d}"


def _unique(urls: list[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for url in urls:
        if isinstance(url, str) and url:
            seen.setdefault(url, None)
    return list(seen)


def normalize(
    raw_text: str,
    grounding_urls: list[str] | None,
    settings: ScanSettings | None = None,
) -> list[Finding]:
    """Parse model output and enrich each finding.

    grounding_urls is None when the provider never reports search sources.
    When it is a non-empty list, finding i gains grounding_urls[i % len] as an
    extra reference. The URL is spread by position; it is not matched to the
    finding's topic.
    """
    items = parse_findings_payload(raw_text)

    findings = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Finding {idx + 1} is not an object; skipping")
            continue

        references = item.get("references")
        if not isinstance(references, list):
            references = []
        if grounding_urls:
            references = references + [grounding_urls[idx % len(grounding_urls)]]

        try:
            finding = Finding.model_validate(
                {
                    **item,
                    "id": str(item.get("id") or fallback_id(idx)),
                    "references": _unique(references),
                }
            )
        except PydanticValidationError as e:
            logger.error(f"Finding {idx + 1} does not match the findings schema: {e}")
            raise MalformedUpstreamResponse(str(e)) from e
        if settings is not None and not settings.auto_remediation and finding.code_fix:
            logger.warning(f"{finding.id} carries a codeFix although autoRemediation is off")
        findings.append(finding)

    return findings
