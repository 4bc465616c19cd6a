"""Request body validation for /api/scan."""

from typing import Any

from .models import ScanRequest, ScanSettings, TargetType

MAX_TARGET_LENGTH = 50_000
VALID_TARGET_TYPES = [t.value for t in TargetType]


def validate_body(body: Any) -> str | None:
    """Return the message of the first failing rule, or None if the body is valid."""
    if not isinstance(body, dict):
        return "Missing or invalid 'target'."

    target = body.get("target")
    if not target or not isinstance(target, str):
        return "Missing or invalid 'target'."
    if len(target) > MAX_TARGET_LENGTH:
        return f"Target exceeds {MAX_TARGET_LENGTH} characters."
    if body.get("targetType") not in VALID_TARGET_TYPES:
        return f"Invalid targetType. Must be one of: {', '.join(VALID_TARGET_TYPES)}"
    return None


def to_scan_request(body: dict[str, Any]) -> ScanRequest:
    """Build a ScanRequest from a body that already passed validate_body."""
    return ScanRequest(
        target=body["target"],
        target_type=TargetType(body["targetType"]),
        settings=ScanSettings.from_payload(body.get("settings")),
    )
