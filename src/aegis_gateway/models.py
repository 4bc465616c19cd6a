"""Pydantic models for the Aegis scan gateway."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TargetType(str, Enum):
    """Kinds of scan target."""

    CODE = "CODE"
    WEB_APP = "WEB_APP"
    NETWORK = "NETWORK"


class Severity(str, Enum):
    """Severity levels for findings, most severe first."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class ScanSettings(BaseModel):
    """User toggles sent alongside a scan request."""

    model_config = ConfigDict(populate_by_name=True)

    deep_thinking: bool = Field(
        default=True, alias="deepThinking", description="Request extended reasoning"
    )
    auto_remediation: bool = Field(
        default=True, alias="autoRemediation", description="Ask for concrete code fixes"
    )

    @classmethod
    def from_payload(cls, payload: object) -> "ScanSettings":
        """Build settings from a raw request value; only an explicit False disables a flag."""
        if not isinstance(payload, dict):
            return cls()
        return cls(
            deep_thinking=payload.get("deepThinking") is not False,
            auto_remediation=payload.get("autoRemediation") is not False,
        )


class ScanRequest(BaseModel):
    """A validated scan request."""

    model_config = ConfigDict(populate_by_name=True)

    target: str = Field(min_length=1, max_length=50_000, description="Code, URL or host to scan")
    target_type: TargetType = Field(alias="targetType", description="Kind of target")
    settings: ScanSettings = Field(default_factory=ScanSettings)


class Finding(BaseModel):
    """One reported vulnerability."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Finding identifier, e.g. AEGIS-001")
    title: str = Field(default="", description="Short title describing the issue")
    severity: Severity = Field(default=Severity.INFO, description="Severity level")
    category: str = Field(default="", description="OWASP-style category")
    description: str = Field(default="", description="Detailed description")
    location: str = Field(default="", description="File/line, URL path or service")
    remediation: str = Field(default="", description="How to fix the issue")
    code_fix: Optional[str] = Field(
        default=None, alias="codeFix", description="Concrete fix snippet"
    )
    references: list[str] = Field(default_factory=list, description="Supporting URLs")
    cwe_id: str = Field(default="N/A", alias="cweId", description="CWE identifier")

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().upper()
            if value in Severity.__members__:
                return value
        if isinstance(value, Severity):
            return value
        return Severity.INFO

    @field_validator("title", "category", "description", "location", "remediation", mode="before")
    @classmethod
    def _text_or_empty(cls, value: object) -> object:
        return "" if value is None else str(value)

    @field_validator("code_fix", mode="before")
    @classmethod
    def _optional_text(cls, value: object) -> object:
        return None if value is None else str(value)

    @field_validator("cwe_id", mode="before")
    @classmethod
    def _cwe_or_sentinel(cls, value: object) -> object:
        return str(value) if value else "N/A"


class ScanResponse(BaseModel):
    """Successful response from /api/scan."""

    findings: list[Finding] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """JSON body with camelCase keys; absent codeFix fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ScanSummary(BaseModel):
    """Summary counts by severity."""

    total: int = Field(default=0, description="Total number of findings")
    critical: int = Field(default=0, description="Number of critical findings")
    high: int = Field(default=0, description="Number of high findings")
    medium: int = Field(default=0, description="Number of medium findings")
    low: int = Field(default=0, description="Number of low findings")
    info: int = Field(default=0, description="Number of informational findings")


def summarize(findings: list[Finding]) -> ScanSummary:
    """Count findings by severity."""
    summary = ScanSummary()
    for finding in findings:
        summary.total += 1
        if finding.severity == Severity.CRITICAL:
            summary.critical += 1
        elif finding.severity == Severity.HIGH:
            summary.high += 1
        elif finding.severity == Severity.MEDIUM:
            summary.medium += 1
        elif finding.severity == Severity.LOW:
            summary.low += 1
        else:
            summary.info += 1
    return summary
