"""Scanner instructions shared by every AI provider.

Providers differ only in how they package this text (schema-enforced config
versus a plain chat prompt); the wording and toggle semantics live here.
"""

from .models import ScanRequest, TargetType

OWASP_CATEGORIES = [
    "Broken Access Control",
    "Cryptographic Failures",
    "Injection",
    "Insecure Design",
    "Security Misconfiguration",
    "Vulnerable and Outdated Components",
    "Identification and Authentication Failures",
    "Software and Data Integrity Failures",
    "Security Logging and Monitoring Failures",
    "Server-Side Request Forgery",
]

_CATEGORY_LINES = "\n".join(f"- {category}" for category in OWASP_CATEGORIES)

SCANNER_PROMPT = f"""You are a Senior Security Research Engineer and Aegis AI, a world-class hybrid vulnerability scanner.

[METHODOLOGY]
1. FOR SOURCE CODE (SAST):
   - Analyze control flow, data flow, and taint propagation.
   - Detect injection (SQLi, XSS, CSRF, command injection), hardcoded secrets,
     insecure crypto, path traversal, insecure deserialization, and broken access control.
   - Reference specific line numbers and variable names.

2. FOR WEB APPLICATIONS (DAST + OSINT):
   - Use web search to perform OSINT reconnaissance on the target domain.
   - Look for: technology stack fingerprinting, publicly reported SSL/TLS grades,
     exposed admin/config paths, historical data breaches or leaks, and known CVEs
     for the identified infrastructure.
   - Assess common missing security headers (HSTS, CSP, X-Frame-Options, X-Content-Type-Options).

3. FOR NETWORK TARGETS:
   - Search for known open ports, service banners, and CVEs for the target.
   - Assess firewall posture and common misconfigurations.

[SEVERITY ASSIGNMENT]
- CRITICAL: Remote code execution, auth bypass, data exfiltration with no interaction.
- HIGH: SQLi, stored XSS, privilege escalation, hardcoded admin credentials.
- MEDIUM: Reflected XSS, missing critical headers, CSRF on state-changing endpoints.
- LOW: Information disclosure, verbose errors, missing minor headers.
- INFO: Best-practice recommendations, non-exploitable observations.

[CATEGORIES]
Use one of the OWASP Top 10 categories for each finding's category:
{_CATEGORY_LINES}

[RESPONSE FORMAT]
Respond ONLY in valid JSON matching the provided schema.
Each finding MUST include a specific CWE ID and at least one actionable reference URL.
If autoRemediation is true, include concrete code/config fix snippets in codeFix.
If autoRemediation is false, omit the codeFix field entirely."""

# Appended for providers that cannot enforce a response schema.
JSON_FORMAT_DIRECTIVE = """[JSON SHAPE]
Return a single JSON object and nothing else (no markdown, no commentary):
{
  "findings": [
    {
      "id": "AEGIS-001",
      "title": "Short title",
      "severity": "CRITICAL | HIGH | MEDIUM | LOW | INFO",
      "category": "OWASP category",
      "description": "What is wrong and why it is exploitable",
      "location": "File and line, URL path, or host:port",
      "remediation": "How to fix it",
      "codeFix": "Fix snippet (only when autoRemediation is true)",
      "references": ["https://..."],
      "cweId": "CWE-89"
    }
  ]
}
If nothing is found, return {"findings": []}."""

AUTO_REMEDIATION_LINE = "AutoRemediation: "


def build_user_message(scan: ScanRequest) -> str:
    """Per-request user turn: target, its type and the remediation flag."""
    message = (
        f"Target Type: {scan.target_type.value}\n"
        f"Target/Input:\n"
        f"{scan.target}\n"
        f"\n"
        f"{AUTO_REMEDIATION_LINE}{'true' if scan.settings.auto_remediation else 'false'}\n"
        f"Perform a thorough security audit."
    )
    if wants_search(scan):
        message += " Use web search for OSINT reconnaissance first."
    return message


def wants_search(scan: ScanRequest) -> bool:
    """Web and network targets are researched before concluding; code is not."""
    return scan.target_type != TargetType.CODE
