import json
import re

from ..models import ScanRequest
from ..prompts import AUTO_REMEDIATION_LINE, build_user_message
from .base import LLMProvider, ProviderRequest

# (pattern, title, severity, category, cwe, remediation, fix)
_CODE_RULES = [
    (
        re.compile(r"(SELECT|INSERT|UPDATE|DELETE)\b.*(\+|%s|\{)", re.IGNORECASE),
        "SQL query built from string concatenation",
        "HIGH",
        "Injection",
        "CWE-89",
        "Use parameterized queries instead of building SQL strings.",
        'cursor.execute("SELECT * FROM users WHERE id = %s", (user_id,))',
    ),
    (
        re.compile(r"\b(eval|exec)\s*\("),
        "Dynamic code evaluation",
        "CRITICAL",
        "Injection",
        "CWE-95",
        "Remove eval/exec on user-controlled input.",
        "value = ast.literal_eval(user_input)",
    ),
    (
        re.compile(r"(password|secret|api_key)\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE),
        "Hardcoded credential",
        "HIGH",
        "Identification and Authentication Failures",
        "CWE-798",
        "Load credentials from the environment or a secret manager.",
        'password = os.environ["DB_PASSWORD"]',
    ),
]


class MockLLMProvider(LLMProvider):
    """Mock LLM for development and testing.

    Reads the rendered user message the way a model would, so the
    AutoRemediation flag only takes effect through the prompt.
    """

    name = "mock"

    def build_request(self, scan: ScanRequest) -> ProviderRequest:
        return ProviderRequest(model="mock", payload=build_user_message(scan))

    async def invoke(self, request: ProviderRequest) -> str:
        message = request.payload
        target, _, flags = message.partition("Target/Input:\n")[2].rpartition(AUTO_REMEDIATION_LINE)
        include_fix = flags.startswith("true")

        findings = []
        for line_no, line in enumerate(target.splitlines(), start=1):
            for pattern, title, severity, category, cwe, remediation, fix in _CODE_RULES:
                if not pattern.search(line):
                    continue
                finding = {
                    "title": title,
                    "severity": severity,
                    "category": category,
                    "description": f"Mock analysis matched: {line.strip()[:80]}",
                    "location": f"line {line_no}",
                    "remediation": remediation,
                    "references": [f"https://cwe.mitre.org/data/definitions/{cwe.split('-')[1]}.html"],
                    "cweId": cwe,
                }
                if include_fix:
                    finding["codeFix"] = fix
                findings.append(finding)

        return json.dumps({"findings": findings})

    def extract_text(self, response: str) -> str:
        return response
