#!/usr/bin/env python3
"""
Sandbox entrypoint for the Aegis scan gateway.
Reads a scan request from stdin JSON, runs it against the configured AI provider
(no rate limiting), outputs findings and a severity summary as JSON to stdout.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from aegis_gateway.errors import ScanGatewayError
from aegis_gateway.gateway import ScanGateway
from aegis_gateway.models import summarize

logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)


def main() -> None:
    try:
        input_data = json.load(sys.stdin)
    except json.JSONDecodeError as e:
        print(json.dumps({"error": f"Invalid JSON input: {e}"}))
        sys.exit(1)

    gateway = ScanGateway()
    try:
        response = asyncio.run(gateway.scan(input_data, identity="sandbox"))
    except ScanGatewayError as e:
        logger.error(f"Scan failed ({type(e).__name__}): {e}")
        print(json.dumps({"error": e.public_message}))
        sys.exit(1)
    except Exception as e:
        logger.exception("Sandbox scan failed")
        print(json.dumps({"error": str(e)}))
        sys.exit(1)

    output = response.to_payload()
    output["summary"] = summarize(response.findings).model_dump()
    print(json.dumps(output))


if __name__ == "__main__":
    main()
