"""SAP AI Core service key parsing.

The service key arrives as a JSON blob in AICORE_SERVICE_KEY. Shells and
.env loaders regularly mangle it: the usual casualty is a `$` inside
`clientsecret` escaped for the shell as `\\$`, which is not a valid JSON
escape. We try a direct parse first, then repair that pattern and strip
wrapping quotes.
"""

import json
import re
from typing import Any, Optional

from src.errors import ConfigurationError
from src.utils.logging import log, get_logger

MODULE = "service_key"
logger = get_logger()

_SHELL_ESCAPED_DOLLAR = re.compile(r"(?<!\\)\\\$")

REQUIRED_FIELDS = ("url", "clientid", "clientsecret")


def _repair(raw: str) -> str:
    fixed = raw.strip()
    if len(fixed) >= 2 and fixed[0] == fixed[-1] and fixed[0] in ("'", '"'):
        fixed = fixed[1:-1]
    return _SHELL_ESCAPED_DOLLAR.sub("$", fixed)


def parse_service_key(raw: Optional[str]) -> dict[str, Any]:
    """Parse a service key, repairing shell-escaped `$` characters.

    Raises:
        ConfigurationError: key missing, unparsable, or lacking credentials
    """
    if not raw:
        raise ConfigurationError("Service key is not defined")

    try:
        key = json.loads(raw)
    except json.JSONDecodeError as first_error:
        log.warning(logger, MODULE, "parse_retry",
                    "Service key parsing failed, attempting to fix common issues")
        try:
            key = json.loads(_repair(raw))
        except json.JSONDecodeError:
            log.error(logger, MODULE, "parse_failed",
                      "Service key parsing failed even after attempted fixes",
                      error=str(first_error))
            raise ConfigurationError(f"Failed to parse service key: {first_error}") from first_error
        log.info(logger, MODULE, "parse_repaired", "Service key parsed after fixing")

    if not isinstance(key, dict):
        raise ConfigurationError("Service key must be a JSON object")

    missing = [f for f in REQUIRED_FIELDS if not key.get(f)]
    if not (key.get("serviceurls") or {}).get("AI_API_URL"):
        missing.append("serviceurls.AI_API_URL")
    if missing:
        raise ConfigurationError(f"Service key is missing: {', '.join(missing)}")

    return key
