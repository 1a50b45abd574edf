"""Log output format selection for the static server."""

import os
from typing import Literal


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"

_OUTPUT_TO_LOG_FORMAT: dict[str, LogFormat] = {
    "json": "json",
    "plain": "plain",
    "console": "console",
    "auto": "console",
    "rich": "console",
}


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """
    Get the log format with priority: CLI parameter > Environment variable > Default (console).

    The environment variable accepts the shared output format names:
    - auto/rich -> console (with colors)
    - plain -> plain (no colors, simple text)
    - json -> json

    Args:
        cli_override: Optional CLI parameter value that takes precedence

    Returns:
        LogFormat value
    """
    if cli_override:
        format_lower = cli_override.lower()
        if format_lower in ("json", "console", "plain"):
            return format_lower  # type: ignore

    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        mapped = _OUTPUT_TO_LOG_FORMAT.get(env_value.lower())
        if mapped:
            return mapped

    return "console"
