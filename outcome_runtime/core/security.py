"""Redaction helpers for log output.

Connector configs and notification channels carry credentials (warehouse
connection strings, Slack bot tokens, SMTP passwords). These helpers keep
them out of the log stream.
"""

import re

REDACTED = "[REDACTED]"

# (name, pattern, replacement template); a None template replaces the whole match
SECRET_PATTERNS: list[tuple[str, re.Pattern[str], str | None]] = [
    (
        "api_key",
        re.compile(r"(api[_-]?key)[=:\s]+['\"]?[a-zA-Z0-9_-]{20,}['\"]?", re.I),
        r"\1=[REDACTED]",
    ),
    (
        "token",
        re.compile(r"(token)[=:\s]+['\"]?[a-zA-Z0-9_.-]{20,}['\"]?", re.I),
        r"\1=[REDACTED]",
    ),
    (
        "bearer",
        re.compile(r"(bearer)\s+[a-zA-Z0-9_.-]{20,}", re.I),
        r"\1 [REDACTED]",
    ),
    (
        "password",
        re.compile(r"(password|passwd|pwd)[=:\s]+['\"]?[^\s'\"]{8,}['\"]?", re.I),
        r"\1=[REDACTED]",
    ),
    (
        "slack_token",
        re.compile(r"xox[abposr]-[a-zA-Z0-9-]{10,}"),
        None,
    ),
    (
        "connection_string",
        re.compile(r"([a-z][a-z0-9+]*://[^:/\s]+):[^@\s]+@", re.I),
        r"\1:[REDACTED]@",
    ),
]

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")

MAX_LOG_LENGTH = 10000


def redact_secrets(text: str) -> str:
    """Replace anything that looks like a credential with ``[REDACTED]``.

    Args:
        text: Text that may contain secrets.

    Returns:
        Text with secrets replaced.
    """
    if not text:
        return text

    result = text
    for _name, pattern, replacement in SECRET_PATTERNS:
        if replacement is None:
            result = pattern.sub(REDACTED, result)
        else:
            result = pattern.sub(replacement, result)
    return result


def sanitize_log_message(message: str) -> str:
    """Sanitize a log message to prevent log injection.

    Escapes line breaks, strips ANSI escape sequences and truncates very
    long messages.
    """
    if not message:
        return message

    sanitized = message.replace("\r", "\\r").replace("\n", "\\n")
    sanitized = _ANSI_PATTERN.sub("", sanitized)

    if len(sanitized) > MAX_LOG_LENGTH:
        sanitized = sanitized[: MAX_LOG_LENGTH - 20] + "... [TRUNCATED]"

    return sanitized
