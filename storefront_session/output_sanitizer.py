"""Output sanitization: redact bearer tokens, verification codes and phone numbers before returning tool output."""
import re

# Credentials that can show up in error text or echoed payloads
_CREDENTIAL_PATTERNS = [
    re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-_.=]+"),
    re.compile(r"(?i)\"?(id_token|refresh_token|access_token|proof_token|session_info|password|authToken|refreshToken)\"?\s*[=:]\s*\"?[^\s\",}]+\"?"),
]

# Three dot-separated base64url segments starting with a JSON header
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*")

# E.164 numbers not already masked
_PHONE_PATTERN = re.compile(r"\+[1-9]\d{7,14}\b")

# "code 123456", "code: 123456"
_OTP_PATTERN = re.compile(r"(?i)\b(code|otp)(\"?\s*[=:]?\s*)\"?\d{6}\b\"?")

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def redact_phone(phone_number: str) -> str:
    """Keep country prefix and last four digits."""
    if len(phone_number) <= 8:
        return "***"
    return f"{phone_number[:5]}***{phone_number[-4:]}"


def sanitize_output(text: str, max_chars: int = 50000) -> str:
    """
    Sanitize text before returning it to the MCP client.

    - Strips ANSI escape codes
    - Redacts bearer tokens, JWTs and credential fields
    - Redacts six-digit verification codes
    - Masks phone numbers
    - Truncates to max_chars
    """
    text = _ANSI_PATTERN.sub("", text)

    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub(lambda m: f"{m.group(1)}: [REDACTED]" if m.lastindex else "Bearer [REDACTED]", text)

    text = _JWT_PATTERN.sub("[TOKEN REDACTED]", text)
    text = _OTP_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}[CODE REDACTED]", text)
    text = _PHONE_PATTERN.sub(lambda m: redact_phone(m.group(0)), text)

    if len(text) > max_chars:
        text = text[:max_chars] + f"\n\n[... truncated at {max_chars} chars]"

    return text
