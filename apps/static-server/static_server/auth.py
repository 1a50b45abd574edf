"""HTTP basic authentication gate."""

from __future__ import annotations

import base64
import binascii
import re
import secrets
from dataclasses import dataclass, field
from enum import Enum

CHALLENGE = 'Basic realm="User Visible Realm"'

_BASIC_HEADER = re.compile(r"^ *[Bb][Aa][Ss][Ii][Cc] +([A-Za-z0-9._~+/-]+=*) *$")


@dataclass(frozen=True)
class Credentials:
    name: str
    password: str = field(repr=False)


class AuthDecision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def extract_credentials(header: str | None) -> Credentials | None:
    """Parse an ``Authorization: Basic`` header; anything malformed yields ``None``."""

    if not header:
        return None
    match = _BASIC_HEADER.match(header)
    if not match:
        return None
    try:
        decoded = base64.b64decode(match.group(1), validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    name, separator, password = decoded.partition(":")
    if not separator:
        return None
    return Credentials(name=name, password=password)


def _same(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def check(
    credentials: Credentials | None,
    expected_user: str | None,
    expected_password: str | None,
) -> AuthDecision:
    if credentials is None or expected_user is None or expected_password is None:
        return AuthDecision.DENIED
    user_ok = _same(credentials.name, expected_user)
    password_ok = _same(credentials.password, expected_password)
    return AuthDecision.ALLOWED if user_ok and password_ok else AuthDecision.DENIED
