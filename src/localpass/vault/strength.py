# LocalPass - Password Strength Audit
#
# Local, deterministic heuristics. Purely advisory: results are shown to
# the user and never influence what gets stored.

import re
from dataclasses import dataclass, field
from typing import List

COMMON_PATTERNS = (
    "123", "qwerty", "abc", "password", "admin", "123456", "12345678",
    "letmein", "welcome", "monkey", "dragon", "master", "sunshine",
    "princess", "football", "iloveyou",
)

_SEQUENTIAL = re.compile(
    r"(012|123|234|345|456|567|678|789|abc|bcd|cde|def|efg|fgh|ghi|hij|ijk|"
    r"jkl|klm|lmn|mno|nop|opq|pqr|qrs|rst|stu|tuv|uvw|vwx|wxy|xyz)",
    re.IGNORECASE,
)
_REPEATED = re.compile(r"(.)\1{3,}")

MIN_LENGTH = 12
MIN_SAFE_LENGTH = 8


@dataclass
class PasswordAudit:
    is_compromised: bool = False
    is_common: bool = False
    issue_codes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "isCompromised": self.is_compromised,
            "isCommon": self.is_common,
            "issueCodes": list(self.issue_codes),
        }


def audit_password(password: str) -> PasswordAudit:
    """
    Evaluate how guessable a password is.

    ``is_common`` flags weak-but-not-broken passwords (short, or missing
    uppercase / digits / symbols). ``is_compromised`` flags passwords that
    match well-known patterns and should be replaced.

    Returns:
        PasswordAudit with the issue codes found, in a stable order
    """
    has_upper = any(c.isupper() for c in password)
    has_lower = any(c.islower() for c in password)
    has_digit = any(c.isdigit() for c in password)
    has_symbol = any(not c.isalnum() for c in password)

    is_short = len(password) < MIN_LENGTH
    lowered = password.lower()
    has_common = any(p in lowered for p in COMMON_PATTERNS)
    has_sequential = bool(_SEQUENTIAL.search(password))
    has_repeated = bool(_REPEATED.search(password))

    issues: List[str] = []
    if is_short:
        issues.append("issue_length")
    if not (has_upper and has_lower and has_digit):
        issues.append("issue_complexity")
    if not has_symbol:
        issues.append("issue_symbols")
    if has_common:
        issues.append("issue_common")
    if has_sequential:
        issues.append("issue_sequential")
    if has_repeated:
        issues.append("issue_repeated")

    return PasswordAudit(
        is_compromised=(
            has_common or len(password) < MIN_SAFE_LENGTH or has_sequential or has_repeated
        ),
        is_common=is_short or not has_upper or not has_digit or not has_symbol,
        issue_codes=issues,
    )
