"""
Validator - Accumulating field checks.

A validator runs a sequence of independent checks against the fields of
one input and records a failure code for each check that does not pass.
Nothing is raised: callers inspect the result once every check has run,
so a single response can report all problems at once.

Typical use:

    v = Validator()
    v.required_string(body.name, "name.required")
    v.valid_email(body.email, "email.invalid")
    v.max_length(body.bio, 280, "bio.max")
    if v.has_errors():
        ...

Length checks count Unicode code points, not encoded bytes.
"""

import re

from email_validator import EmailNotValidError, validate_email

# Optional display name (quoted string or phrase) before an <angle-addr>.
_NAME_ADDR = re.compile(
    r'\s*(?:"(?:[^"\\]|\\.)*"|[\w!#$%&\'*+\-/=?^`{|}~. ]*)\s*<([^<>]+)>\s*'
)
_TRAILING_COMMENT = re.compile(r"\s*\([^()]*\)\s*$")
# dot-atom or domain-literal
_DOMAIN = re.compile(r"[\w!#$%&'*+\-/=?^`{|}~]+(?:\.[\w!#$%&'*+\-/=?^`{|}~]+)*|\[[^\[\]\\]*\]")


class ValidationError(ValueError):
    """A single validation failure identified only by its code."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ValidationError({self.code!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)


class Validator:
    """
    Collect validation failures for one validation pass.

    Use a fresh instance per input. Failures are kept in the order the
    checks ran and are never removed. Empty values are exempt from the
    length and email checks; use required_string for presence.

    Not safe to share across threads or tasks.
    """

    def __init__(self) -> None:
        self._errors: list[ValidationError] = []

    def errors(self) -> tuple[ValidationError, ...]:
        """Return recorded failures in insertion order."""
        return tuple(self._errors)

    def codes(self) -> tuple[str, ...]:
        """Return recorded failure codes in insertion order."""
        return tuple(error.code for error in self._errors)

    def has_errors(self) -> bool:
        return len(self._errors) > 0

    def add_error(self, code: str) -> None:
        """Record a failure unconditionally."""
        self._errors.append(ValidationError(code))

    def required_string(self, value: str, code: str) -> None:
        """Fail if value is the empty string. Whitespace counts as present."""
        if value == "":
            self.add_error(code)

    def min_length(self, value: str, minimum: int, code: str) -> None:
        if value != "" and len(value) < minimum:
            self.add_error(code)

    def max_length(self, value: str, maximum: int, code: str) -> None:
        if value != "" and len(value) > maximum:
            self.add_error(code)

    def valid_email(self, value: str, code: str) -> None:
        """
        Fail if value is not a single mail address.

        Accepts ``user@example.com``, ``Name <user@example.com>``, quoted
        local parts, a trailing ``(comment)`` and dotless or reserved
        domains such as ``localhost``. Only syntax is checked; the domain
        is never resolved.
        """
        if value == "":
            return

        if not _is_address(value):
            self.add_error(code)


def _is_address(value: str) -> bool:
    address = _TRAILING_COMMENT.sub("", value)

    match = _NAME_ADDR.fullmatch(address)
    if match:
        address = match.group(1)

    local, at, domain = address.strip().rpartition("@")
    if not at or not _DOMAIN.fullmatch(domain):
        return False

    # The domain is checked above; email-validator rejects reserved names
    # like localhost, so only the local part is handed to it.
    try:
        validate_email(
            f"{local}@example.com",
            check_deliverability=False,
            allow_quoted_local=True,
        )
    except EmailNotValidError:
        return False
    return True
