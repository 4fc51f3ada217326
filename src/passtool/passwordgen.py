"""Secure random password generator and strength scoring."""

import secrets
import string
from dataclasses import dataclass
from enum import Enum

SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
MIN_LEN = 4
DEFAULT_LEN = 16


class InvalidPolicy(ValueError):
    """Raised when generator options cannot produce a password."""


@dataclass
class GenOptions:
    length: int = DEFAULT_LEN
    upper: bool = True
    lower: bool = True
    digits: bool = True
    symbols: bool = True


def enabled_classes(opts: GenOptions) -> list[str]:
    """Alphabets of the enabled character classes, in a fixed order."""
    classes = []
    if opts.upper:
        classes.append(string.ascii_uppercase)
    if opts.lower:
        classes.append(string.ascii_lowercase)
    if opts.digits:
        classes.append(string.digits)
    if opts.symbols:
        classes.append(SYMBOLS)
    return classes


def build_charset(opts: GenOptions) -> str:
    charset = "".join(enabled_classes(opts))
    if not charset:
        raise InvalidPolicy(
            "No character classes selected (upper/lower/digits/symbols)."
        )
    return charset


def enforce_limits(opts: GenOptions) -> int:
    """Validate the requested length."""
    if opts.length < MIN_LEN:
        raise InvalidPolicy(
            f"Password length ({opts.length}) must be at least {MIN_LEN}."
        )
    return opts.length


def generate_password(opts: GenOptions) -> str:
    """Generate a password with one character from every enabled class."""
    enforce_limits(opts)
    charset = build_charset(opts)

    required = [secrets.choice(alphabet) for alphabet in enabled_classes(opts)]

    while len(required) < opts.length:
        required.append(secrets.choice(charset))

    pw_chars = required[:]
    for i in range(len(pw_chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        pw_chars[i], pw_chars[j] = pw_chars[j], pw_chars[i]

    return "".join(pw_chars)


class PasswordStrength(str, Enum):
    """Heuristic strength levels with display metadata."""

    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"
    VERY_STRONG = "very_strong"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

    @property
    def color(self) -> str:
        return {
            "weak": "red",
            "medium": "yellow",
            "strong": "green",
            "very_strong": "bold green",
        }[self.value]


def score_points(password: str) -> int:
    """Raw point total behind :func:`score_password`."""
    points = 0

    if len(password) >= 12:
        points += 2
    elif len(password) >= 8:
        points += 1

    if any(c.isupper() for c in password):
        points += 1
    if any(c.islower() for c in password):
        points += 1
    if any(c.isdigit() for c in password):
        points += 1
    if any(c in SYMBOLS for c in password):
        points += 1

    if all(password.count(c) <= 2 for c in set(password)):
        points += 1

    return points


def score_password(password: str) -> PasswordStrength:
    """Score a password by length, class variety and repetition.

    This is a rough usability heuristic for display, not an entropy estimate.
    """
    points = score_points(password)
    if points <= 2:
        return PasswordStrength.WEAK
    if points <= 4:
        return PasswordStrength.MEDIUM
    if points <= 6:
        return PasswordStrength.STRONG
    return PasswordStrength.VERY_STRONG
