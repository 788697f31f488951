"""
Helpers do Publisher ID (ca-pub-xxxxxxxxxxxxxxxx).
"""

import re
from typing import Optional

from .constants import IDENTIFIER_PREFIX, IDENTIFIER_REGEX
from .exceptions import InvalidIdentifierError

# Captura bruta tolerante: caixa alta, "pub-" sem "ca-", separador "_"
_RAW_CAPTURE_REGEX = re.compile(r"(?:ca[-_])?pub[-_](\d+)", re.IGNORECASE)


def is_valid_identifier(value: object) -> bool:
    return isinstance(value, str) and bool(IDENTIFIER_REGEX.match(value))


def normalize_identifier(raw: str) -> Optional[str]:
    """
    Normaliza uma captura bruta para a forma canônica ``ca-pub-<16 dígitos>``.

    Retorna None quando a captura não satisfaz o padrão completo
    (ex: 15 ou 17 dígitos).
    """
    if not raw:
        return None
    candidate = raw.strip().strip("\"'")
    match = _RAW_CAPTURE_REGEX.fullmatch(candidate)
    if not match:
        return None
    normalized = f"{IDENTIFIER_PREFIX}{match.group(1)}"
    return normalized if IDENTIFIER_REGEX.match(normalized) else None


def validate_identifier(value: object) -> str:
    """Valida entrada direta do chamador. Levanta InvalidIdentifierError."""
    if not isinstance(value, str):
        raise InvalidIdentifierError(value)
    candidate = value.strip()
    if not IDENTIFIER_REGEX.match(candidate):
        raise InvalidIdentifierError(value)
    return candidate


def strip_prefix(identifier: str) -> str:
    """ca-pub-1234567890123456 -> 1234567890123456"""
    if identifier.startswith(IDENTIFIER_PREFIX):
        return identifier[len(IDENTIFIER_PREFIX):]
    return identifier
