"""
Normalização de queries livres.

Queries equivalentes vindas de chamadores diferentes precisam produzir a
mesma string, para que chaves de cache e espaçamento entre requisições
fiquem alinhados.
"""

import re
from typing import Optional

_PARENTHETICAL_REGEX = re.compile(r"\([^)]*\)")
_SEPARATOR_REGEX = re.compile(r"[&/]")
_DISALLOWED_REGEX = re.compile(r"[^\w\s'\"-]")
_WHITESPACE_REGEX = re.compile(r"\s+")

_QUOTE_MAP = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
})


def normalize_query(text: Optional[str]) -> str:
    """
    Canonicaliza uma query de busca.

    - Remove trechos entre parênteses (ruído de desambiguação)
    - Troca '&' e '/' por espaço
    - Converte aspas curvas em aspas retas
    - Remove caracteres fora de palavra/espaço/aspas/hífen
    - Colapsa espaços e apara as pontas

    Case é preservado. A função é idempotente.
    """
    if not text:
        return ""

    normalized = _PARENTHETICAL_REGEX.sub(" ", text)
    normalized = _SEPARATOR_REGEX.sub(" ", normalized)
    normalized = normalized.translate(_QUOTE_MAP)
    normalized = _DISALLOWED_REGEX.sub("", normalized)
    normalized = _WHITESPACE_REGEX.sub(" ", normalized)
    return normalized.strip()
