"""
CNPJ normalization and display helpers.

A normalized CNPJ is the 14-character identifier with punctuation removed and
left-padded with zeros. No check-digit validation is performed.
"""

from __future__ import annotations

CNPJ_LENGTH = 14
CNPJ_LINK_TEMPLATE = "https://cnpj.biz/{cnpj}"

_PUNCTUATION = str.maketrans("", "", ".-/")


def normalize_cnpj(raw: str) -> str:
    """
    Strip whitespace and punctuation and left-pad with zeros to 14 characters.

    Parameters:
        raw: CNPJ as found in the input (punctuated or not)

    Returns:
        Normalized identifier

    Example:
        >>> normalize_cnpj(" 11.222.333/0001-81 ")
        '11222333000181'
        >>> normalize_cnpj("191")
        '00000000000191'
    """
    return raw.strip().translate(_PUNCTUATION).rjust(CNPJ_LENGTH, "0")


def format_cnpj(cnpj: str) -> str:
    """
    Render a CNPJ as AA.AAA.AAA/AAAA-AA.

    Parameters:
        cnpj: Raw or normalized CNPJ

    Returns:
        Display form

    Raises:
        ValueError: If the identifier is not 14 characters after normalization

    Example:
        >>> format_cnpj("11222333000181")
        '11.222.333/0001-81'
    """
    value = normalize_cnpj(cnpj)
    if len(value) != CNPJ_LENGTH:
        raise ValueError(f"CNPJ must have {CNPJ_LENGTH} digits, got {value!r}")
    return f"{value[:2]}.{value[2:5]}.{value[5:8]}/{value[8:12]}-{value[12:]}"


def cnpj_link(cnpj: str) -> str:
    """Reference link for a CNPJ, built from its normalized form."""
    return CNPJ_LINK_TEMPLATE.format(cnpj=normalize_cnpj(cnpj))


def display_cnpj(cnpj: str) -> str:
    """
    Display form for output rows and progress lines.

    Like format_cnpj(), but an identifier that is not 14 characters after
    normalization is returned normalized and unpunctuated instead of raising.

    Example:
        >>> display_cnpj("191")
        '00.000.000/0001-91'
        >>> display_cnpj("112223330001810")
        '112223330001810'
    """
    value = normalize_cnpj(cnpj)
    if len(value) != CNPJ_LENGTH:
        return value
    return format_cnpj(value)
