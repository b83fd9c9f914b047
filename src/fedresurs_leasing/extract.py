"""Field extraction from the listing's free-text `mainInfo` block.

A typical block looks like::

    Договор: №12-ФЛ от 01.06.2023
    Лизингодатель: ООО Альфа, ОГРН: 1027700000000, ИНН: 7700000000
    Лизингополучатель: ООО Бета, ОГРН: 1167700000001, ИНН: 7700000001

Lines are CRLF-separated. Every extractor is independent and returns "" when its label is missing.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional


logger = logging.getLogger("fls.extract")

ORG_PREFIX = "ООО "
LESSEE_LABEL = "Лизингополучатель"

_CONTRACT_RE = re.compile(r"Договор:\s([^\r\n]+)")
_LESSOR_RE = re.compile(r"Лизингодатель:\s(.+?)(?:,\sОГРН|\r?\n|Лизингополучатель|$)")
_LESSEE_RE = re.compile(r"Лизингополучатель:\s([^,\r\n]+)")
_OGRN_RE = re.compile(r"ОГРН:\s(\d+)")
_INN_RE = re.compile(r"ИНН:\s(\d+)")

# Registry type codes -> labels shown on the public site.
CONTRACT_TYPE_LABELS = {
    "FinancialLeaseContract": "Заключение договора финансовой аренды (лизинга)",
    "ChangeFinancialLeaseContract": "Изменение договора финансовой аренды (лизинга)",
    "StopFinancialLeaseContract": "Прекращение договора финансовой аренды (лизинга)",
}

# Originations are not tracked; only amendments and terminations are stored.
EXCLUDED_CONTRACT_TYPE = CONTRACT_TYPE_LABELS["FinancialLeaseContract"]


def strip_org_prefix(value: Optional[str]) -> str:
    v = (value or "").strip()
    if v.startswith(ORG_PREFIX):
        v = v[len(ORG_PREFIX):].strip()
    return v


def _first_group(pattern: re.Pattern, text: str) -> str:
    m = pattern.search(text or "")
    if not m:
        return ""
    return m.group(1).strip()


def extract_contract(main_info: str) -> str:
    return _first_group(_CONTRACT_RE, main_info)


def extract_lessor(main_info: str) -> str:
    return strip_org_prefix(_first_group(_LESSOR_RE, main_info))


def extract_lessee(main_info: str) -> str:
    return strip_org_prefix(_first_group(_LESSEE_RE, main_info))


def _lessee_segment(main_info: str) -> str:
    idx = (main_info or "").find(LESSEE_LABEL)
    if idx < 0:
        return ""
    return main_info[idx:]


def extract_ogrn(main_info: str) -> str:
    """OGRN of the lessee (the lessor's OGRN is ignored)."""
    return _first_group(_OGRN_RE, _lessee_segment(main_info))


def extract_inn(main_info: str) -> str:
    """INN of the lessee (the lessor's INN is ignored)."""
    return _first_group(_INN_RE, _lessee_segment(main_info))


def translate_contract_type(code: Optional[str]) -> str:
    key = (code or "").strip()
    return CONTRACT_TYPE_LABELS.get(key, key)


def is_excluded_type(label: Optional[str]) -> bool:
    return translate_contract_type(label) == EXCLUDED_CONTRACT_TYPE


def parse_publish_date(value: Optional[str]) -> Optional[datetime]:
    """Parse `2023-06-02T10:15:30.123` (fraction optional) into a naive UTC datetime."""

    raw = (value or "").strip()
    if not raw:
        return None
    dot = raw.rfind(".")
    if dot != -1:
        raw = raw[:dot]
    try:
        return datetime.strptime(raw, "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        logger.warning("unparsable publishDate %r", value)
        return None


def extract_fields(main_info: str) -> dict[str, str]:
    return {
        "contract": extract_contract(main_info),
        "lessor": extract_lessor(main_info),
        "lessee": extract_lessee(main_info),
        "ogrn": extract_ogrn(main_info),
        "inn": extract_inn(main_info),
    }
