"""Canonical normalizers for the string-tagged values that enter the RFQ core.

Every inbound value (request bodies, imported spreadsheet cells) goes
through one of these before it reaches a service.
"""

from __future__ import annotations

import enum
import re
from typing import Any

from partsource.models.enums import (
    DispatchMode,
    DocumentLanguage,
    LineStatus,
    OfferType,
    RfqFormat,
    SelectionLineType,
    StrategyMode,
    SupplierReplyStatus,
)

_OFFER_TYPE_ALIASES = {
    "OEM": OfferType.OEM,
    "ОРИГИНАЛ": OfferType.OEM,
    "OEM (ОРИГИНАЛ)": OfferType.OEM,
    "ANALOG": OfferType.ANALOG,
    "АНАЛОГ": OfferType.ANALOG,
    "UNKNOWN": OfferType.UNKNOWN,
    "НЕ УКАЗАН": OfferType.UNKNOWN,
    "НЕ УКАЗАНО": OfferType.UNKNOWN,
}

_REPLY_STATUS_ALIASES = {
    "ЦЕНА ПРЕДОСТАВЛЕНА": SupplierReplyStatus.QUOTED,
    "PRICE PROVIDED": SupplierReplyStatus.QUOTED,
    "НЕТ В НАЛИЧИИ": SupplierReplyStatus.NO_STOCK,
    "OUT OF STOCK": SupplierReplyStatus.NO_STOCK,
    "NO STOCK": SupplierReplyStatus.NO_STOCK,
    "СНЯТ С ПРОИЗВОДСТВА": SupplierReplyStatus.DISCONTINUED,
    "ТРЕБУЕТ УТОЧНЕНИЯ": SupplierReplyStatus.NEEDS_CLARIFICATION,
    "NEEDS CLARIFICATION": SupplierReplyStatus.NEEDS_CLARIFICATION,
    "БЕЗ ОТВЕТА": SupplierReplyStatus.NO_RESPONSE,
    "NO RESPONSE": SupplierReplyStatus.NO_RESPONSE,
}

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        value = value.value
    return str(value).strip()


def _upper(value: Any) -> str:
    return _text(value).upper()


def blank_to_none(value: Any) -> str | None:
    return _text(value) or None


def normalize_strategy_mode(value: Any, fallback: StrategyMode = StrategyMode.SINGLE) -> StrategyMode:
    try:
        return StrategyMode(_upper(value))
    except ValueError:
        return fallback


def normalize_offer_type(value: Any, fallback: OfferType = OfferType.UNKNOWN) -> OfferType:
    return _OFFER_TYPE_ALIASES.get(_upper(value), fallback)


def normalize_reply_status(
    value: Any, fallback: SupplierReplyStatus = SupplierReplyStatus.QUOTED
) -> SupplierReplyStatus:
    normalized = _upper(value)
    if not normalized:
        return fallback
    try:
        return SupplierReplyStatus(normalized)
    except ValueError:
        return _REPLY_STATUS_ALIASES.get(normalized, fallback)


def reply_status_requires_price(status: SupplierReplyStatus) -> bool:
    return status == SupplierReplyStatus.QUOTED


def canonical_part_number(value: Any) -> str | None:
    """Alphanumerics only, upper-cased: ``"ab-12 / 3"`` -> ``"AB123"``."""
    raw = blank_to_none(value)
    if raw is None:
        return None
    return _NON_ALNUM.sub("", raw).upper() or None


def normalize_rfq_format(value: Any) -> RfqFormat:
    try:
        return RfqFormat(_text(value).lower())
    except ValueError:
        return RfqFormat.AUTO


def normalize_language(value: Any, fallback: str = DocumentLanguage.RU.value) -> DocumentLanguage:
    normalized = _text(value).lower()
    try:
        return DocumentLanguage(normalized or fallback)
    except ValueError:
        return DocumentLanguage(fallback)


def normalize_line_status(value: Any) -> LineStatus | None:
    try:
        return LineStatus(_upper(value))
    except ValueError:
        return None


def normalize_selection_line_type(value: Any) -> SelectionLineType | None:
    try:
        return SelectionLineType(_upper(value))
    except ValueError:
        return None


def normalize_dispatch_mode(value: Any) -> DispatchMode:
    return DispatchMode.DELTA if _text(value).lower() == "delta" else DispatchMode.FULL


def normalize_currency(value: Any) -> str | None:
    raw = blank_to_none(value)
    return raw.upper() if raw else None


def normalize_incoterms(value: Any) -> str | None:
    raw = blank_to_none(value)
    return raw.upper()[:20] if raw else None
