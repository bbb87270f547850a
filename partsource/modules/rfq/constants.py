"""RFQ status rules, price-source tags and document labels."""

from __future__ import annotations

from partsource.models.enums import RfqStatus, StructureOptionType

# Statuses from which a dispatch may be issued
SENDABLE_STATUSES: frozenset[RfqStatus] = frozenset({RfqStatus.STRUCTURED, RfqStatus.SENT})

# Accepted prices coming from these sources already live in supplier_part_prices
PRICE_SOURCES_WITH_HISTORY: frozenset[str] = frozenset({"PRICE_LIST", "RFQ"})

SOURCE_TYPE_RFQ_RESPONSE = "RFQ_RESPONSE"
SOURCE_SUBTYPE_SUPPLIER_FILE = "SUPPLIER_FILE"
SOURCE_SUBTYPE_ACCEPTED_EXISTING = "ACCEPTED_EXISTING"

DEFAULT_ACCEPT_REASON = "accepted existing price"

OPTION_LABELS: dict[str, dict[StructureOptionType, str]] = {
    "ru": {
        StructureOptionType.WHOLE: "Поставка целиком",
        StructureOptionType.BOM: "Поставка по составу",
        StructureOptionType.KIT: "Поставка комплектом",
    },
    "en": {
        StructureOptionType.WHOLE: "Supply as whole",
        StructureOptionType.BOM: "Supply as BOM",
        StructureOptionType.KIT: "Supply as kit",
    },
}

DOCUMENT_NOTES: dict[str, dict[str, str]] = {
    "ru": {
        "options": "Варианты (целиком / по составу / комплектом) являются альтернативами. "
        "Заполняйте цены только для выбранных вариантов.",
        "selected": "Заполняйте цены только для выбранных строк.",
    },
    "en": {
        "options": "Options (supply as whole / BOM / kit) are alternatives. "
        "Fill prices only for selected options.",
        "selected": "Fill prices only for selected lines.",
    },
}
