"""Unit tests for the inbound value normalizers."""

import pytest

from partsource.models.enums import (
    DispatchMode,
    DocumentLanguage,
    LineStatus,
    OfferType,
    RfqFormat,
    StrategyMode,
    SupplierReplyStatus,
)
from partsource.modules.rfq.normalizers import (
    blank_to_none,
    canonical_part_number,
    normalize_currency,
    normalize_dispatch_mode,
    normalize_incoterms,
    normalize_language,
    normalize_line_status,
    normalize_offer_type,
    normalize_reply_status,
    normalize_rfq_format,
    normalize_strategy_mode,
    reply_status_requires_price,
)


class TestOfferAndReply:
    @pytest.mark.parametrize("raw", ["oem", " OEM ", "Оригинал", "OEM (оригинал)"])
    def test_oem_aliases(self, raw):
        assert normalize_offer_type(raw) == OfferType.OEM

    def test_unknown_offer_type_falls_back(self):
        assert normalize_offer_type("rebuilt") == OfferType.UNKNOWN

    def test_reply_status_aliases(self):
        assert normalize_reply_status("Нет в наличии") == SupplierReplyStatus.NO_STOCK
        assert normalize_reply_status("no_response") == SupplierReplyStatus.NO_RESPONSE

    def test_blank_reply_status_is_quoted(self):
        assert normalize_reply_status("  ") == SupplierReplyStatus.QUOTED

    def test_only_quoted_requires_price(self):
        assert reply_status_requires_price(SupplierReplyStatus.QUOTED) is True
        assert reply_status_requires_price(SupplierReplyStatus.NO_STOCK) is False


class TestFormatsAndModes:
    def test_rfq_format(self):
        assert normalize_rfq_format("BOM") == RfqFormat.BOM
        assert normalize_rfq_format("pallet") == RfqFormat.AUTO
        assert normalize_rfq_format(None) == RfqFormat.AUTO

    def test_language_accepts_enum_members(self):
        assert normalize_language(DocumentLanguage.EN) == DocumentLanguage.EN
        assert normalize_language(DocumentLanguage.RU, fallback="en") == DocumentLanguage.RU

    def test_language_fallback(self):
        assert normalize_language("de") == DocumentLanguage.RU
        assert normalize_language("", fallback="en") == DocumentLanguage.EN

    def test_dispatch_mode(self):
        assert normalize_dispatch_mode("DELTA") == DispatchMode.DELTA
        assert normalize_dispatch_mode(DispatchMode.DELTA) == DispatchMode.DELTA
        assert normalize_dispatch_mode("anything") == DispatchMode.FULL

    def test_strategy_mode(self):
        assert normalize_strategy_mode("mixed") == StrategyMode.MIXED
        assert normalize_strategy_mode("bogus") == StrategyMode.SINGLE

    def test_line_status(self):
        assert normalize_line_status("accepted_existing") == LineStatus.ACCEPTED_EXISTING
        assert normalize_line_status("gone") is None


class TestTextValues:
    def test_canonical_part_number(self):
        assert canonical_part_number("ab-12 / 3") == "AB123"
        assert canonical_part_number(" -- ") is None
        assert canonical_part_number(None) is None

    def test_blank_to_none(self):
        assert blank_to_none("   ") is None
        assert blank_to_none(" x ") == "x"

    def test_currency_and_incoterms(self):
        assert normalize_currency(" usd ") == "USD"
        assert normalize_currency("") is None
        assert normalize_incoterms("fca hamburg, germany, port terminal") == "FCA HAMBURG, GERMANY"
