# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from partsource.models.bom_edge import BomEdge
from partsource.models.client_request import (
    ClientRequest,
    ClientRequestRevision,
    ClientRequestRevisionItem,
)
from partsource.models.enums import (
    ComponentSourceType,
    DispatchMode,
    DispatchType,
    DocumentLanguage,
    EventStatus,
    LineChange,
    LineStatus,
    OfferType,
    ResponseActionType,
    ResponseEntrySource,
    RfqFormat,
    RfqRevisionType,
    RfqStatus,
    RfqSupplierStatus,
    SelectionLineType,
    StrategyMode,
    StructureOptionType,
    SupplierReplyStatus,
)
from partsource.models.event_outbox import EventOutbox
from partsource.models.original_part import OriginalPart
from partsource.models.rfq import Rfq
from partsource.models.rfq_dispatch import RfqDocument, RfqSupplierDispatch
from partsource.models.rfq_item import RfqItem
from partsource.models.rfq_item_component import RfqItemComponent
from partsource.models.rfq_item_strategy import RfqItemStrategy
from partsource.models.rfq_line_selection import RfqSupplierLineSelection
from partsource.models.rfq_line_status import RfqSupplierLineStatus
from partsource.models.rfq_response import (
    RfqResponseLine,
    RfqResponseLineAction,
    RfqResponseRevision,
)
from partsource.models.rfq_revision import RfqRevision
from partsource.models.rfq_supplier import RfqSupplier, RfqSupplierRevisionState
from partsource.models.supplier import Supplier, SupplierPart, SupplierPartPrice
from partsource.models.supplier_bundle import (
    SupplierBundle,
    SupplierBundleItem,
    SupplierBundleItemLink,
)

__all__ = [
    "BomEdge",
    "ClientRequest",
    "ClientRequestRevision",
    "ClientRequestRevisionItem",
    "ComponentSourceType",
    "DispatchMode",
    "DispatchType",
    "DocumentLanguage",
    "EventOutbox",
    "EventStatus",
    "LineChange",
    "LineStatus",
    "OfferType",
    "OriginalPart",
    "ResponseActionType",
    "ResponseEntrySource",
    "Rfq",
    "RfqDocument",
    "RfqFormat",
    "RfqItem",
    "RfqItemComponent",
    "RfqItemStrategy",
    "RfqResponseLine",
    "RfqResponseLineAction",
    "RfqResponseRevision",
    "RfqRevision",
    "RfqRevisionType",
    "RfqStatus",
    "RfqSupplier",
    "RfqSupplierDispatch",
    "RfqSupplierLineSelection",
    "RfqSupplierLineStatus",
    "RfqSupplierRevisionState",
    "RfqSupplierStatus",
    "SelectionLineType",
    "StrategyMode",
    "StructureOptionType",
    "Supplier",
    "SupplierBundle",
    "SupplierBundleItem",
    "SupplierBundleItemLink",
    "SupplierPart",
    "SupplierPartPrice",
    "SupplierReplyStatus",
]
