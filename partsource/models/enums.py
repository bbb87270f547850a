import enum


class RfqStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    STRUCTURED = "STRUCTURED"
    SENT = "SENT"


class RfqRevisionType(str, enum.Enum):
    BASE = "BASE"
    SYNC = "SYNC"


class RfqSupplierStatus(str, enum.Enum):
    INVITED = "INVITED"
    SENT = "SENT"
    RESPONDED = "RESPONDED"


class RfqFormat(str, enum.Enum):
    AUTO = "auto"
    WHOLE = "whole"
    BOM = "bom"
    KIT = "kit"


class DocumentLanguage(str, enum.Enum):
    RU = "ru"
    EN = "en"


class StrategyMode(str, enum.Enum):
    SINGLE = "SINGLE"
    BOM = "BOM"
    MIXED = "MIXED"


class ComponentSourceType(str, enum.Enum):
    SELF = "SELF"
    BOM = "BOM"
    MANUAL = "MANUAL"


class StructureOptionType(str, enum.Enum):
    WHOLE = "WHOLE"
    BOM = "BOM"
    KIT = "KIT"


class SelectionLineType(str, enum.Enum):
    DEMAND = "DEMAND"
    BOM_COMPONENT = "BOM_COMPONENT"
    KIT_ROLE = "KIT_ROLE"


class LineStatus(str, enum.Enum):
    REQUEST = "REQUEST"
    NONE = "NONE"
    ACCEPTED_EXISTING = "ACCEPTED_EXISTING"
    ARCHIVED = "ARCHIVED"


class LineChange(str, enum.Enum):
    NEW = "NEW"
    CHANGED = "CHANGED"


class DispatchMode(str, enum.Enum):
    FULL = "full"
    DELTA = "delta"


class DispatchType(str, enum.Enum):
    FULL = "FULL"
    DELTA = "DELTA"


class OfferType(str, enum.Enum):
    OEM = "OEM"
    ANALOG = "ANALOG"
    UNKNOWN = "UNKNOWN"


class SupplierReplyStatus(str, enum.Enum):
    QUOTED = "QUOTED"
    NO_STOCK = "NO_STOCK"
    DISCONTINUED = "DISCONTINUED"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"
    NO_RESPONSE = "NO_RESPONSE"


class ResponseEntrySource(str, enum.Enum):
    SUPPLIER_FILE = "SUPPLIER_FILE"
    ACCEPTED_EXISTING = "ACCEPTED_EXISTING"


class ResponseActionType(str, enum.Enum):
    CREATE = "CREATE"
    CORRECT = "CORRECT"


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
