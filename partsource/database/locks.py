from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def bom_lock_key(equipment_model_id: object | None) -> str:
    """Lock key covering every BOM edge of one equipment model."""
    return f"bom:{equipment_model_id or 'shared'}"


def dispatch_lock_key(rfq_id: object, rfq_supplier_id: object) -> str:
    return f"rfq-dispatch:{rfq_id}:{rfq_supplier_id}"


def response_lock_key(rfq_supplier_id: object) -> str:
    return f"rfq-response:{rfq_supplier_id}"


async def acquire_xact_lock(session: AsyncSession, key: str) -> None:
    """Take a PostgreSQL advisory lock held until the current transaction ends.

    Keys are hashed server-side with hashtextextended so callers can use
    readable strings. Concurrent holders of the same key block here.
    """
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
        {"key": key},
    )
