"""BomService: bill-of-materials edges, cycle guard and tree explosion."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from partsource.database.locks import acquire_xact_lock, bom_lock_key
from partsource.exceptions import (
    AppException,
    BomCycleException,
    ConflictException,
    DuplicateEntryException,
    InternalException,
    NotFoundException,
    ValidationException,
)
from partsource.models.bom_edge import BomEdge
from partsource.models.original_part import OriginalPart
from partsource.modules.bom.graph import Adjacency, TreeRow, explode_tree, would_create_cycle
from partsource.schemas.responses import BatchResult

logger = logging.getLogger(__name__)

# Parent ids fetched per round trip while walking the graph
_GRAPH_BATCH_SIZE = 200


@dataclass
class BomGraph:
    children: Adjacency = field(default_factory=dict)
    parts: dict[uuid.UUID, OriginalPart] = field(default_factory=dict)

    def direct_children(self, part_id: uuid.UUID | None) -> list[tuple[uuid.UUID, Decimal]]:
        if part_id is None:
            return []
        return self.children.get(part_id, [])


class BomService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def children(self, part_id: uuid.UUID) -> list[BomEdge]:
        """Direct composition edges of one part, with the child part loaded."""
        result = await self.db.execute(
            select(BomEdge)
            .options(joinedload(BomEdge.child))
            .where(BomEdge.parent_part_id == part_id)
            .order_by(BomEdge.child_part_id)
        )
        return list(result.unique().scalars().all())

    async def load_graph(
        self, root_ids: list[uuid.UUID], *, with_parts: bool = True
    ) -> BomGraph:
        """Load every edge reachable below ``root_ids``, one level per query."""
        graph = BomGraph()
        queued: set[uuid.UUID] = set(root_ids)
        pending = list(dict.fromkeys(root_ids))

        while pending:
            batch, pending = pending[:_GRAPH_BATCH_SIZE], pending[_GRAPH_BATCH_SIZE:]
            result = await self.db.execute(
                select(BomEdge.parent_part_id, BomEdge.child_part_id, BomEdge.quantity)
                .where(BomEdge.parent_part_id.in_(batch))
                .order_by(BomEdge.parent_part_id, BomEdge.child_part_id)
            )
            for parent_id, child_id, quantity in result.all():
                graph.children.setdefault(parent_id, []).append((child_id, Decimal(quantity)))
                if child_id not in queued:
                    queued.add(child_id)
                    pending.append(child_id)

        if with_parts and queued:
            result = await self.db.execute(
                select(OriginalPart).where(OriginalPart.id.in_(list(queued)))
            )
            graph.parts = {part.id: part for part in result.scalars().all()}
        return graph

    async def would_create_cycle(self, parent_id: uuid.UUID, child_id: uuid.UUID) -> bool:
        """Reachability check from the prospective child back to the parent.

        Callers that go on to insert must hold the model's BOM lock first.
        """
        if parent_id == child_id:
            return True
        graph = await self.load_graph([child_id], with_parts=False)
        return would_create_cycle(graph.children, parent_id, child_id)

    async def tree(self, root_id: uuid.UUID) -> tuple[list[TreeRow], dict[uuid.UUID, OriginalPart]]:
        graph = await self.load_graph([root_id])
        if root_id not in graph.parts:
            raise NotFoundException(f"Original part {root_id} not found")
        return explode_tree(root_id, graph.children), graph.parts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _get_edge(self, parent_id: uuid.UUID, child_id: uuid.UUID) -> BomEdge | None:
        result = await self.db.execute(
            select(BomEdge).where(
                BomEdge.parent_part_id == parent_id,
                BomEdge.child_part_id == child_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_edge(
        self,
        parent_id: uuid.UUID,
        child_id: uuid.UUID,
        quantity: Decimal = Decimal(1),
    ) -> BomEdge:
        if quantity is None or Decimal(quantity) <= 0:
            raise ValidationException(
                "quantity must be a positive number",
                details=[{"field": "quantity", "message": "must be > 0"}],
            )
        if parent_id == child_id:
            raise BomCycleException("A part cannot contain itself")

        result = await self.db.execute(
            select(OriginalPart).where(OriginalPart.id.in_([parent_id, child_id]))
        )
        parts = {part.id: part for part in result.scalars().all()}
        parent = parts.get(parent_id)
        child = parts.get(child_id)
        if parent is None:
            raise NotFoundException(f"Parent part {parent_id} not found")
        if child is None:
            raise NotFoundException(f"Child part {child_id} not found")
        if parent.equipment_model_id != child.equipment_model_id:
            raise ConflictException(
                "Parent and child belong to different equipment models",
                details=[
                    {"field": "parent_part_id", "message": str(parent.equipment_model_id)},
                    {"field": "child_part_id", "message": str(child.equipment_model_id)},
                ],
            )

        # Serializes every edge write of this model until commit
        await acquire_xact_lock(self.db, bom_lock_key(parent.equipment_model_id))

        if await self._get_edge(parent_id, child_id) is not None:
            raise DuplicateEntryException(
                f"BOM edge {parent.cat_number} -> {child.cat_number} already exists"
            )
        if await self.would_create_cycle(parent_id, child_id):
            raise BomCycleException(
                f"Adding {child.cat_number} under {parent.cat_number} would create a cycle"
            )

        edge = BomEdge(
            parent_part_id=parent_id,
            child_part_id=child_id,
            equipment_model_id=parent.equipment_model_id,
            quantity=Decimal(quantity),
        )
        self.db.add(edge)
        await self.db.flush()
        logger.info("Added BOM edge %s -> %s (qty %s)", parent_id, child_id, quantity)
        return edge

    async def bulk_add_edges(
        self,
        edges: list[tuple[uuid.UUID, uuid.UUID, Decimal]],
        *,
        atomic: bool = False,
    ) -> BatchResult:
        """Insert many edges.

        Each edge runs in its own savepoint so one rejected edge leaves the
        others in place. With ``atomic=True`` the first failure propagates and
        the caller's transaction discards the whole batch.
        """
        outcome = BatchResult()
        for index, (parent_id, child_id, quantity) in enumerate(edges):
            if atomic:
                edge = await self.add_edge(parent_id, child_id, quantity)
                outcome.add_success(_edge_summary(edge))
                continue
            try:
                async with self.db.begin_nested():
                    edge = await self.add_edge(parent_id, child_id, quantity)
            except AppException as exc:
                logger.warning("BOM edge #%d rejected: %s", index, exc.message)
                outcome.add_failure(index, exc)
                continue
            except Exception:
                logger.exception("BOM edge #%d (%s -> %s) failed", index, parent_id, child_id)
                outcome.add_failure(index, InternalException(f"edge {parent_id} -> {child_id} failed"))
                continue
            outcome.add_success(_edge_summary(edge))

        logger.info(
            "Bulk BOM insert: %d added, %d rejected",
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome

    async def update_quantity(
        self, parent_id: uuid.UUID, child_id: uuid.UUID, quantity: Decimal
    ) -> BomEdge:
        if quantity is None or Decimal(quantity) <= 0:
            raise ValidationException(
                "quantity must be a positive number",
                details=[{"field": "quantity", "message": "must be > 0"}],
            )
        edge = await self._get_edge(parent_id, child_id)
        if edge is None:
            raise NotFoundException(f"BOM edge {parent_id} -> {child_id} not found")
        edge.quantity = Decimal(quantity)
        await self.db.flush()
        return edge

    async def remove_edge(self, parent_id: uuid.UUID, child_id: uuid.UUID) -> None:
        edge = await self._get_edge(parent_id, child_id)
        if edge is None:
            raise NotFoundException(f"BOM edge {parent_id} -> {child_id} not found")
        await self.db.delete(edge)
        await self.db.flush()
        logger.info("Removed BOM edge %s -> %s", parent_id, child_id)


def _edge_summary(edge: BomEdge) -> dict:
    return {
        "id": str(edge.id) if edge.id else None,
        "parent_part_id": str(edge.parent_part_id),
        "child_part_id": str(edge.child_part_id),
        "quantity": str(edge.quantity),
    }
