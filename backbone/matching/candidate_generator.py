"""Type-blocked candidate generation for revision matching.

An element can only match another element of the same type, so both sides are
partitioned by type before any scoring. This bounds comparison cost to
O(n·m) per type bucket instead of across the whole script.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import ElementModel
from backbone.matching.models import ExistingElement
from backbone.models import ElementStatus

logger = logging.getLogger(__name__)


def partition_by_type(elements: Iterable[ExistingElement]) -> dict[str, list[ExistingElement]]:
    """Group elements into type buckets, keeping each bucket oldest-first."""
    buckets: dict[str, list[ExistingElement]] = defaultdict(list)
    for element in elements:
        buckets[element.type].append(element)

    for bucket in buckets.values():
        bucket.sort(key=lambda e: (e.created_at, str(e.id)))

    return dict(buckets)


class CandidateGenerator:
    """Loads the matching pool for a lineage and blocks it by type."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_pool(self, lineage_id: UUID) -> list[ExistingElement]:
        """Load ACTIVE elements of a script lineage.

        ARCHIVED elements never participate in matching.

        Args:
            lineage_id: Lineage shared by every revision of the script

        Returns:
            Element snapshots ordered oldest-first
        """
        stmt = (
            select(ElementModel)
            .where(
                ElementModel.lineage_id == lineage_id,
                ElementModel.status == ElementStatus.ACTIVE.value,
            )
            .order_by(ElementModel.created_at.asc(), ElementModel.id.asc())
        )
        rows = (await self.session.execute(stmt)).scalars().all()

        pool = [ExistingElement.from_model(row) for row in rows]
        logger.debug("Loaded %d active elements for lineage %s", len(pool), lineage_id)
        return pool
