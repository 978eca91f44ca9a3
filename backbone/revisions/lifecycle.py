"""Script lineage lifecycle: uploads, revisions, review confirmation.

These helpers flush but do not commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import ScriptModel
from backbone.models import ScriptStatus
from backbone.reconciliation.errors import InvalidScriptState, ScriptNotFound

logger = logging.getLogger(__name__)


async def create_script(
    session: AsyncSession,
    production_id: str,
    title: str,
    file_name: str | None = None,
    page_count: int | None = None,
) -> ScriptModel:
    """Register the first version of a new lineage (status PROCESSING)."""
    script_id = uuid4()
    script = ScriptModel(
        id=script_id,
        production_id=production_id,
        title=title,
        file_name=file_name,
        version=1,
        parent_script_id=None,
        lineage_id=script_id,
        status=ScriptStatus.PROCESSING.value,
        page_count=page_count,
    )
    session.add(script)
    await session.flush()

    logger.info("Created script %s (%s) for production %s", script.id, title, production_id)
    return script


async def create_revision(
    session: AsyncSession,
    parent_script_id: UUID,
    title: str | None = None,
    file_name: str | None = None,
    page_count: int | None = None,
) -> ScriptModel:
    """Register a new draft as the next version of the parent's lineage.

    Args:
        session: Database session
        parent_script_id: Script the revision replaces
        title: Title for the new draft (defaults to the parent's)
        file_name: Uploaded file name
        page_count: Page count if already known

    Returns:
        The new ScriptModel in PROCESSING status

    Raises:
        ScriptNotFound: If the parent does not exist
        InvalidScriptState: If the parent is not READY or is not the latest version
    """
    parent = await session.get(ScriptModel, parent_script_id)
    if parent is None:
        raise ScriptNotFound(parent_script_id)

    if parent.status != ScriptStatus.READY.value:
        raise InvalidScriptState(
            f"Script {parent_script_id} is {parent.status}; revisions can only follow a READY script"
        )

    latest = await _latest_version(session, parent.lineage_id)
    if parent.version != latest:
        raise InvalidScriptState(
            f"Script {parent_script_id} is version {parent.version}; "
            f"the latest version of this lineage is {latest}"
        )

    revision = ScriptModel(
        id=uuid4(),
        production_id=parent.production_id,
        title=title or parent.title,
        file_name=file_name,
        version=parent.version + 1,
        parent_script_id=parent.id,
        lineage_id=parent.lineage_id,
        status=ScriptStatus.PROCESSING.value,
        page_count=page_count,
    )
    session.add(revision)
    await session.flush()

    logger.info(
        "Created revision %s (v%d) of lineage %s", revision.id, revision.version, revision.lineage_id
    )
    return revision


async def confirm_script_review(session: AsyncSession, script_id: UUID) -> ScriptModel:
    """Confirm the initial element review (REVIEWING → READY)."""
    script = await session.get(ScriptModel, script_id)
    if script is None:
        raise ScriptNotFound(script_id)

    if script.status != ScriptStatus.REVIEWING.value:
        raise InvalidScriptState(
            f"Script {script_id} is {script.status}; only REVIEWING scripts can be confirmed"
        )

    script.status = ScriptStatus.READY.value
    await session.flush()
    return script


async def list_versions(session: AsyncSession, script_id: UUID) -> list[ScriptModel]:
    """Every script in the lineage of ``script_id``, oldest version first."""
    script = await session.get(ScriptModel, script_id)
    if script is None:
        raise ScriptNotFound(script_id)

    stmt = (
        select(ScriptModel)
        .where(ScriptModel.lineage_id == script.lineage_id)
        .order_by(ScriptModel.version.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def _latest_version(session: AsyncSession, lineage_id: UUID) -> int:
    stmt = select(func.max(ScriptModel.version)).where(ScriptModel.lineage_id == lineage_id)
    return (await session.execute(stmt)).scalar_one()
