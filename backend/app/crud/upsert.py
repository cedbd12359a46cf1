"""
Dialect-aware INSERT ... ON CONFLICT helper.
"""
from typing import Any, Dict, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


async def upsert(
    db: AsyncSession,
    model,
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
):
    """
    Insert a row or update ``update_columns`` of the existing one, in one statement.

    Returns:
        The primary key of the affected row
    """
    dialect = db.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={column: stmt.excluded[column] for column in update_columns},
    ).returning(model.id)
    result = await db.execute(stmt)
    return result.scalar_one()
