"""PostgreSQL session variables read by the row-level security predicates.

The three variables live on a single pooled connection. They are written
together in one statement so a reader never observes a half-set context.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

SESSION_VAR_USER_ID = "app.current_user_id"
SESSION_VAR_ORG_ID = "app.current_organization_id"
SESSION_VAR_SYSTEM_OWNER = "app.is_system_owner"

CONTEXT_VARIABLES = (SESSION_VAR_USER_ID, SESSION_VAR_ORG_ID, SESSION_VAR_SYSTEM_OWNER)

_SET_CONTEXT = text(
    f"SELECT set_config('{SESSION_VAR_USER_ID}', :user_id, false), "
    f"set_config('{SESSION_VAR_ORG_ID}', :org_id, false), "
    f"set_config('{SESSION_VAR_SYSTEM_OWNER}', :is_system_owner, false)"
)

# Plain string so the pool checkout hook can run it on a raw DBAPI cursor.
CLEAR_CONTEXT_SQL = (
    f"SELECT set_config('{SESSION_VAR_USER_ID}', '', false), "
    f"set_config('{SESSION_VAR_ORG_ID}', '', false), "
    f"set_config('{SESSION_VAR_SYSTEM_OWNER}', '', false)"
)

_READ_CONTEXT = text(
    f"SELECT current_setting('{SESSION_VAR_USER_ID}', true), "
    f"current_setting('{SESSION_VAR_ORG_ID}', true), "
    f"current_setting('{SESSION_VAR_SYSTEM_OWNER}', true)"
)


async def set_context(
    conn: AsyncConnection,
    user_id: str | None,
    organization_id: str | None,
    is_system_owner: bool = False,
) -> None:
    """Write the acting user, organization and system-owner flag for this connection.

    Session-level (``is_local=false``) so the values survive the commits made
    by route code; the owner of the connection must call ``clear_context``
    before handing it back to the pool.
    """
    await conn.execute(
        _SET_CONTEXT,
        {
            "user_id": str(user_id) if user_id else "",
            "org_id": str(organization_id) if organization_id else "",
            "is_system_owner": "true" if is_system_owner else "false",
        },
    )
    await conn.commit()


async def clear_context(conn: AsyncConnection) -> None:
    """Reset all three variables to the unset (empty) state."""
    if conn.in_transaction():
        await conn.rollback()
    await conn.execute(text(CLEAR_CONTEXT_SQL))
    await conn.commit()


async def read_context(conn: AsyncConnection) -> dict[str, str]:
    """Return the raw variable values visible on this connection ('' when unset)."""
    result = await conn.execute(_READ_CONTEXT)
    user_id, org_id, flag = result.one()
    return {
        SESSION_VAR_USER_ID: user_id or "",
        SESSION_VAR_ORG_ID: org_id or "",
        SESSION_VAR_SYSTEM_OWNER: flag or "",
    }


async def elevate_transaction(conn: AsyncConnection) -> None:
    """Grant system-owner visibility until the current transaction ends.

    Used only by the directory lookups that must read ``users`` and
    ``organizations`` before any request context exists.
    """
    await conn.execute(
        text(f"SELECT set_config('{SESSION_VAR_SYSTEM_OWNER}', 'true', true)")
    )
