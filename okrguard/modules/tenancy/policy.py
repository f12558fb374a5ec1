"""Static isolation-policy model.

Each protected table declares how its owning organization is derived:

* ``Direct``: the row carries the organization id in one of its columns.
* ``Chained``: the organization is reached by following foreign keys,
  e.g. check_ins -> key_results -> objectives -> users.
* ``Exempt``: reference data with no owner; readable by anyone, writable
  only by a system owner.

The model is pure data. ``install_statements`` / ``reset_statements`` render
it to SQL for the installer and the Alembic migration, and ``derive_tenant``
/ ``is_visible`` interpret it in memory so it can be tested without a
database.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from okrguard.database.tenant import (
    SESSION_VAR_ORG_ID,
    SESSION_VAR_SYSTEM_OWNER,
    SESSION_VAR_USER_ID,
)
from okrguard.exceptions import PolicyModelError
from okrguard.modules.tenancy.constants import (
    FN_CURRENT_ORGANIZATION,
    FN_CURRENT_USER,
    FN_IS_SYSTEM_OWNER,
    MAX_CHAIN_DEPTH,
    MAX_IDENTIFIER_LENGTH,
    POLICY_SUFFIX_ACCESS,
    POLICY_SUFFIX_DELETE,
    POLICY_SUFFIX_MODIFY,
    POLICY_SUFFIX_ORGANIZATION,
    POLICY_SUFFIX_READ,
    POLICY_SUFFIX_UPDATE,
    POLICY_SUFFIXES,
)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

RowFetcher = Callable[[str, Any], Mapping[str, Any] | None]


# ---------------------------------------------------------------------------
# Derivation rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Direct:
    """Tenant is a column on the row itself.

    ``owner_column`` additionally lets the acting user see rows they own
    (used by ``organizations.owner_id``).
    """

    column: str = "organization_id"
    owner_column: str | None = None


@dataclass(frozen=True)
class Hop:
    """Follow ``<current row>.<via>`` to ``<table>.id``."""

    table: str
    via: str


@dataclass(frozen=True)
class Chained:
    hops: tuple[Hop, ...]
    tenant_column: str = "organization_id"

    @property
    def depth(self) -> int:
        return len(self.hops)


@dataclass(frozen=True)
class Exempt:
    """Reference data: no owning organization."""


Derivation = Direct | Chained | Exempt


@dataclass(frozen=True)
class ProtectedEntity:
    table: str
    derivation: Derivation
    policy_suffix: str = field(default=POLICY_SUFFIX_ORGANIZATION)

    @property
    def is_exempt(self) -> bool:
        return isinstance(self.derivation, Exempt)

    @property
    def policy_names(self) -> list[str]:
        """Names of the policies ``install`` attaches to this table."""
        if self.is_exempt:
            return [
                f"{self.table}_{suffix}"
                for suffix in (
                    POLICY_SUFFIX_READ,
                    POLICY_SUFFIX_MODIFY,
                    POLICY_SUFFIX_UPDATE,
                    POLICY_SUFFIX_DELETE,
                )
            ]
        return [f"{self.table}_{self.policy_suffix}"]

    @property
    def retractable_policy_names(self) -> list[str]:
        """Every name ``reset`` drops for this table, attached or not."""
        return [f"{self.table}_{suffix}" for suffix in POLICY_SUFFIXES]


def _users_of(column: str) -> Chained:
    return Chained(hops=(Hop("users", column),))


POLICY_MODEL: tuple[ProtectedEntity, ...] = (
    ProtectedEntity("users", Direct()),
    ProtectedEntity("teams", Direct()),
    ProtectedEntity("objectives", _users_of("owner_id")),
    ProtectedEntity(
        "key_results",
        Chained(hops=(Hop("objectives", "objective_id"), Hop("users", "owner_id"))),
    ),
    ProtectedEntity("initiatives", _users_of("created_by")),
    ProtectedEntity("tasks", _users_of("created_by")),
    ProtectedEntity(
        "check_ins",
        Chained(
            hops=(
                Hop("key_results", "key_result_id"),
                Hop("objectives", "objective_id"),
                Hop("users", "owner_id"),
            )
        ),
    ),
    ProtectedEntity("initiative_members", _users_of("user_id")),
    ProtectedEntity(
        "initiative_success_metrics",
        Chained(hops=(Hop("initiatives", "initiative_id"), Hop("users", "created_by"))),
    ),
    ProtectedEntity("success_metric_updates", _users_of("created_by")),
    ProtectedEntity(
        "organizations",
        Direct(column="id", owner_column="owner_id"),
        policy_suffix=POLICY_SUFFIX_ACCESS,
    ),
    ProtectedEntity(
        "organization_subscriptions", Direct(), policy_suffix=POLICY_SUFFIX_ACCESS
    ),
    ProtectedEntity("subscription_plans", Exempt()),
)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_identifier(name: str, where: str) -> None:
    if not _IDENTIFIER.match(name):
        raise PolicyModelError(f"{where}: '{name}' is not a plain lower-case SQL identifier")
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise PolicyModelError(
            f"{where}: '{name}' exceeds {MAX_IDENTIFIER_LENGTH} characters"
        )


def validate_model(model: Iterable[ProtectedEntity]) -> None:
    """Reject malformed models before any SQL is emitted.

    Raises:
        PolicyModelError: duplicate table, empty or over-long chain, or an
            identifier that cannot be interpolated into DDL safely.
    """
    seen: set[str] = set()
    for entity in model:
        _check_identifier(entity.table, entity.table)
        if entity.table in seen:
            raise PolicyModelError(f"Table '{entity.table}' is declared more than once")
        seen.add(entity.table)

        if entity.policy_suffix not in POLICY_SUFFIXES:
            raise PolicyModelError(
                f"{entity.table}: unknown policy suffix '{entity.policy_suffix}'"
            )
        for name in entity.retractable_policy_names:
            _check_identifier(name, entity.table)

        derivation = entity.derivation
        if isinstance(derivation, Direct):
            _check_identifier(derivation.column, entity.table)
            if derivation.owner_column:
                _check_identifier(derivation.owner_column, entity.table)
        elif isinstance(derivation, Chained):
            if derivation.depth == 0:
                raise PolicyModelError(f"{entity.table}: ownership chain is empty")
            if derivation.depth > MAX_CHAIN_DEPTH:
                raise PolicyModelError(
                    f"{entity.table}: ownership chain has {derivation.depth} hops, "
                    f"at most {MAX_CHAIN_DEPTH} are allowed"
                )
            _check_identifier(derivation.tenant_column, entity.table)
            for hop in derivation.hops:
                _check_identifier(hop.table, entity.table)
                _check_identifier(hop.via, entity.table)
        elif not isinstance(derivation, Exempt):
            raise PolicyModelError(f"{entity.table}: no tenant derivation declared")


def get_entity(table: str, model: Iterable[ProtectedEntity] = POLICY_MODEL) -> ProtectedEntity:
    for entity in model:
        if entity.table == table:
            return entity
    raise PolicyModelError(f"Table '{table}' is not part of the policy model")


# ---------------------------------------------------------------------------
# SQL rendering
# ---------------------------------------------------------------------------


def function_statements() -> list[str]:
    """Tenant-derivation helpers. Unset variables read as NULL / false."""
    return [
        f"""
        CREATE OR REPLACE FUNCTION {FN_CURRENT_ORGANIZATION}()
        RETURNS UUID LANGUAGE sql STABLE SECURITY DEFINER AS $$
          SELECT NULLIF(current_setting('{SESSION_VAR_ORG_ID}', true), '')::uuid;
        $$;
        """,
        f"""
        CREATE OR REPLACE FUNCTION {FN_CURRENT_USER}()
        RETURNS UUID LANGUAGE sql STABLE SECURITY DEFINER AS $$
          SELECT NULLIF(current_setting('{SESSION_VAR_USER_ID}', true), '')::uuid;
        $$;
        """,
        f"""
        CREATE OR REPLACE FUNCTION {FN_IS_SYSTEM_OWNER}()
        RETURNS BOOLEAN LANGUAGE sql STABLE SECURITY DEFINER AS $$
          SELECT COALESCE(NULLIF(current_setting('{SESSION_VAR_SYSTEM_OWNER}', true), '')::boolean, false);
        $$;
        """,
    ]


def drop_function_statements() -> list[str]:
    return [
        f"DROP FUNCTION IF EXISTS {FN_CURRENT_ORGANIZATION}();",
        f"DROP FUNCTION IF EXISTS {FN_CURRENT_USER}();",
        f"DROP FUNCTION IF EXISTS {FN_IS_SYSTEM_OWNER}();",
    ]


def tenant_match(entity: ProtectedEntity) -> str:
    """SQL expression true when the row belongs to the current organization."""
    derivation = entity.derivation
    if isinstance(derivation, Direct):
        clause = f"{entity.table}.{derivation.column} = {FN_CURRENT_ORGANIZATION}()"
        if derivation.owner_column:
            clause = (
                f"{clause} OR {entity.table}.{derivation.owner_column} = {FN_CURRENT_USER}()"
            )
        return clause
    if isinstance(derivation, Chained):
        # Aliases t1..tn keep self-references unambiguous
        first = derivation.hops[0]
        joins = [f"FROM {first.table} t1"]
        for index, hop in enumerate(derivation.hops[1:], start=2):
            joins.append(f"JOIN {hop.table} t{index} ON t{index}.id = t{index - 1}.{hop.via}")
        last = f"t{derivation.depth}"
        return (
            f"EXISTS (SELECT 1 {' '.join(joins)} "
            f"WHERE t1.id = {entity.table}.{first.via} "
            f"AND {last}.{derivation.tenant_column} = {FN_CURRENT_ORGANIZATION}())"
        )
    raise PolicyModelError(f"{entity.table}: exempt tables have no tenant predicate")


def predicate(entity: ProtectedEntity) -> str:
    return f"{FN_IS_SYSTEM_OWNER}() OR ({tenant_match(entity)})"


def install_statements(entity: ProtectedEntity) -> list[str]:
    """Enable + force RLS and attach the table's policies."""
    table = entity.table
    statements = [
        f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;",
        f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY;",
    ]
    if entity.is_exempt:
        read, modify, update, delete = entity.policy_names
        owner_only = f"{FN_IS_SYSTEM_OWNER}()"
        statements += [
            f"CREATE POLICY {read} ON {table} FOR SELECT TO public USING (true);",
            f"CREATE POLICY {modify} ON {table} FOR INSERT TO public WITH CHECK ({owner_only});",
            f"CREATE POLICY {update} ON {table} FOR UPDATE TO public "
            f"USING ({owner_only}) WITH CHECK ({owner_only});",
            f"CREATE POLICY {delete} ON {table} FOR DELETE TO public USING ({owner_only});",
        ]
        return statements

    (name,) = entity.policy_names
    clause = predicate(entity)
    statements.append(
        f"CREATE POLICY {name} ON {table} FOR ALL TO public "
        f"USING ({clause}) WITH CHECK ({clause});"
    )
    return statements


def reset_statements(entity: ProtectedEntity) -> list[str]:
    """Retract everything ``install_statements`` could have attached."""
    table = entity.table
    statements = [
        f"DROP POLICY IF EXISTS {name} ON {table};"
        for name in entity.retractable_policy_names
    ]
    statements += [
        f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY;",
        f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY;",
    ]
    return statements


# ---------------------------------------------------------------------------
# In-memory interpretation
# ---------------------------------------------------------------------------


def derive_tenant(entity: ProtectedEntity, row: Mapping[str, Any], fetch: RowFetcher) -> Any:
    """Resolve the organization id owning ``row``, or None if the chain breaks.

    ``fetch(table, id)`` returns the referenced row or None.
    """
    derivation = entity.derivation
    if isinstance(derivation, Direct):
        return row.get(derivation.column)
    if isinstance(derivation, Chained):
        current: Mapping[str, Any] | None = row
        for hop in derivation.hops:
            ref = current.get(hop.via)
            if ref is None:
                return None
            current = fetch(hop.table, ref)
            if current is None:
                return None
        return current.get(derivation.tenant_column)
    return None


def is_visible(
    entity: ProtectedEntity,
    row: Mapping[str, Any],
    fetch: RowFetcher,
    *,
    organization_id: Any = None,
    user_id: Any = None,
    is_system_owner: bool = False,
    for_write: bool = False,
) -> bool:
    """Mirror of the SQL predicate for a single row."""
    if is_system_owner:
        return True
    if entity.is_exempt:
        return not for_write
    # NULL never equals anything, so an unset organization matches no row
    if organization_id is not None and derive_tenant(entity, row, fetch) == organization_id:
        return True
    derivation = entity.derivation
    if isinstance(derivation, Direct) and derivation.owner_column and user_id is not None:
        return row.get(derivation.owner_column) == user_id
    return False


validate_model(POLICY_MODEL)
