"""Applies the policy model to the live schema.

Runs on a dedicated single-connection engine, never on the request pool.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from okrguard.database.engine import create_installer_engine
from okrguard.exceptions import PolicyInstallError
from okrguard.modules.tenancy.policy import (
    POLICY_MODEL,
    ProtectedEntity,
    drop_function_statements,
    function_statements,
    install_statements,
    reset_statements,
    validate_model,
)

logger = logging.getLogger(__name__)

FUNCTIONS_KEY = "<functions>"

_EXISTING_POLICIES = text(
    "SELECT tablename, policyname FROM pg_policies "
    "WHERE schemaname = current_schema() AND tablename IN :tables"
).bindparams(bindparam("tables", expanding=True))

_RLS_FLAGS = text(
    "SELECT c.relname, c.relrowsecurity, c.relforcerowsecurity "
    "FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace "
    "WHERE n.nspname = current_schema() AND c.relname IN :tables"
).bindparams(bindparam("tables", expanding=True))


@dataclass
class ResetReport:
    reset_tables: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class PolicyStatus:
    missing_policies: list[str] = field(default_factory=list)
    tables_without_rls: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.missing_policies and not self.tables_without_rls


class PolicyInstaller:
    """Installs, retracts and verifies row-level security policies.

    ``install`` always retracts first, so it can be repeated. If any table
    cannot be retracted, nothing changes.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        model: Iterable[ProtectedEntity] = POLICY_MODEL,
    ) -> None:
        self._engine = engine
        self._model = tuple(model)
        validate_model(self._model)

    @property
    def model(self) -> tuple[ProtectedEntity, ...]:
        return self._model

    async def _retract(self, conn: AsyncConnection, begin) -> ResetReport:
        """Drop policies and helpers, one ``begin()`` block per table."""
        report = ResetReport()
        for entity in self._model:
            try:
                async with begin():
                    for statement in reset_statements(entity):
                        await conn.execute(text(statement))
            except SQLAlchemyError as exc:
                logger.warning("Could not reset RLS for table %s: %s", entity.table, exc)
                report.failures[entity.table] = str(exc)
                continue
            report.reset_tables.append(entity.table)
            logger.debug("Disabled RLS on %s", entity.table)

        try:
            async with begin():
                for statement in drop_function_statements():
                    await conn.execute(text(statement))
        except SQLAlchemyError as exc:
            logger.warning("Could not drop tenant helper functions: %s", exc)
            report.failures[FUNCTIONS_KEY] = str(exc)
        return report

    async def reset(self) -> ResetReport:
        """Drop every policy this layer may have attached and disable RLS.

        Each table is reset in its own transaction. Failures are logged and
        recorded; the remaining tables are still attempted.
        """
        logger.info("Cleaning up existing RLS policies on %d tables", len(self._model))
        async with self._engine.connect() as conn:
            report = await self._retract(conn, conn.begin)

        if report.ok:
            logger.info("RLS cleanup completed")
        else:
            logger.warning("RLS cleanup incomplete for: %s", ", ".join(sorted(report.failures)))
        return report

    async def install(self) -> None:
        """Replace every policy in a single transaction.

        The old policies are retracted inside the same transaction, one
        savepoint per table, so concurrent readers always see either the old
        policies or the new ones.

        Raises:
            PolicyInstallError: any table could not be reset, or any statement
                failed. The transaction is rolled back and the previous
                policies stay in force.
        """
        logger.info("Installing row level security policies")
        try:
            async with self._engine.connect() as conn:
                async with conn.begin():
                    report = await self._retract(conn, conn.begin_nested)
                    if not report.ok:
                        raise PolicyInstallError(
                            "Refusing to install policies after a partial reset: "
                            + ", ".join(sorted(report.failures))
                        )
                    for statement in function_statements():
                        await conn.execute(text(statement))
                    for entity in self._model:
                        for statement in install_statements(entity):
                            await conn.execute(text(statement))
                        logger.debug("Attached %s", ", ".join(entity.policy_names))
        except SQLAlchemyError as exc:
            logger.error("RLS setup failed: %s", exc)
            raise PolicyInstallError(f"Failed to install row level security: {exc}") from exc

        logger.info("Row level security active on %d tables", len(self._model))

    async def verify(self) -> PolicyStatus:
        """Compare the live catalog with the policies the model expects."""
        tables = [entity.table for entity in self._model]
        async with self._engine.connect() as conn:
            policies = await conn.execute(_EXISTING_POLICIES, {"tables": tables})
            existing = {(row[0], row[1]) for row in policies}
            flags = await conn.execute(_RLS_FLAGS, {"tables": tables})
            enforced = {row[0] for row in flags if row[1] and row[2]}

        status = PolicyStatus()
        for entity in self._model:
            for name in entity.policy_names:
                if (entity.table, name) not in existing:
                    status.missing_policies.append(name)
            if entity.table not in enforced:
                status.tables_without_rls.append(entity.table)
        return status


async def install_policies() -> None:
    installer_engine = create_installer_engine()
    try:
        await PolicyInstaller(installer_engine).install()
    finally:
        await installer_engine.dispose()


async def reset_policies() -> ResetReport:
    installer_engine = create_installer_engine()
    try:
        return await PolicyInstaller(installer_engine).reset()
    finally:
        await installer_engine.dispose()


async def verify_policies() -> PolicyStatus:
    installer_engine = create_installer_engine()
    try:
        return await PolicyInstaller(installer_engine).verify()
    finally:
        await installer_engine.dispose()
