"""Unit tests for the static policy model, its SQL rendering and in-memory predicate."""

import uuid

import pytest

from okrguard.exceptions import PolicyModelError
from okrguard.modules.tenancy.constants import POLICY_SUFFIXES
from okrguard.modules.tenancy.policy import (
    POLICY_MODEL,
    Chained,
    Direct,
    Exempt,
    Hop,
    ProtectedEntity,
    derive_tenant,
    get_entity,
    install_statements,
    is_visible,
    predicate,
    reset_statements,
    validate_model,
)

ACME = uuid.uuid4()
GLOBEX = uuid.uuid4()
ALICE = uuid.uuid4()
BOB = uuid.uuid4()


def _make_world():
    """Two organizations, one user each, and an objective / key result / check-in per user."""
    rows = {
        "users": {
            ALICE: {"id": ALICE, "organization_id": ACME},
            BOB: {"id": BOB, "organization_id": GLOBEX},
        },
        "objectives": {},
        "key_results": {},
    }
    for owner in (ALICE, BOB):
        objective_id = uuid.uuid4()
        key_result_id = uuid.uuid4()
        rows["objectives"][objective_id] = {"id": objective_id, "owner_id": owner}
        rows["key_results"][key_result_id] = {"id": key_result_id, "objective_id": objective_id}
    return rows


def _fetcher(rows):
    def fetch(table, row_id):
        return rows.get(table, {}).get(row_id)

    return fetch


def _objective_of(rows, owner):
    return next(row for row in rows["objectives"].values() if row["owner_id"] == owner)


# ---------------------------------------------------------------------------
# Model shape
# ---------------------------------------------------------------------------


class TestPolicyModel:
    def test_covers_all_thirteen_tables(self):
        tables = {entity.table for entity in POLICY_MODEL}
        assert tables == {
            "users",
            "teams",
            "objectives",
            "key_results",
            "initiatives",
            "tasks",
            "check_ins",
            "initiative_members",
            "initiative_success_metrics",
            "success_metric_updates",
            "organizations",
            "organization_subscriptions",
            "subscription_plans",
        }

    def test_check_ins_chain_reaches_users_in_three_hops(self):
        entity = get_entity("check_ins")
        assert isinstance(entity.derivation, Chained)
        assert [hop.table for hop in entity.derivation.hops] == [
            "key_results",
            "objectives",
            "users",
        ]

    def test_subscription_plans_are_exempt(self):
        assert get_entity("subscription_plans").is_exempt

    def test_organizations_use_access_policy_name(self):
        assert get_entity("organizations").policy_names == ["organizations_access_policy"]

    def test_unknown_table_raises(self):
        with pytest.raises(PolicyModelError):
            get_entity("invoices")


class TestValidation:
    def test_duplicate_table_rejected(self):
        model = (ProtectedEntity("teams", Direct()), ProtectedEntity("teams", Direct()))
        with pytest.raises(PolicyModelError, match="more than once"):
            validate_model(model)

    def test_chain_longer_than_three_hops_rejected(self):
        chain = Chained(hops=tuple(Hop(f"t{i}", f"t{i}_id") for i in range(4)))
        with pytest.raises(PolicyModelError, match="at most 3"):
            validate_model((ProtectedEntity("deep", chain),))

    def test_empty_chain_rejected(self):
        with pytest.raises(PolicyModelError, match="empty"):
            validate_model((ProtectedEntity("orphans", Chained(hops=())),))

    def test_missing_derivation_rejected(self):
        with pytest.raises(PolicyModelError, match="no tenant derivation"):
            validate_model((ProtectedEntity("mystery", None),))

    def test_unsafe_identifier_rejected(self):
        with pytest.raises(PolicyModelError):
            validate_model((ProtectedEntity("teams; DROP TABLE users", Direct()),))


# ---------------------------------------------------------------------------
# SQL rendering
# ---------------------------------------------------------------------------


class TestRendering:
    def test_direct_policy_uses_same_predicate_for_read_and_write(self):
        statements = install_statements(get_entity("teams"))
        clause = predicate(get_entity("teams"))

        assert statements[0] == "ALTER TABLE teams ENABLE ROW LEVEL SECURITY;"
        assert statements[1] == "ALTER TABLE teams FORCE ROW LEVEL SECURITY;"
        assert statements[2] == (
            f"CREATE POLICY teams_organization_policy ON teams FOR ALL TO public "
            f"USING ({clause}) WITH CHECK ({clause});"
        )

    def test_predicate_starts_with_system_owner_bypass(self):
        assert predicate(get_entity("objectives")).startswith("is_system_owner() OR (")

    def test_chained_predicate_joins_up_to_users(self):
        clause = predicate(get_entity("check_ins"))

        assert "FROM key_results t1" in clause
        assert "JOIN objectives t2 ON t2.id = t1.objective_id" in clause
        assert "JOIN users t3 ON t3.id = t2.owner_id" in clause
        assert "WHERE t1.id = check_ins.key_result_id" in clause
        assert "t3.organization_id = get_current_organization_id()" in clause

    def test_organizations_visible_to_owner(self):
        clause = predicate(get_entity("organizations"))
        assert "organizations.id = get_current_organization_id()" in clause
        assert "organizations.owner_id = get_current_user_id()" in clause

    def test_exempt_table_is_readable_by_anyone(self):
        statements = install_statements(get_entity("subscription_plans"))

        assert (
            "CREATE POLICY subscription_plans_read_policy ON subscription_plans "
            "FOR SELECT TO public USING (true);"
        ) in statements
        assert any("FOR INSERT" in s and "WITH CHECK (is_system_owner())" in s for s in statements)

    def test_reset_drops_every_known_suffix(self):
        statements = reset_statements(get_entity("tasks"))

        for suffix in POLICY_SUFFIXES:
            assert f"DROP POLICY IF EXISTS tasks_{suffix} ON tasks;" in statements
        assert statements[-2:] == [
            "ALTER TABLE tasks NO FORCE ROW LEVEL SECURITY;",
            "ALTER TABLE tasks DISABLE ROW LEVEL SECURITY;",
        ]

    def test_reset_never_queries_the_catalog(self):
        for entity in POLICY_MODEL:
            assert not any("pg_policies" in s for s in reset_statements(entity))


# ---------------------------------------------------------------------------
# In-memory predicate
# ---------------------------------------------------------------------------


class TestIsolation:
    def test_each_organization_sees_only_its_objectives(self):
        rows = _make_world()
        entity = get_entity("objectives")
        fetch = _fetcher(rows)

        visible_to_acme = [
            row for row in rows["objectives"].values()
            if is_visible(entity, row, fetch, organization_id=ACME, user_id=ALICE)
        ]

        assert visible_to_acme == [_objective_of(rows, ALICE)]

    def test_key_result_tenant_derived_through_chain(self):
        rows = _make_world()
        entity = get_entity("key_results")
        bobs_objective = _objective_of(rows, BOB)
        key_result = next(
            row for row in rows["key_results"].values()
            if row["objective_id"] == bobs_objective["id"]
        )

        assert derive_tenant(entity, key_result, _fetcher(rows)) == GLOBEX
        assert not is_visible(entity, key_result, _fetcher(rows), organization_id=ACME)

    def test_system_owner_sees_every_organization(self):
        rows = _make_world()
        entity = get_entity("objectives")

        visible = [
            row for row in rows["objectives"].values()
            if is_visible(entity, row, _fetcher(rows), user_id=ALICE, is_system_owner=True)
        ]

        assert len(visible) == 2

    def test_no_context_sees_nothing(self):
        rows = _make_world()
        for table in ("objectives", "key_results"):
            entity = get_entity(table)
            assert not any(
                is_visible(entity, row, _fetcher(rows)) for row in rows[table].values()
            )

    def test_broken_chain_matches_no_organization(self):
        entity = get_entity("key_results")
        orphan = {"id": uuid.uuid4(), "objective_id": uuid.uuid4()}

        assert derive_tenant(entity, orphan, _fetcher({})) is None
        assert not is_visible(entity, orphan, _fetcher({}), organization_id=ACME)

    def test_write_into_other_organization_rejected(self):
        entity = get_entity("teams")
        row = {"id": uuid.uuid4(), "organization_id": GLOBEX}

        assert not is_visible(entity, row, _fetcher({}), organization_id=ACME, for_write=True)

    def test_exempt_rows_readable_but_not_writable(self):
        entity = get_entity("subscription_plans")
        plan = {"id": uuid.uuid4(), "slug": "pro"}

        assert is_visible(entity, plan, _fetcher({}))
        assert not is_visible(entity, plan, _fetcher({}), organization_id=ACME, for_write=True)
        assert is_visible(entity, plan, _fetcher({}), is_system_owner=True, for_write=True)

    def test_organization_owner_sees_their_organization(self):
        entity = get_entity("organizations")
        organization = {"id": GLOBEX, "owner_id": ALICE}

        assert is_visible(entity, organization, _fetcher({}), organization_id=ACME, user_id=ALICE)
        assert not is_visible(entity, organization, _fetcher({}), organization_id=ACME, user_id=BOB)


def test_exempt_has_no_tenant():
    assert derive_tenant(ProtectedEntity("plans", Exempt()), {"id": 1}, _fetcher({})) is None
