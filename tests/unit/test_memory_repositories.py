"""Tests for the in-memory repository implementations."""

from uuid import uuid4

import pytest

from tenantdesk.domain.hierarchy import HierarchyError
from tenantdesk.repositories.interfaces import RepositoryContainer
from tenantdesk.repositories.memory_impl import (
    MemoryAccountRepository,
    MemoryAppDefinitionRepository,
    MemoryMembershipRepository,
    MemoryNavOverrideRepository,
)


@pytest.fixture
def repos():
    return RepositoryContainer(
        account_repo=MemoryAccountRepository(),
        membership_repo=MemoryMembershipRepository(),
        app_repo=MemoryAppDefinitionRepository(),
        nav_override_repo=MemoryNavOverrideRepository(),
    )


@pytest.mark.unit
class TestMemoryAccountRepository:
    async def test_create_builds_closure_rows(self, repos):
        root = await repos.account.create("Root")
        child = await repos.account.create("Child", parent_account_id=root.id)
        grandchild = await repos.account.create("Grandchild", parent_account_id=child.id)

        assert await repos.account.is_descendant(root.id, grandchild.id)
        assert not await repos.account.is_descendant(grandchild.id, root.id)
        ancestors = await repos.account.get_ancestors(grandchild.id)
        assert [a.display_name for a in ancestors] == ["Child", "Root"]

    async def test_children_sorted_by_name(self, repos):
        root = await repos.account.create("Root")
        await repos.account.create("Zulu", parent_account_id=root.id)
        await repos.account.create("Alpha", parent_account_id=root.id)

        children = await repos.account.get_children(root.id)
        assert [c.display_name for c in children] == ["Alpha", "Zulu"]

    async def test_subtree_includes_self(self, repos):
        root = await repos.account.create("Root")
        child = await repos.account.create("Child", parent_account_id=root.id)
        other = await repos.account.create("Other")

        subtree = {a.id for a in await repos.account.get_subtree(root.id)}
        assert subtree == {root.id, child.id}
        assert other.id not in subtree

    async def test_move_rewrites_paths(self, repos):
        root = await repos.account.create("Root")
        a = await repos.account.create("A", parent_account_id=root.id)
        b = await repos.account.create("B", parent_account_id=root.id)
        a1 = await repos.account.create("A1", parent_account_id=a.id)

        moved = await repos.account.move(a.id, b.id)

        assert moved.parent_account_id == b.id
        assert await repos.account.is_descendant(b.id, a1.id)
        assert await repos.account.is_descendant(root.id, a1.id)
        ancestors = await repos.account.get_ancestors(a1.id)
        assert [x.display_name for x in ancestors] == ["A", "B", "Root"]

    async def test_move_under_descendant_fails(self, repos):
        root = await repos.account.create("Root")
        child = await repos.account.create("Child", parent_account_id=root.id)
        with pytest.raises(HierarchyError):
            await repos.account.move(root.id, child.id)

    async def test_list_filters_inactive(self, repos):
        active = await repos.account.create("Active")
        archived = await repos.account.create("Archived")
        archived.is_active = False

        assert [a.id for a in await repos.account.list_all()] == [active.id]
        assert len(await repos.account.list_all(include_inactive=True)) == 2
        assert await repos.account.list_by_ids([archived.id]) == []


@pytest.mark.unit
class TestMemoryMembershipRepository:
    async def test_create_and_lookup(self, repos):
        person_id, account_id = uuid4(), uuid4()
        membership = await repos.membership.create(person_id, account_id, account_role="admin")

        assert await repos.membership.get_active(person_id, account_id) is membership
        assert await repos.membership.get_by_id(membership.id) is membership
        assert [m.id for m in await repos.membership.list_active_for_person(person_id)] == [
            membership.id
        ]

    async def test_duplicate_membership_rejected(self, repos):
        person_id, account_id = uuid4(), uuid4()
        await repos.membership.create(person_id, account_id)
        with pytest.raises(ValueError):
            await repos.membership.create(person_id, account_id)

    async def test_inactive_membership_is_not_active(self, repos):
        person_id, account_id = uuid4(), uuid4()
        await repos.membership.create(person_id, account_id, status="inactive")

        assert await repos.membership.get_active(person_id, account_id) is None
        assert await repos.membership.list_for_account(account_id) == []
        assert len(await repos.membership.list_for_account(account_id, include_inactive=True)) == 1


@pytest.mark.unit
class TestMemoryNavigationRepositories:
    async def test_apps_ordered_by_name(self, repos):
        account_id = uuid4()
        await repos.app.create(account_id, slug="zeta", name="Zeta")
        await repos.app.create(account_id, slug="alpha", name="Alpha")
        await repos.app.create(account_id, slug="off", name="Off", is_active=False)

        apps = await repos.app.list_for_account(account_id)
        assert [a.slug for a in apps] == ["alpha", "zeta"]
        assert len(await repos.app.list_for_account(account_id, include_inactive=True)) == 3
        assert (await repos.app.get_by_slug(account_id, "zeta")).name == "Zeta"
        assert await repos.app.get_by_slug(uuid4(), "zeta") is None

    async def test_duplicate_slug_rejected(self, repos):
        account_id = uuid4()
        await repos.app.create(account_id, slug="crm", name="CRM")
        with pytest.raises(ValueError):
            await repos.app.create(account_id, slug="crm", name="Other")

    async def test_override_upsert_is_unique_per_key(self, repos):
        account_id = uuid4()
        first = await repos.nav_override.upsert(account_id, "crm.deals", label="Deals")
        second = await repos.nav_override.upsert(account_id, "crm.deals", hidden=True)

        assert first.id == second.id
        assert second.label == "Deals"
        assert second.hidden is True
        assert len(await repos.nav_override.list_for_account(account_id)) == 1

        await repos.nav_override.delete(second)
        assert await repos.nav_override.get_by_id(account_id, second.id) is None
