import pytest

from rbac.core.exceptions import (
    CycleDetectedError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from rbac.models.role import Role
from rbac.services.role_service import role_service


class TestSeededHierarchy:
    """Default roles as laid down by the seeds"""

    def test_levels_follow_the_chain(self, seeded_roles):
        assert {name: r.level for name, r in seeded_roles.items()} == {
            "guest": 0, "user": 1, "manager": 2, "admin": 3,
        }
        assert seeded_roles["admin"].parent_id == seeded_roles["manager"].id

    def test_admin_inherits_everything(self, db, seeded_roles):
        names = [p.name for p in role_service.get_effective_permissions(db, seeded_roles["admin"].id)]
        assert len(names) == 19
        assert names == sorted(names)

    def test_guest_is_minimal(self, db, seeded_roles):
        names = [p.name for p in role_service.get_effective_permissions(db, seeded_roles["guest"].id)]
        assert names == ["role.read", "user.read"]

    def test_integrity_check_is_clean(self, db):
        assert role_service.check_integrity(db) == []


class TestRoleUpdates:
    """Parent changes, cycle rejection and rollback against SQLite"""

    def test_create_under_parent(self, db, seeded_roles):
        role = role_service.create(db, "auditor", "Reads logs", parent_id=seeded_roles["manager"].id)
        assert role.level == 3

    def test_create_with_unknown_parent(self, db):
        with pytest.raises(ResourceNotFoundError):
            role_service.create(db, "lost", "No parent", parent_id=999)

    def test_create_with_unknown_permission(self, db):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            role_service.create(db, "broken", "Bad perms", permission_ids=[1, 998, 999])
        assert "998, 999" in exc_info.value.message

    def test_duplicate_name(self, db):
        with pytest.raises(ResourceConflictError):
            role_service.create(db, "guest", "Again")

    def test_reparent_propagates_in_one_transaction(self, db, seeded_roles):
        top = role_service.create(db, "top", "Top")
        mid = role_service.create(db, "mid", "Mid", parent_id=top.id)
        leaf = role_service.create(db, "leaf", "Leaf", parent_id=mid.id)

        _, relevelled = role_service.update(db, mid.id, {"parent_id": seeded_roles["user"].id})

        assert relevelled == [mid.id, leaf.id]
        db.expire_all()
        assert db.get(Role, mid.id).level == 2
        assert db.get(Role, leaf.id).level == 3
        assert role_service.check_integrity(db) == []

    def test_cycle_is_rejected_and_rolled_back(self, db, seeded_roles):
        guest, admin = seeded_roles["guest"], seeded_roles["admin"]
        with pytest.raises(CycleDetectedError):
            role_service.update(db, guest.id, {"name": "visitor", "parent_id": admin.id})

        db.expire_all()
        guest = db.get(Role, guest.id)
        assert guest.parent_id is None
        assert guest.name == "guest"

    def test_make_root(self, db, seeded_roles):
        role, relevelled = role_service.update(db, seeded_roles["manager"].id, {"parent_id": None})
        assert role.level == 0
        assert relevelled == [seeded_roles["manager"].id, seeded_roles["admin"].id]
        assert db.get(Role, seeded_roles["admin"].id).level == 1

    def test_check_integrity_reports_bad_level(self, db, seeded_roles):
        admin = seeded_roles["admin"]
        admin.level = 7
        db.commit()

        problems = role_service.check_integrity(db)
        assert len(problems) == 1
        assert "expected 3" in problems[0]

    def test_check_integrity_reports_cycle(self, db, seeded_roles):
        # bypass the service to plant a corrupted parent link
        seeded_roles["guest"].parent_id = seeded_roles["admin"].id
        db.commit()

        problems = role_service.check_integrity(db)
        assert problems
        assert all("cycle" in p for p in problems)

    def test_check_integrity_reports_missing_parent_at_top(self, db, seeded_roles):
        # sqlite does not enforce the foreign key, so the parent row can be absent
        guest = seeded_roles["guest"]
        guest.parent_id = 999
        db.commit()

        problems = role_service.check_integrity(db)
        assert problems == [f"guest (id {guest.id}): parent role 999 is missing"]
        assert not any("cycle" in p for p in problems)
