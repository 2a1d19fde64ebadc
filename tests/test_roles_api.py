from fastapi import status

from rbac.models.permission import Permission


def _permission_id(db, name):
    return db.query(Permission).filter(Permission.name == name).one().id


class TestRolesApi:
    """Test role endpoints"""

    def test_list_roles(self, client, auth_headers):
        response = client.get("/api/roles/", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK
        assert [r["name"] for r in response.json()] == ["guest", "user", "manager", "admin"]

    def test_create_role_derives_level(self, client, db, auth_headers, seeded_roles):
        body = {
            "name": "auditor",
            "description": "Reads the activity log",
            "parent_id": seeded_roles["user"].id,
            "permission_ids": [_permission_id(db, "system.metrics")],
        }
        response = client.post("/api/roles/", json=body, headers=auth_headers)
        assert response.status_code == status.HTTP_201_CREATED

        data = response.json()
        assert data["level"] == 2
        assert data["parent"]["name"] == "user"
        assert [p["name"] for p in data["permissions"]] == ["system.metrics"]
        assert data["creator"]["email"] == "admin@rbac.local"

    def test_create_role_blank_name(self, client, auth_headers):
        response = client.post(
            "/api/roles/", json={"name": "   ", "description": "x"}, headers=auth_headers,
        )
        assert response.status_code == 422

    def test_create_role_unknown_parent(self, client, auth_headers):
        response = client.post(
            "/api/roles/", json={"name": "x", "description": "x", "parent_id": 999},
            headers=auth_headers,
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_create_role_duplicate(self, client, auth_headers):
        response = client.post(
            "/api/roles/", json={"name": "guest", "description": "x"}, headers=auth_headers,
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_reparent_reports_relevelled_roles(self, client, auth_headers, seeded_roles):
        created = client.post(
            "/api/roles/",
            json={"name": "team-lead", "description": "Leads a team", "parent_id": seeded_roles["manager"].id},
            headers=auth_headers,
        ).json()
        assert created["level"] == 3

        response = client.patch(
            f"/api/roles/{created['id']}", json={"parent_id": None}, headers=auth_headers,
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["role"]["level"] == 0
        assert data["role"]["parent_id"] is None
        assert data["relevelled_role_ids"] == [created["id"]]

    def test_cycle_rejected(self, client, auth_headers, seeded_roles):
        response = client.patch(
            f"/api/roles/{seeded_roles['guest'].id}",
            json={"parent_id": seeded_roles["admin"].id},
            headers=auth_headers,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Circular dependency" in response.json()["detail"]

        roles = client.get("/api/roles/", headers=auth_headers).json()
        guest = next(r for r in roles if r["name"] == "guest")
        assert guest["parent_id"] is None
        assert guest["level"] == 0

    def test_self_parent_rejected(self, client, auth_headers, seeded_roles):
        role_id = seeded_roles["user"].id
        response = client.patch(
            f"/api/roles/{role_id}", json={"parent_id": role_id}, headers=auth_headers,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_update_description_leaves_hierarchy(self, client, auth_headers, seeded_roles):
        response = client.patch(
            f"/api/roles/{seeded_roles['manager'].id}",
            json={"description": "Team manager"},
            headers=auth_headers,
        )
        data = response.json()
        assert data["role"]["description"] == "Team manager"
        assert data["role"]["parent_id"] == seeded_roles["user"].id
        assert data["relevelled_role_ids"] == []

    def test_delete_role_with_users(self, client, auth_headers, seeded_roles):
        response = client.delete(f"/api/roles/{seeded_roles['admin'].id}", headers=auth_headers)
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"] == "Cannot delete role that is assigned to users"

    def test_delete_role_with_children(self, client, auth_headers, seeded_roles):
        response = client.delete(f"/api/roles/{seeded_roles['user'].id}", headers=auth_headers)
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"] == "Cannot delete role that has child roles"

    def test_delete_leaf_role(self, client, auth_headers, seeded_roles):
        created = client.post(
            "/api/roles/",
            json={"name": "temp", "description": "Temporary", "parent_id": seeded_roles["guest"].id},
            headers=auth_headers,
        ).json()
        response = client.delete(f"/api/roles/{created['id']}", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK
        assert client.get(f"/api/roles/{created['id']}", headers=auth_headers).status_code == 404

    def test_clone_copies_parent_and_permissions(self, client, auth_headers, seeded_roles):
        response = client.post(
            f"/api/roles/{seeded_roles['manager'].id}/clone",
            json={"name": "manager-eu", "description": "EU managers"},
            headers=auth_headers,
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["parent_id"] == seeded_roles["user"].id
        assert data["level"] == 2
        assert {p["name"] for p in data["permissions"]} == {
            "user.create", "user.update", "permission.read", "system.metrics",
        }

    def test_hierarchy(self, client, auth_headers):
        response = client.get("/api/roles/hierarchy", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK

        forest = response.json()
        assert len(forest) == 1
        names = []
        node = forest[0]
        while node:
            names.append(node["name"])
            assert len(node["children"]) <= 1
            node = node["children"][0] if node["children"] else None
        assert names == ["guest", "user", "manager", "admin"]

    def test_effective_permissions(self, client, auth_headers, seeded_roles):
        response = client.get(
            f"/api/roles/{seeded_roles['user'].id}/effective-permissions", headers=auth_headers,
        )
        assert [p["name"] for p in response.json()] == [
            "activity.read", "role.read", "session.read", "user.read",
        ]

    def test_has_permission(self, client, db, auth_headers, seeded_roles):
        user_read = _permission_id(db, "user.read")
        user_delete = _permission_id(db, "user.delete")

        granted = client.get(
            f"/api/roles/{seeded_roles['admin'].id}/permissions/{user_read}", headers=auth_headers,
        ).json()
        denied = client.get(
            f"/api/roles/{seeded_roles['guest'].id}/permissions/{user_delete}", headers=auth_headers,
        ).json()
        assert granted["granted"] is True
        assert denied["granted"] is False


class TestRoleAuthorization:
    """Inherited permissions authorize requests"""

    def test_guest_can_read_roles(self, client, make_user):
        _, headers = make_user("guest")
        assert client.get("/api/roles/", headers=headers).status_code == status.HTTP_200_OK

    def test_guest_cannot_create_roles(self, client, make_user):
        _, headers = make_user("guest")
        response = client.post(
            "/api/roles/", json={"name": "x", "description": "x"}, headers=headers,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "role.create" in response.json()["detail"]

    def test_manager_inherits_user_read(self, client, make_user):
        _, headers = make_user("manager")
        assert client.get("/api/users/", headers=headers).status_code == status.HTTP_200_OK

    def test_unauthenticated(self, client):
        response = client.get("/api/roles/")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["www-authenticate"] == "Bearer"
