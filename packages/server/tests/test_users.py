"""
Integration tests for the current-user endpoints.

Tests cover:
- Profile read and update
- Preferences deep merge
- The caller's workspaces with their role
- User search and task stats
- Recent tasks and comments for the caller
"""

from __future__ import annotations


class TestProfile:
    async def test_get_profile(self, client, alice):
        resp = await client.get("/api/v1/users/profile", headers=alice.headers)
        assert resp.status_code == 200
        profile = resp.json()["data"]
        assert profile["name"] == "Alice"
        assert profile["preferences"]["theme"] == "light"
        assert profile["preferences"]["timezone"] == "UTC"

    async def test_update_profile(self, client, alice):
        resp = await client.put(
            "/api/v1/users/profile",
            json={"name": "  Alice Liddell ", "avatar": "https://img.example.com/a.png"},
            headers=alice.headers,
        )
        assert resp.status_code == 200
        profile = resp.json()["data"]
        assert profile["name"] == "Alice Liddell"
        assert profile["avatar"] == "https://img.example.com/a.png"

    async def test_bad_avatar_rejected(self, client, alice):
        resp = await client.put(
            "/api/v1/users/profile", json={"avatar": "javascript:alert(1)"}, headers=alice.headers
        )
        assert resp.status_code == 400

    async def test_preferences_are_merged(self, client, alice):
        resp = await client.put(
            "/api/v1/users/preferences",
            json={"notifications": {"email": False}},
            headers=alice.headers,
        )
        assert resp.status_code == 200
        prefs = resp.json()["data"]["preferences"]
        assert prefs["notifications"] == {
            "email": False,
            "push": True,
            "task_updates": True,
            "mentions": True,
        }
        assert prefs["theme"] == "light"

        resp = await client.put(
            "/api/v1/users/preferences", json={"theme": "dark"}, headers=alice.headers
        )
        prefs = resp.json()["data"]["preferences"]
        assert prefs["theme"] == "dark"
        assert prefs["notifications"]["email"] is False


class TestUserWorkspaces:
    async def test_lists_role_per_workspace(self, client, alice, bob, create_workspace, add_member):
        own = await create_workspace(bob, "Bob's")
        shared = await create_workspace(alice, "Alice's")
        await add_member(alice, shared["id"], bob, "viewer")

        resp = await client.get("/api/v1/users/workspaces", headers=bob.headers)
        assert resp.status_code == 200
        roles = {w["id"]: w["role"] for w in resp.json()["data"]}
        assert roles == {own["id"]: "owner", shared["id"]: "viewer"}


class TestSearchAndStats:
    async def test_search_excludes_self(self, client, alice, bob, register):
        await register("Alfred", "alfred@example.com")

        resp = await client.get("/api/v1/users/search", params={"query": "al"}, headers=alice.headers)
        assert [u["name"] for u in resp.json()["data"]] == ["Alfred"]

        resp = await client.get(
            "/api/v1/users/search", params={"query": "EXAMPLE.COM"}, headers=alice.headers
        )
        assert sorted(u["name"] for u in resp.json()["data"]) == ["Alfred", "Bob"]

    async def test_search_needs_two_characters(self, client, alice):
        resp = await client.get("/api/v1/users/search", params={"query": "a"}, headers=alice.headers)
        assert resp.status_code == 400

    async def test_stats(self, client, alice, bob, workspace, add_member, create_task):
        await add_member(alice, workspace["id"], bob)
        await create_task(alice, workspace["id"], "Done", assignee_id=str(bob.id), status="done")
        await create_task(alice, workspace["id"], "Open", assignee_id=str(bob.id))
        await create_task(
            alice, workspace["id"], "Late", assignee_id=str(bob.id), due_date="2020-01-01T00:00:00Z"
        )

        resp = await client.get("/api/v1/users/stats", headers=bob.headers)
        stats = resp.json()["data"]
        assert stats["total_assigned"] == 3
        assert stats["completed_assigned"] == 1
        assert stats["overdue_assigned"] == 1
        assert stats["assigned_completion_rate"] == 33
        assert stats["total_created"] == 0
        assert stats["workspaces_count"] == 1

        resp = await client.get("/api/v1/users/stats", headers=alice.headers)
        stats = resp.json()["data"]
        assert stats["total_created"] == 3
        assert stats["created_completion_rate"] == 33


class TestRecentActivity:
    async def test_recent_tasks_and_own_comments(self, client, alice, bob, workspace, add_member, create_task):
        ws = workspace["id"]
        await add_member(alice, ws, bob)
        mine = await create_task(alice, ws, "For Bob", assignee_id=str(bob.id))
        other = await create_task(alice, ws, "Alice only")
        archived = await create_task(alice, ws, "Old", assignee_id=str(bob.id))
        await client.delete(f"/api/v1/tasks/{archived['id']}", headers=alice.headers)

        for content in ("first", "second"):
            resp = await client.post(
                f"/api/v1/tasks/{other['id']}/comments", json={"content": content}, headers=bob.headers
            )
            assert resp.status_code == 201
        await client.post(
            f"/api/v1/tasks/{mine['id']}/comments", json={"content": "from alice"}, headers=alice.headers
        )

        resp = await client.get("/api/v1/users/activity", headers=bob.headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [t["id"] for t in data["recent_tasks"]] == [mine["id"]]
        assert [c["comment"]["content"] for c in data["recent_comments"]] == ["second", "first"]
        assert data["recent_comments"][0]["task_title"] == "Alice only"
        assert data["recent_comments"][0]["workspace_id"] == ws

        resp = await client.get("/api/v1/users/activity", params={"limit": 1}, headers=bob.headers)
        assert len(resp.json()["data"]["recent_comments"]) == 1

    async def test_empty_for_new_user(self, client, bob):
        resp = await client.get("/api/v1/users/activity", headers=bob.headers)
        assert resp.json()["data"] == {"recent_tasks": [], "recent_comments": []}
