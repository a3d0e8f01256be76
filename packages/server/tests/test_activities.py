"""
Tests for the activity trail.

Tests cover:
- Default messages per activity type and the fallback
- Read receipts and mentions (once per user)
- Entity resolution, including failures that must not break the feed
- Workspace feed, the caller's feed and activity stats
"""

from __future__ import annotations

import uuid

import pytest
from structlog.testing import capture_logs

from app.models.activity import Activity
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace
from app.services import activities as activity_service
from taskflow_shared.schemas.activities import ActivityMetadata, CommentRef, TaskRef
from taskflow_shared.schemas.common import ActivityType


# ---------------------------------------------------------------------------
# Unit tests: messages and receipts
# ---------------------------------------------------------------------------

class TestDefaultMessages:
    @pytest.mark.parametrize(
        "activity_type,message",
        [
            (ActivityType.TASK_CREATED, "created a new task"),
            (ActivityType.TASK_COMPLETED, "completed a task"),
            (ActivityType.COMMENT_ADDED, "added a comment"),
            (ActivityType.MEMBER_ROLE_CHANGED, "changed member role"),
            (ActivityType.GOAL_COMPLETED, "completed a goal"),
            (ActivityType.WORKSPACE_UPDATED, "updated workspace settings"),
        ],
    )
    def test_known_types(self, activity_type, message):
        assert activity_service.default_message(activity_type) == message

    def test_every_type_has_a_message(self):
        assert all(t.value in activity_service.MESSAGES for t in ActivityType)

    def test_unknown_type_falls_back(self):
        assert activity_service.default_message("project_archived") == "performed an action"


class TestReceipts:
    def _activity(self) -> Activity:
        return Activity(
            workspace_id=uuid.uuid4(), user_id=uuid.uuid4(), type="task_created", message="x"
        )

    def test_mark_read_once_per_user(self):
        activity = self._activity()
        user = uuid.uuid4()
        assert activity.mark_read(user) is True
        assert activity.mark_read(user) is False
        assert [r["user"] for r in activity.read_by] == [str(user)]

    def test_mention_once_per_user(self):
        activity = self._activity()
        user = uuid.uuid4()
        assert activity.add_mention(user) is True
        assert activity.add_mention(user) is False
        assert activity.mentions == [{"user": str(user), "notified": False}]


# ---------------------------------------------------------------------------
# Service tests: recording and entity resolution
# ---------------------------------------------------------------------------

class TestRecordAndResolve:
    @pytest.fixture
    async def world(self, session):
        user = User(name="Alice", email="alice@example.com", password_hash="x")
        workspace = Workspace(name="WS", owner_id=user.id)
        task = Task(workspace_id=workspace.id, title="Draft", reporter_id=user.id)
        session.add_all([user, workspace, task])
        await session.flush()
        return user, workspace, task

    async def test_record_uses_default_message(self, session, world):
        user, workspace, task = world
        activity = await activity_service.record(
            session, ActivityType.TASK_CREATED, workspace.id, user.id, entity=TaskRef(id=task.id)
        )
        assert activity.message == "created a new task"
        assert activity.entity == {"type": "task", "id": str(task.id)}
        assert activity.is_public is True

    async def test_explicit_message_wins(self, session, world):
        user, workspace, _task = world
        activity = await activity_service.record(
            session, ActivityType.TASK_UPDATED, workspace.id, user.id, message="renamed the task"
        )
        assert activity.message == "renamed the task"

    async def test_resolve_task(self, session, world):
        user, workspace, task = world
        activity = await activity_service.record(
            session, ActivityType.TASK_CREATED, workspace.id, user.id, entity=TaskRef(id=task.id)
        )
        ref, data = await activity_service.resolve_entity(session, activity)
        assert ref.type == "task"
        assert data["title"] == "Draft"

    async def test_resolve_comment_through_its_task(self, session, world):
        user, workspace, task = world
        comment = task.add_comment(user.id, "hello")
        activity = await activity_service.record(
            session,
            ActivityType.COMMENT_ADDED,
            workspace.id,
            user.id,
            entity=CommentRef(id=comment["id"], task_id=task.id),
        )
        _ref, data = await activity_service.resolve_entity(session, activity)
        assert data["content"] == "hello"
        assert data["task_id"] == str(task.id)

    async def test_missing_entity_resolves_to_none(self, session, world):
        user, workspace, _task = world
        activity = await activity_service.record(
            session, ActivityType.TASK_DELETED, workspace.id, user.id, entity=TaskRef(id=uuid.uuid4())
        )
        ref, data = await activity_service.resolve_entity(session, activity)
        assert ref is not None
        assert data is None

    @pytest.mark.parametrize(
        "entity",
        [{"type": "task", "id": "not-a-uuid"}, {"type": "planet", "id": str(uuid.uuid4())}, {"id": "x"}],
    )
    async def test_bad_entity_is_logged_not_raised(self, session, world, entity):
        user, workspace, _task = world
        activity = Activity(
            workspace_id=workspace.id, user_id=user.id, type="task_created", message="x", entity=entity
        )
        with capture_logs() as logs:
            assert await activity_service.resolve_entity(session, activity) == (None, None)
        assert any(entry["event"] == "activity.entity_resolve_failed" for entry in logs)

    async def test_feed_survives_bad_entity(self, session, world):
        user, workspace, task = world
        session.add(Activity(
            workspace_id=workspace.id, user_id=user.id, type="task_updated",
            message="x", entity={"type": "task", "id": "broken"},
        ))
        await activity_service.record(
            session, ActivityType.TASK_CREATED, workspace.id, user.id, entity=TaskRef(id=task.id)
        )
        feed = await activity_service.find_by_workspace(session, workspace.id)
        assert len(feed) == 2
        assert sorted(a.entity_data is None for a in feed) == [False, True]

    async def test_private_activities_are_not_in_feed(self, session, world):
        user, workspace, _task = world
        await activity_service.record(
            session, ActivityType.TASK_UPDATED, workspace.id, user.id, is_public=False
        )
        assert await activity_service.find_by_workspace(session, workspace.id) == []

    async def test_unknown_type_is_readable(self, session, world):
        user, workspace, _task = world
        activity = await activity_service.record(session, "project_archived", workspace.id, user.id)
        assert activity.message == "performed an action"

        feed = await activity_service.find_by_workspace(session, workspace.id)
        assert [(a.type, a.message) for a in feed] == [("project_archived", "performed an action")]

        stats = await activity_service.activity_stats(session, workspace.id)
        assert [(c.type, c.count) for c in stats.activity_by_type] == [("project_archived", 1)]


# ---------------------------------------------------------------------------
# Integration tests: endpoints
# ---------------------------------------------------------------------------

class TestActivityEndpoints:
    async def test_workspace_feed_newest_first(self, client, alice, workspace, create_task):
        await create_task(alice, workspace["id"], "Write tests")

        resp = await client.get(f"/api/v1/workspaces/{workspace['id']}/activities", headers=alice.headers)
        assert resp.status_code == 200
        feed = resp.json()["data"]
        assert [a["type"] for a in feed] == ["task_created", "workspace_created"]
        latest = feed[0]
        assert latest["message"] == "created a new task"
        assert latest["user"]["id"] == str(alice.id)
        assert latest["entity"]["type"] == "task"
        assert latest["entity_data"]["title"] == "Write tests"
        assert latest["metadata"]["title"] == "Write tests"

    async def test_feed_filters(self, client, alice, bob, workspace, add_member, create_task):
        await add_member(alice, workspace["id"], bob)
        await create_task(bob, workspace["id"], "Bob's task")
        url = f"/api/v1/workspaces/{workspace['id']}/activities"

        resp = await client.get(url, params={"user_id": str(bob.id)}, headers=alice.headers)
        assert [a["type"] for a in resp.json()["data"]] == ["task_created"]
        resp = await client.get(url, params={"type": "member_joined"}, headers=alice.headers)
        data = resp.json()["data"]
        assert len(data) == 1
        assert data[0]["entity_data"]["email"] == bob.email
        resp = await client.get(url, params={"limit": 1, "offset": 1}, headers=alice.headers)
        assert resp.json()["count"] == 1

    async def test_role_change_is_recorded(self, client, alice, bob, workspace, add_member):
        await add_member(alice, workspace["id"], bob, "viewer")
        await client.put(
            f"/api/v1/workspaces/{workspace['id']}/members/{bob.id}",
            json={"role": "member"},
            headers=alice.headers,
        )
        resp = await client.get(
            f"/api/v1/workspaces/{workspace['id']}/activities",
            params={"type": "member_role_changed"},
            headers=alice.headers,
        )
        metadata = resp.json()["data"][0]["metadata"]
        assert (metadata["old_value"], metadata["new_value"]) == ("viewer", "member")

    async def test_mark_read_once(self, client, alice, bob, workspace, add_member):
        await add_member(alice, workspace["id"], bob, "viewer")
        feed = await client.get(f"/api/v1/workspaces/{workspace['id']}/activities", headers=bob.headers)
        activity_id = feed.json()["data"][-1]["id"]

        for _ in range(2):
            resp = await client.put(f"/api/v1/activities/{activity_id}/read", headers=bob.headers)
            assert resp.status_code == 200
        assert [r["user"] for r in resp.json()["data"]] == [str(bob.id)]

    async def test_mentions_need_member(self, client, alice, bob, workspace, add_member):
        await add_member(alice, workspace["id"], bob, "viewer")
        feed = await client.get(f"/api/v1/workspaces/{workspace['id']}/activities", headers=alice.headers)
        activity_id = feed.json()["data"][0]["id"]
        url = f"/api/v1/activities/{activity_id}/mentions"

        resp = await client.post(url, json={"user_id": str(alice.id)}, headers=bob.headers)
        assert resp.status_code == 403

        for _ in range(2):
            resp = await client.post(url, json={"user_id": str(bob.id)}, headers=alice.headers)
            assert resp.status_code == 200
        assert resp.json()["data"] == [{"user": str(bob.id), "notified": False}]

    async def test_outsider_cannot_touch_activity(self, client, alice, bob, workspace):
        feed = await client.get(f"/api/v1/workspaces/{workspace['id']}/activities", headers=alice.headers)
        activity_id = feed.json()["data"][0]["id"]
        resp = await client.put(f"/api/v1/activities/{activity_id}/read", headers=bob.headers)
        assert resp.status_code == 403
        resp = await client.put(f"/api/v1/activities/{uuid.uuid4()}/read", headers=bob.headers)
        assert resp.status_code == 404

    async def test_user_feed(self, client, alice, workspace, create_task):
        await create_task(alice, workspace["id"], "Mine")
        resp = await client.get("/api/v1/activities/user", headers=alice.headers)
        feed = resp.json()["data"]
        assert len(feed) == 2
        assert all(a["workspace"]["name"] == "Engineering" for a in feed)

    async def test_stats(self, client, alice, workspace, create_task):
        await create_task(alice, workspace["id"], "One")
        await create_task(alice, workspace["id"], "Two")

        resp = await client.get(
            f"/api/v1/workspaces/{workspace['id']}/activities/stats",
            params={"period": 30},
            headers=alice.headers,
        )
        stats = resp.json()["data"]
        assert stats["period_days"] == 30
        assert stats["activity_by_type"][0] == {"type": "task_created", "count": 2}
        assert stats["activity_by_user"][0]["count"] == 3
        assert sum(d["count"] for d in stats["activity_by_day"]) == 3
