"""
Notifications: fan-out, feed, read state and delivery settings.

Tests cover:
- Fan-out skips the actor and duplicate recipients
- Live push gated by the effective in-app setting
- Override precedence (community row > global row > defaults)
- Feed pagination and read-state endpoints
- Settings read/write endpoints (self only, defaults not persisted)
"""

from __future__ import annotations

import json
import uuid

import pytest
from sqlmodel import select

from app.models.notification import Notification, UserNotificationSetting
from app.services.notifications import (
    create_notification,
    deliver_in_app,
    fan_out,
    friendly_type_name,
    notification_link_and_text,
    resolve_effective_setting,
)
from hearth_shared.schemas.common import NotificationType

from conftest import auth_headers, make_community, make_user


async def seed_notifications(session, user, count, **fields):
    rows = []
    for i in range(count):
        rows.append(
            await create_notification(
                session, user.id, NotificationType.SYSTEM_ALERT, title=f"Alert {i}", **fields
            )
        )
    await session.commit()
    return rows


# ---------------------------------------------------------------------------
# Fan-out and delivery
# ---------------------------------------------------------------------------


class TestFanOut:

    @pytest.mark.asyncio
    async def test_skips_actor_and_duplicates(self, session):
        actor = await make_user(session, name="Ada")
        alice = await make_user(session)
        bob = await make_user(session)

        created = await fan_out(
            session,
            [alice.id, actor.id, bob.id, alice.id],
            NotificationType.POST_LIKE,
            actor_id=actor.id,
        )
        await session.commit()

        assert sorted(n.user_id for n in created) == sorted([alice.id, bob.id])
        assert all(n.is_read is False for n in created)
        rows = (await session.execute(select(Notification))).scalars().all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_delivery_respects_in_app_setting(self, session, redis_mock):
        muted = await make_user(session)
        listening = await make_user(session)
        session.add(
            UserNotificationSetting(
                user_id=muted.id,
                notification_type=NotificationType.ADMIN_ANNOUNCEMENT,
                in_app_enabled=False,
            )
        )
        await session.commit()

        created = await fan_out(
            session, [muted.id, listening.id], NotificationType.ADMIN_ANNOUNCEMENT, title="Hi"
        )
        await session.commit()
        sent = await deliver_in_app(session, created)

        # both rows exist; only one live push
        assert len(created) == 2
        assert sent == 1
        channel, raw = redis_mock.publish.await_args.args
        assert channel.endswith(str(listening.id))
        event = json.loads(raw)
        assert event["type"] == "notification.created"
        assert event["payload"]["userId"] == str(listening.id)
        assert event["payload"]["type"] == "ADMIN_ANNOUNCEMENT"

    @pytest.mark.asyncio
    async def test_delivery_survives_redis_outage(self, session, redis_mock):
        from redis.exceptions import RedisError

        user = await make_user(session)
        redis_mock.publish.side_effect = RedisError("down")
        created = await fan_out(session, [user.id], NotificationType.SYSTEM_ALERT)
        await session.commit()

        assert await deliver_in_app(session, created) == 0


# ---------------------------------------------------------------------------
# Effective settings
# ---------------------------------------------------------------------------


class TestEffectiveSetting:

    @pytest.mark.asyncio
    async def test_defaults_without_rows(self, session):
        user = await make_user(session)

        setting = await resolve_effective_setting(session, user.id, NotificationType.POST_LIKE)

        assert setting.source == "default"
        assert (setting.email_enabled, setting.in_app_enabled, setting.push_enabled) == (True, True, False)
        assert setting.digest_frequency is None

    @pytest.mark.asyncio
    async def test_community_row_replaces_global_row(self, session):
        user = await make_user(session)
        community = await make_community(session, user)
        session.add(
            UserNotificationSetting(
                user_id=user.id,
                notification_type=NotificationType.POST_LIKE,
                email_enabled=False,
                in_app_enabled=False,
                push_enabled=True,
                digest_frequency="daily",
            )
        )
        session.add(
            UserNotificationSetting(
                user_id=user.id,
                community_id=community.id,
                notification_type=NotificationType.POST_LIKE,
                email_enabled=True,
                in_app_enabled=True,
                push_enabled=False,
            )
        )
        await session.commit()

        scoped = await resolve_effective_setting(
            session, user.id, NotificationType.POST_LIKE, community.id
        )
        assert scoped.source == "community"
        assert (scoped.email_enabled, scoped.in_app_enabled, scoped.push_enabled) == (True, True, False)
        # not merged with the global digest
        assert scoped.digest_frequency is None

        other = await resolve_effective_setting(
            session, user.id, NotificationType.POST_LIKE, uuid.uuid4()
        )
        assert other.source == "global"
        assert other.digest_frequency == "daily"
        assert other.in_app_enabled is False


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


class TestDisplayHelpers:

    def test_friendly_type_name(self):
        assert friendly_type_name(NotificationType.PAYMENT_FAILED) == "Failed payments"
        assert friendly_type_name("SOMETHING_NEW") == "Something New"

    def test_post_comment_link(self):
        community_id = uuid.uuid4()
        n = Notification(
            user_id=uuid.uuid4(),
            type=NotificationType.POST_COMMENT,
            community_id=community_id,
            related_entity_type="post",
            related_entity_id="p1",
            data={"commentId": "c9"},
        )
        href, text = notification_link_and_text(n)
        assert href == f"/app/communities/{community_id}/posts/p1#comment-c9"
        assert text == "Someone commented on your post."

    def test_fallback_text(self):
        n = Notification(user_id=uuid.uuid4(), type=NotificationType.LEVEL_UP)
        href, text = notification_link_and_text(n)
        assert href == "/app/notifications"
        assert text == "You have a new notification of type: LEVEL_UP."


# ---------------------------------------------------------------------------
# Feed endpoints
# ---------------------------------------------------------------------------


class TestFeedEndpoints:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.get("/api/v1/notifications")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_pagination_and_enrichment(self, client, session):
        user = await make_user(session)
        actor = await make_user(session, name="Grace")
        community = await make_community(session, actor, name="Gardeners")
        await seed_notifications(session, user, 12, actor_id=actor.id, community_id=community.id)

        response = await client.get(
            "/api/v1/notifications", params={"page": 2, "limit": 5}, headers=auth_headers(user)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["currentPage"] == 2
        assert body["totalPages"] == 3
        assert body["totalNotifications"] == 12
        assert len(body["notifications"]) == 5
        first = body["notifications"][0]
        assert first["actor"]["name"] == "Grace"
        assert first["community"]["name"] == "Gardeners"
        assert first["isRead"] is False
        assert first["link"] == "/app/notifications"

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, client, session):
        user = await make_user(session)
        response = await client.get(
            "/api/v1/notifications", params={"limit": 51}, headers=auth_headers(user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, client, session):
        user = await make_user(session)
        rows = await seed_notifications(session, user, 3)
        ids = [str(rows[0].id), str(rows[1].id), "not-a-uuid"]

        first = await client.patch(
            "/api/v1/notifications", json={"notificationIds": ids}, headers=auth_headers(user)
        )
        second = await client.patch(
            "/api/v1/notifications", json={"notificationIds": ids}, headers=auth_headers(user)
        )

        assert first.status_code == 200
        assert first.json()["count"] == 2
        assert second.json()["count"] == 0

        count = await client.get("/api/v1/notifications/unread-count", headers=auth_headers(user))
        assert count.json() == {"unreadCount": 1}

    @pytest.mark.asyncio
    async def test_cannot_mark_someone_elses(self, client, session):
        owner = await make_user(session)
        intruder = await make_user(session)
        rows = await seed_notifications(session, owner, 1)

        response = await client.patch(
            "/api/v1/notifications",
            json={"notificationIds": [str(rows[0].id)]},
            headers=auth_headers(intruder),
        )

        assert response.json()["count"] == 0
        await session.refresh(rows[0])
        assert rows[0].is_read is False

    @pytest.mark.asyncio
    async def test_mark_all_only_touches_caller(self, client, session):
        user = await make_user(session)
        other = await make_user(session)
        await seed_notifications(session, user, 4)
        await seed_notifications(session, other, 2)

        response = await client.patch(
            "/api/v1/notifications", json={"markAllAsRead": True}, headers=auth_headers(user)
        )

        assert response.status_code == 200
        assert response.json()["count"] == 4
        other_unread = await client.get(
            "/api/v1/notifications/unread-count", headers=auth_headers(other)
        )
        assert other_unread.json() == {"unreadCount": 2}

    @pytest.mark.asyncio
    async def test_mark_read_requires_a_target(self, client, session):
        user = await make_user(session)

        response = await client.patch("/api/v1/notifications", json={}, headers=auth_headers(user))

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid request. Provide notificationIds array or markAllAsRead: true."
        }

    @pytest.mark.asyncio
    async def test_mark_read_rejects_only_invalid_ids(self, client, session):
        user = await make_user(session)

        response = await client.patch(
            "/api/v1/notifications", json={"notificationIds": ["nope"]}, headers=auth_headers(user)
        )

        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Settings endpoints
# ---------------------------------------------------------------------------


class TestSettingsEndpoints:

    @pytest.mark.asyncio
    async def test_defaults_are_synthesized_not_persisted(self, client, session):
        user = await make_user(session)

        response = await client.get(
            f"/api/v1/users/{user.id}/notification-settings", headers=auth_headers(user)
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body) == len(NotificationType)
        assert {item["notificationType"] for item in body} == {t.value for t in NotificationType}
        assert all(item["id"] is None for item in body)
        assert all(
            (item["emailEnabled"], item["inAppEnabled"], item["pushEnabled"]) == (True, True, False)
            for item in body
        )
        rows = (await session.execute(select(UserNotificationSetting))).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_other_users_settings_are_forbidden(self, client, session):
        user = await make_user(session)
        other = await make_user(session)

        get = await client.get(
            f"/api/v1/users/{other.id}/notification-settings", headers=auth_headers(user)
        )
        put = await client.put(
            f"/api/v1/users/{other.id}/notification-settings", json=[], headers=auth_headers(user)
        )

        assert get.status_code == 403
        assert put.status_code == 403

    @pytest.mark.asyncio
    async def test_upsert_skips_unknown_types(self, client, session):
        user = await make_user(session)
        community = await make_community(session, user)
        url = f"/api/v1/users/{user.id}/notification-settings"

        response = await client.put(
            url,
            json=[
                {"notificationType": "POST_LIKE", "emailEnabled": False},
                {"notificationType": "NOT_A_TYPE", "emailEnabled": False},
                {"notificationType": "POST_LIKE", "communityId": str(community.id), "pushEnabled": True},
            ],
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["skipped"] == 1
        assert len(body["updatedSettings"]) == 2

        # second write updates in place
        await client.put(
            url,
            json=[{"notificationType": "POST_LIKE", "inAppEnabled": False}],
            headers=auth_headers(user),
        )
        rows = (
            await session.execute(
                select(UserNotificationSetting).where(
                    UserNotificationSetting.user_id == user.id,
                    UserNotificationSetting.community_id.is_(None),
                )
            )
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].email_enabled is False
        assert rows[0].in_app_enabled is False

        listing = (await client.get(url, headers=auth_headers(user))).json()
        assert len(listing) == len(NotificationType) + 1
        assert listing[-1]["communityId"] == str(community.id)
        assert listing[-1]["pushEnabled"] is True

    @pytest.mark.asyncio
    async def test_upsert_skips_unknown_community(self, client, session):
        user = await make_user(session)

        response = await client.put(
            f"/api/v1/users/{user.id}/notification-settings",
            json=[
                {"notificationType": "POST_LIKE", "communityId": str(uuid.uuid4()), "emailEnabled": False},
                {"notificationType": "POST_LIKE", "emailEnabled": False},
            ],
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["skipped"] == 1
        assert [item["communityId"] for item in body["updatedSettings"]] == [None]
        rows = (await session.execute(select(UserNotificationSetting))).scalars().all()
        assert [row.community_id for row in rows] == [None]
