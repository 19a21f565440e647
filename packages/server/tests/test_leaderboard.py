"""
Community leaderboard ranking and pagination.
"""

from __future__ import annotations

import uuid

import pytest

from conftest import add_member, auth_headers, make_community, make_user


@pytest.fixture
async def community_of_25(session):
    """Owner plus 24 members with distinct points (owner has the most)."""
    owner = await make_user(session, name="Owner", points=1000)
    community = await make_community(session, owner)
    for i in range(24):
        member = await make_user(session, points=i * 10)
        await add_member(session, community, member)
    return owner, community


class TestLeaderboard:

    @pytest.mark.asyncio
    async def test_last_page_is_partial(self, client, session, community_of_25):
        owner, community = community_of_25

        response = await client.get(
            f"/api/v1/communities/{community.id}/leaderboard",
            params={"page": 3, "limit": 10},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["currentPage"] == 3
        assert body["totalPages"] == 3
        assert body["totalEntries"] == 25
        assert [entry["rank"] for entry in body["leaderboard"]] == [21, 22, 23, 24, 25]
        scores = [entry["score"] for entry in body["leaderboard"]]
        assert scores == sorted(scores, reverse=True)
        assert scores[-1] == 0

    @pytest.mark.asyncio
    async def test_first_page_order(self, client, session, community_of_25):
        owner, community = community_of_25

        response = await client.get(
            f"/api/v1/communities/{community.id}/leaderboard", headers=auth_headers(owner)
        )

        body = response.json()
        assert len(body["leaderboard"]) == 10
        top = body["leaderboard"][0]
        assert top["rank"] == 1
        assert top["user"]["id"] == str(owner.id)
        assert top["user"]["points"] == top["score"] == 1000

    @pytest.mark.asyncio
    async def test_ties_break_by_user_id(self, client, session):
        ids = sorted(uuid.uuid4() for _ in range(3))
        owner = await make_user(session, points=50, user_id=ids[2])
        community = await make_community(session, owner)
        for user_id in (ids[1], ids[0]):
            await add_member(session, community, await make_user(session, points=50, user_id=user_id))

        response = await client.get(
            f"/api/v1/communities/{community.id}/leaderboard", headers=auth_headers(owner)
        )

        assert [entry["user"]["id"] for entry in response.json()["leaderboard"]] == [
            str(user_id) for user_id in ids
        ]

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, client, session, community_of_25):
        owner, community = community_of_25

        response = await client.get(
            f"/api/v1/communities/{community.id}/leaderboard",
            params={"page": 9, "limit": 10},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json()["leaderboard"] == []

    @pytest.mark.asyncio
    async def test_unknown_community(self, client, session):
        user = await make_user(session)

        response = await client.get(
            f"/api/v1/communities/{uuid.uuid4()}/leaderboard", headers=auth_headers(user)
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Community not found."}

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client, session, community_of_25):
        owner, community = community_of_25
        url = f"/api/v1/communities/{community.id}/leaderboard"

        assert (await client.get(url, params={"limit": 101}, headers=auth_headers(owner))).status_code == 400
        assert (await client.get(url, params={"page": 0}, headers=auth_headers(owner))).status_code == 400
