from __future__ import annotations

import asyncio
from datetime import timedelta

from conftest import ACME, ALICE, BASE_TIME, BOB
from hirefeed.schemas.posts import Application, Comment, Post
from hirefeed.core.auth import Role
from hirefeed.services.engagement import EngagementEngine
from hirefeed.services.feed import FeedReader, can_apply, project_feed, project_post


def _post(**overrides) -> Post:
    fields = {
        "id": "job-1",
        "user_id": "acme",
        "username": "Acme Corp",
        "user_type": Role.EMPLOYER,
        "caption": "Backend engineer",
        "created_at": BASE_TIME,
        "applicable": True,
    }
    fields.update(overrides)
    return Post(**fields)


def _comment(index: int) -> Comment:
    return Comment(
        id=f"c{index}",
        user_id="bob",
        username="bob",
        text=f"comment {index}",
        created_at=BASE_TIME + timedelta(minutes=index),
    )


def test_projection_flags_for_seeker() -> None:
    view = project_post(_post(likes=["alice", "bob"]), ALICE)

    assert view.liked_by_viewer is True
    assert view.can_apply is True
    assert view.like_count == 2
    assert view.comment_count == 0
    assert view.recent_comments == []
    assert view.has_more_comments is False


def test_projection_for_anonymous_viewer() -> None:
    view = project_post(_post(likes=["alice"]), None)

    assert view.liked_by_viewer is False
    assert view.can_apply is False


def test_employer_can_never_apply() -> None:
    assert can_apply(_post(), ACME) is False


def test_cannot_apply_to_non_applicable_post() -> None:
    assert can_apply(_post(applicable=False), ALICE) is False


def test_cannot_apply_twice() -> None:
    post = _post(applications=[Application(user_id="alice", username="alice", applied_at=BASE_TIME)])

    assert can_apply(post, ALICE) is False
    assert can_apply(post, BOB) is True


def test_inline_comments_show_last_two_with_view_all_flag() -> None:
    view = project_post(_post(comments=[_comment(index) for index in range(4)]), BOB)

    assert view.comment_count == 4
    assert [comment.id for comment in view.recent_comments] == ["c2", "c3"]
    assert view.has_more_comments is True


def test_exactly_two_comments_has_no_view_all() -> None:
    view = project_post(_post(comments=[_comment(0), _comment(1)]), BOB)

    assert [comment.id for comment in view.recent_comments] == ["c0", "c1"]
    assert view.has_more_comments is False


def test_project_feed_keeps_input_order() -> None:
    posts = [_post(id="b", created_at=BASE_TIME), _post(id="a", created_at=BASE_TIME + timedelta(days=1))]

    assert [view.id for view in project_feed(posts, ALICE)] == ["b", "a"]


def test_feed_is_newest_first_with_insertion_order_ties(store, seed_post) -> None:
    seed_post("old", minutes=0)
    seed_post("tie-first", minutes=5)
    seed_post("tie-second", minutes=5)
    seed_post("new", minutes=10)
    reader = FeedReader(store)

    first_page = asyncio.run(reader.list_feed(limit=2))
    second_page = asyncio.run(reader.list_feed(limit=2, offset=2))

    assert [post.id for post in first_page] == ["new", "tie-first"]
    assert [post.id for post in second_page] == ["tie-second", "old"]


def test_posts_by_owner_only_returns_owner_posts(store, seed_post) -> None:
    seed_post("job-1", owner=ACME)
    seed_post("bob-1", owner=BOB, minutes=1)

    posts = asyncio.run(FeedReader(store).list_posts_by_owner("bob"))

    assert [post.id for post in posts] == ["bob-1"]


def test_can_apply_flips_after_applying(store, seed_post) -> None:
    seed_post("job-1", applicable=True)
    reader = FeedReader(store)

    before = project_post(asyncio.run(reader.get_post("job-1")), ALICE)
    asyncio.run(EngagementEngine(store).apply_to_post("job-1", ALICE))
    after = project_post(asyncio.run(reader.get_post("job-1")), ALICE)

    assert before.can_apply is True
    assert after.can_apply is False


def test_feed_orders_epoch_and_iso_timestamps_together(store, seed_post) -> None:
    seed_post("iso", minutes=0)
    seed_post("epoch", createdAt=int((BASE_TIME + timedelta(minutes=30)).timestamp()))
    seed_post("garbage", createdAt="not a date")
    seed_post("missing", createdAt=None)
    seed_post("older-epoch", createdAt=(BASE_TIME - timedelta(days=1)).timestamp())

    posts = asyncio.run(FeedReader(store).list_feed(limit=10))

    assert [post.id for post in posts] == ["epoch", "iso", "older-epoch", "garbage", "missing"]
    assert posts[0].created_at == BASE_TIME + timedelta(minutes=30)
    assert posts[3].created_at.year == 1970
