from datetime import datetime, timezone

from hirefeed.core.auth import Role
from hirefeed.schemas.posts import EPOCH, format_timestamp, normalize_post, parse_timestamp
from hirefeed.schemas.users import normalize_user_profile


def test_missing_engagement_fields_default_to_empty() -> None:
    post = normalize_post("p1", {"userId": "u1", "username": "u1", "caption": "hello"})

    assert post.likes == []
    assert post.comments == []
    assert post.applications == []
    assert post.applicable is False
    assert post.user_type is Role.SEEKER
    assert post.created_at == EPOCH
    assert post.image_url is None


def test_duplicates_collapse_on_first_occurrence() -> None:
    post = normalize_post(
        "p1",
        {
            "userId": "acme",
            "userType": "employer",
            "caption": "job",
            "applicable": True,
            "likes": ["a", "b", "a", None, ""],
            "applications": [
                {"userId": "alice", "username": "alice", "appliedAt": "2024-01-01T00:00:00Z"},
                {"userId": "alice", "username": "alice-again", "appliedAt": "2024-01-02T00:00:00Z"},
                {"username": "no-id"},
            ],
        },
    )

    assert post.likes == ["a", "b"]
    assert [item.username for item in post.applications] == ["alice"]
    assert post.applications[0].applied_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert post.accepts_applications is True


def test_malformed_comments_are_dropped_and_order_kept() -> None:
    post = normalize_post(
        "p1",
        {
            "caption": "x",
            "comments": [
                {"id": "c2", "userId": "b", "username": "b", "text": "later", "createdAt": "2024-01-02T00:00:00Z"},
                "garbage",
                {"userId": "b", "text": "no id"},
                {"id": "c1", "userId": "a", "username": "a", "text": "earlier", "createdAt": "2024-01-01T00:00:00Z"},
            ],
        },
    )

    assert [comment.id for comment in post.comments] == ["c2", "c1"]


def test_only_literal_true_marks_post_applicable() -> None:
    assert normalize_post("p1", {"applicable": "yes"}).applicable is False
    assert normalize_post("p1", {"applicable": True}).applicable is True


def test_to_document_uses_stored_field_names() -> None:
    post = normalize_post(
        "p1",
        {
            "userId": "acme",
            "username": "Acme",
            "userType": "employer",
            "caption": "job",
            "imageUrl": "https://cdn/img.png",
            "createdAt": "2024-03-04T05:06:07.000008Z",
            "comments": [{"id": "c1", "userId": "a", "username": "a", "text": "hi", "createdAt": "2024-03-04T05:06:07Z"}],
        },
    )

    document = post.to_document()

    assert "id" not in document
    assert document["userId"] == "acme"
    assert document["userType"] == "employer"
    assert document["imageUrl"] == "https://cdn/img.png"
    assert document["createdAt"] == "2024-03-04T05:06:07.000008Z"
    assert document["comments"][0] == {
        "id": "c1",
        "userId": "a",
        "username": "a",
        "text": "hi",
        "createdAt": "2024-03-04T05:06:07.000000Z",
    }


def test_timestamps_are_fixed_width_utc() -> None:
    assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000000Z"
    assert parse_timestamp("2024-01-01T01:00:00+01:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(0) == EPOCH
    assert parse_timestamp(True) is None


def test_user_profile_normalization() -> None:
    profile = normalize_user_profile(
        "u1",
        {"username": "alice", "firstName": "Alice", "userType": "seeker", "skills": ["python", 3], "bio": "  "},
    )

    assert profile.username == "alice"
    assert profile.first_name == "Alice"
    assert profile.last_name == ""
    assert profile.skills == ["python"]
    assert profile.bio is None
    assert profile.created_at is None


def test_repeated_comment_ids_keep_first_entry() -> None:
    post = normalize_post(
        "p1",
        {
            "comments": [
                {"id": "c1", "userId": "a", "username": "a", "text": "original"},
                {"id": "c2", "userId": "b", "username": "b", "text": "reply"},
                {"id": "c1", "userId": "a", "username": "a", "text": "replayed write"},
            ],
        },
    )

    assert [(comment.id, comment.text) for comment in post.comments] == [("c1", "original"), ("c2", "reply")]


def test_out_of_range_epoch_is_treated_as_missing() -> None:
    assert parse_timestamp(10**20) is None
    assert normalize_post("p1", {"createdAt": 10**20}).created_at == EPOCH
