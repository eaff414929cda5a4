from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import text

from models import storage
from models.repositories import TopicRepository
from models.topic import Topic
from utils.pagination import decode_cursor
from utils.security import utcnow


@pytest.fixture
def author(make_user):
    return make_user("author")


@pytest.fixture
def topic(client, author, category):
    r = client.post(
        "/api/v1/topics",
        json={"title": "Thread", "content_md": "post 0", "category_id": category["id"]},
        headers=author.headers,
    )
    assert r.status_code == 201
    return r.get_json()["data"]


def reply(client, user, topic_id, text, **extra):
    return client.post(f"/api/v1/topics/{topic_id}/posts", json={"content_md": text, **extra}, headers=user.headers)


def test_posts_page_forward_in_creation_order(client, author, topic) -> None:
    for i in range(1, 12):
        assert reply(client, author, topic["id"], f"post {i}").status_code == 201

    seen, cursor = [], None
    while True:
        url = f"/api/v1/topics/{topic['id']}/posts?limit=4" + (f"&cursor={cursor}" if cursor else "")
        body = client.get(url).get_json()
        keys = [(datetime.fromisoformat(p["created_at"]), p["id"]) for p in body["data"]]
        if cursor:
            # nothing at or before the previous page's last row
            assert all(k > decode_cursor(cursor) for k in keys)
        seen.extend(body["data"])
        if not body["meta"]["has_next"]:
            break
        cursor = body["meta"]["next_cursor"]

    assert [p["content_md"] for p in seen] == [f"post {i}" for i in range(12)]
    assert len({p["id"] for p in seen}) == 12


def test_reply_updates_the_topic(client, make_user, author, topic) -> None:
    bob = make_user("bob")
    r = reply(client, bob, topic["id"], "hello")
    assert r.status_code == 201
    post = r.get_json()["data"]
    assert post["author_id"] == bob.id
    assert post["is_edited"] is False

    updated = client.get(f"/api/v1/topics/{topic['id']}").get_json()["data"]
    assert updated["reply_count"] == 1
    assert updated["last_poster_id"] == bob.id
    assert datetime.fromisoformat(updated["last_posted_at"]) == datetime.fromisoformat(post["created_at"])

    # replies bump the topic to the top of the list
    later = client.post(
        "/api/v1/topics",
        json={"title": "Newer", "content_md": "x", "category_id": topic["category_id"]},
        headers=author.headers,
    ).get_json()["data"]
    reply(client, bob, topic["id"], "bump")
    listed = client.get("/api/v1/topics").get_json()["data"]
    assert [t["id"] for t in listed] == [topic["id"], later["id"]]


def test_reply_to_must_be_in_the_same_topic(client, author, topic) -> None:
    first = client.get(f"/api/v1/topics/{topic['id']}/posts").get_json()["data"][0]
    assert reply(client, author, topic["id"], "re", reply_to_post_id=first["id"]).status_code == 201
    assert reply(client, author, topic["id"], "re", reply_to_post_id="nope").status_code == 422


def test_locked_topic_refuses_replies(client, admin, author, topic) -> None:
    client.patch(f"/api/v1/topics/{topic['id']}/moderation", json={"is_locked": True}, headers=admin.headers)
    r = reply(client, author, topic["id"], "too late")
    assert r.status_code == 400
    assert r.get_json()["message"] == "Topic is locked"


def test_unknown_topic(client, author) -> None:
    assert client.get("/api/v1/topics/missing/posts").status_code == 404
    assert reply(client, author, "missing", "x").status_code == 404


def test_edit_and_delete(client, make_user, author, topic) -> None:
    bob = make_user("bob")
    post = reply(client, bob, topic["id"], "first draft").get_json()["data"]
    url = f"/api/v1/posts/{post['id']}"

    assert client.patch(url, json={"content_md": "nope"}, headers=author.headers).status_code == 403
    r = client.patch(url, json={"content_md": "second draft"}, headers=bob.headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["is_edited"] is True
    assert r.get_json()["data"]["content_md"] == "second draft"

    assert client.delete(url, headers=author.headers).status_code == 403
    assert client.delete(url, headers=bob.headers).status_code == 204
    assert client.get(url).status_code == 404

    thread = client.get(f"/api/v1/topics/{topic['id']}/posts").get_json()["data"]
    assert [p["content_md"] for p in thread] == ["post 0"]
    assert client.get(f"/api/v1/topics/{topic['id']}").get_json()["data"]["reply_count"] == 0


def test_reply_counter_is_maintained_in_sql(client, author, topic) -> None:
    session = storage.get_session()
    loaded = session.get(Topic, topic["id"])
    assert loaded.reply_count == 0

    # two replies land from another request after this copy was loaded
    session.execute(text("UPDATE topics SET reply_count = reply_count + 2 WHERE id = :id"), {"id": topic["id"]})

    repo = TopicRepository(storage)
    repo.record_reply(loaded.id, author.id, utcnow())
    storage.save()
    assert loaded.reply_count == 3
    assert loaded.last_poster_id == author.id

    repo.record_reply_removed(loaded.id)
    storage.save()
    assert loaded.reply_count == 2
    storage.close()

    assert client.get(f"/api/v1/topics/{topic['id']}").get_json()["data"]["reply_count"] == 2


def test_reply_count_tracks_replies_and_deletions(client, make_user, author, topic) -> None:
    bob = make_user("bob")
    posts = [reply(client, bob, topic["id"], f"r{i}").get_json()["data"] for i in range(4)]
    client.delete(f"/api/v1/posts/{posts[0]['id']}", headers=bob.headers)
    assert client.get(f"/api/v1/topics/{topic['id']}").get_json()["data"]["reply_count"] == 3
