from posts_api.models import Post


def test_fill_copies_only_allow_listed_fields():
    post = Post().fill({"title": "T", "body": "B", "id": 5, "created_at": "yesterday", "author": "x"})
    assert post.title == "T"
    assert post.body == "B"
    assert post.id is None
    assert post.created_at is None
    assert not hasattr(post, "author")


def test_fill_leaves_absent_fields_alone():
    post = Post(title="Old", body="Body")
    post.fill({"title": "New"})
    assert post.title == "New"
    assert post.body == "Body"


def test_store_sets_timestamps_on_insert(session):
    post = Post().fill({"title": "T", "body": "B"})
    session.add(post)
    session.commit()
    session.refresh(post)
    assert post.id == 1
    assert post.created_at is not None
    assert post.updated_at is not None
