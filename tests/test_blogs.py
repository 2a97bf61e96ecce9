import pytest

from alumni.models import Blog, BlogComment, estimated_read_time

pytestmark = pytest.mark.django_db


@pytest.fixture
def blog(alumni):
    return Blog.objects.create(title="Hello", content="word " * 450, author=alumni, status="published")


def test_read_time_estimate():
    assert estimated_read_time("") == 1
    assert estimated_read_time("word " * 200) == 1
    assert estimated_read_time("word " * 201) == 2


def test_publishing_stamps_date_and_excerpt(blog):
    assert blog.published_at is not None
    assert blog.excerpt.endswith("...")
    assert len(blog.excerpt) == 203
    assert blog.read_time == 3


def test_draft_has_no_published_date(alumni):
    draft = Blog.objects.create(title="Draft", content="short", author=alumni)

    assert draft.published_at is None
    assert draft.excerpt == "short"


def test_create_blog(api, alumni):
    response = api(alumni).post("/api/blogs/", {"title": "Tips", "content": "Be curious", "tags": "career,tips"})

    assert response.status_code == 201
    body = response.json()["blog"]
    assert body["status"] == "draft"
    assert body["category"] == "other"
    assert body["tags"] == ["career", "tips"]
    assert body["allowComments"] is True


def test_create_blog_requires_title(api, alumni):
    response = api(alumni).post("/api/blogs/", {"content": "No title"})

    assert response.status_code == 400
    assert response.json()["message"] == "Title and content are required"


def test_list_shows_only_published(api, blog, alumni):
    Blog.objects.create(title="Hidden", content="draft", author=alumni)

    response = api().get("/api/blogs/")

    assert [b["_id"] for b in response.json()["blogs"]] == [blog.pk]


def test_detail_counts_views(api, blog):
    api().get(f"/api/blogs/{blog.pk}")
    second = api().get(f"/api/blogs/{blog.pk}")

    assert second.json()["blog"]["views"] == 2


def test_drafts_are_hidden_from_others(api, alumni, student):
    draft = Blog.objects.create(title="Draft", content="wip", author=alumni)

    assert api(student).get(f"/api/blogs/{draft.pk}").status_code == 404
    assert api(alumni).get(f"/api/blogs/{draft.pk}").status_code == 200


def test_like_toggle(api, blog, student):
    client = api(student)

    liked = client.post(f"/api/blogs/{blog.pk}/like").json()
    unliked = client.post(f"/api/blogs/{blog.pk}/like").json()

    assert liked == {"liked": True, "likeCount": 1}
    assert unliked == {"liked": False, "likeCount": 0}


def test_comment_moderation(api, blog, alumni, student):
    posted = api(student).post(f"/api/blogs/{blog.pk}/comments", {"content": "Great read"})
    comment_id = posted.json()["comment"]["_id"]
    assert posted.json()["comment"]["isApproved"] is False

    public = api().get(f"/api/blogs/{blog.pk}").json()["blog"]
    assert public["comments"] == []
    assert public["commentCount"] == 1

    denied = api(student).put(f"/api/blogs/{blog.pk}/comments/{comment_id}", {"action": "approve"})
    approved = api(alumni).put(f"/api/blogs/{blog.pk}/comments/{comment_id}", {"action": "approve"})
    assert denied.status_code == 403
    assert approved.json()["comment"]["isApproved"] is True

    public = api().get(f"/api/blogs/{blog.pk}").json()["blog"]
    assert [c["content"] for c in public["comments"]] == ["Great read"]


def test_author_comments_are_approved(api, blog, alumni):
    response = api(alumni).post(f"/api/blogs/{blog.pk}/comments", {"content": "Thanks all"})

    assert response.json()["comment"]["isApproved"] is True


def test_replies_nest_under_comment(api, blog, alumni, student):
    parent = BlogComment.objects.create(blog=blog, user=student, content="Question?", is_approved=True)

    reply = api(alumni).post(f"/api/blogs/{blog.pk}/comments/{parent.pk}/replies", {"content": "Answer"})

    assert reply.status_code == 201
    comments = api().get(f"/api/blogs/{blog.pk}").json()["blog"]["comments"]
    assert [r["content"] for r in comments[0]["replies"]] == ["Answer"]


def test_comments_disabled(api, blog, student):
    blog.allow_comments = False
    blog.save()

    response = api(student).post(f"/api/blogs/{blog.pk}/comments", {"content": "Hi"})

    assert response.status_code == 400


def test_search_requires_query(api):
    response = api().get("/api/blogs/search")

    assert response.status_code == 400
    assert response.json()["message"] == "Search query is required"


def test_search_finds_title(api, blog):
    response = api().get("/api/blogs/search", {"q": "hell"})

    assert [b["_id"] for b in response.json()["blogs"]] == [blog.pk]


def test_comment_bumps_blog_version(blog, student):
    version = blog.version

    BlogComment.objects.create(blog=blog, user=student, content="Nice")

    blog.refresh_from_db()
    assert blog.version == version + 1
