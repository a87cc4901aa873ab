"""
Shared fixtures for django-newsletter-engine tests.
"""
from types import SimpleNamespace

import pytest
from django.contrib.auth import get_user_model

from newsletter_engine.exceptions import PersistenceError, StaleRecord
from newsletter_engine.models import Post, Profile
from newsletter_engine.ratelimit import MemoryRateLimiter, reset_rate_limiter

User = get_user_model()


class FakeClock:
    """Manually advanced clock for rate limiter tests."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeRepository:
    """
    In-memory stand-in for PostRepository.

    Every call is recorded in ``calls`` so tests can assert which steps of
    a pipeline ran.
    """

    def __init__(self):
        self.posts = {}
        self.profiles = {}
        self.comments = {}
        self.likes = set()
        self.audit_records = []
        self.calls = []
        self.fail_audit = False
        self._next_id = 1

    def _id(self):
        value = self._next_id
        self._next_id += 1
        return value

    def add_post(self, author_id, status="draft", title="A post title",
                 content="Some long enough content", slug=None):
        pk = self._id()
        self.posts[pk] = SimpleNamespace(
            pk=pk, author_id=author_id, status=status, title=title, slug=slug,
            content=content, excerpt="", version=1, published_at=None,
        )
        return self.posts[pk]

    def add_profile(self, user_id, **flags):
        defaults = {
            "username": f"user{user_id}",
            "display_name": "",
            "avatar_url": "",
            "bio": "",
            "can_publish": False,
            "is_verified": False,
            "is_moderator": False,
            "is_admin": False,
        }
        defaults.update(flags)
        self.profiles[user_id] = SimpleNamespace(pk=user_id, **defaults)
        return self.profiles[user_id]

    def find_post(self, post_id, related=False):
        self.calls.append("find_post")
        return self.posts.get(post_id)

    def find_post_by_slug(self, slug):
        self.calls.append("find_post_by_slug")
        return next((p for p in self.posts.values() if p.slug == slug), None)

    def find_profile(self, user_id):
        self.calls.append("find_profile")
        return self.profiles.get(user_id)

    def find_profile_by_username(self, username):
        self.calls.append("find_profile_by_username")
        return next(
            (p for p in self.profiles.values() if p.username.lower() == username.lower()),
            None,
        )

    def is_username_available(self, username, user_id=None):
        self.calls.append("find_username")
        return all(
            p.username.lower() != username.lower() or p.pk == user_id
            for p in self.profiles.values()
        )

    def update_profile(self, user_id, patch):
        self.calls.append("update_profile")
        profile = self.profiles[user_id]
        for key, value in patch.items():
            setattr(profile, key, value)
        return profile

    def insert_post(self, data):
        self.calls.append("insert_post")
        pk = self._id()
        post = SimpleNamespace(pk=pk, version=1, published_at=None, **data)
        self.posts[pk] = post
        return post

    def update_post(self, post_id, patch, expected_version=None):
        self.calls.append("update_post")
        post = self.posts.get(post_id)
        if post is None or (expected_version is not None and post.version != expected_version):
            raise StaleRecord()
        for key, value in patch.items():
            setattr(post, key, value)
        post.version += 1
        return post

    def delete_post(self, post_id):
        self.calls.append("delete_post")
        self.posts.pop(post_id, None)

    def append_audit_record(self, record):
        self.calls.append("append_audit_record")
        if self.fail_audit:
            raise PersistenceError("audit table unavailable")
        self.audit_records.append(record)

    def find_comment(self, comment_id):
        self.calls.append("find_comment")
        return self.comments.get(comment_id)

    def list_comments(self, post_id):
        self.calls.append("list_comments")
        return [
            c for c in self.comments.values()
            if c.post_id == post_id and c.parent_id is None
        ]

    def insert_comment(self, data):
        self.calls.append("insert_comment")
        pk = self._id()
        comment = SimpleNamespace(pk=pk, **data)
        self.comments[pk] = comment
        return comment

    def update_comment(self, comment_id, content):
        self.calls.append("update_comment")
        self.comments[comment_id].content = content
        return self.comments[comment_id]

    def delete_comment(self, comment_id):
        self.calls.append("delete_comment")
        self.comments.pop(comment_id, None)

    def toggle_like(self, post, user_id):
        self.calls.append("toggle_like")
        key = (post.pk, user_id)
        if key in self.likes:
            self.likes.discard(key)
            return False
        self.likes.add(key)
        return True

    def has_liked(self, post_id, user_id):
        return (post_id, user_id) in self.likes

    def writes(self):
        """Calls that changed state."""
        return [c for c in self.calls if not c.startswith(("find_", "list_"))]


@pytest.fixture(autouse=True)
def fresh_rate_limiter():
    """Each test starts with an empty process-wide limiter."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return MemoryRateLimiter(clock=clock)


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def user(db):
    """Create a test user with a profile that may publish."""
    user = User.objects.create_user(
        username="testuser",
        email="test@example.com",
        password="testpass123",
    )
    Profile.objects.create(
        user=user,
        username="testuser",
        display_name="Test User",
        can_publish=True,
        is_verified=True,
    )
    return user


@pytest.fixture
def other_user(db):
    """Create a second user whose profile has no capabilities."""
    user = User.objects.create_user(username="other", password="pass")
    Profile.objects.create(user=user, username="other")
    return user


@pytest.fixture
def moderator(db):
    user = User.objects.create_user(username="mod", password="pass")
    Profile.objects.create(user=user, username="mod", is_moderator=True)
    return user


@pytest.fixture
def draft(db, user):
    """Create a draft post owned by ``user``."""
    return Post.objects.create(
        title="Draft Post",
        content="This is a draft post body.",
        author=user,
    )


@pytest.fixture
def published(db, user):
    return Post.objects.create(
        title="Published Post",
        content="This is a published post body.",
        author=user,
        status=Post.PUBLISHED,
    )
