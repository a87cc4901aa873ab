"""
Persistence for the governed services, on the Django ORM.

The services only talk to storage through this narrow interface, so tests
and alternative backends can supply their own implementation.
"""
from django.db import DatabaseError, models, transaction
from django.utils import timezone

from .exceptions import PersistenceError, StaleRecord
from .models import AuditLogEntry, Comment, Like, Post, Profile, Tag


def _set_tags(post, names):
    tags = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        tag, _ = Tag.objects.get_or_create(name=name)
        tags.append(tag)
    post.tags.set(tags)


class PostRepository:
    """Post, profile, comment and audit storage."""

    def find_post(self, post_id, related=False):
        qs = Post.objects.all()
        if related:
            qs = qs.with_relations()
        try:
            return qs.filter(pk=post_id).first()
        except (ValueError, TypeError):
            return None
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def find_post_by_slug(self, slug):
        try:
            return Post.objects.filter(slug=slug).first()
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def find_profile(self, user_id):
        if user_id is None:
            return None
        try:
            return Profile.objects.filter(pk=user_id).first()
        except (ValueError, TypeError):
            return None
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def insert_post(self, data):
        data = dict(data)
        tag_names = data.pop("tags", None)
        try:
            with transaction.atomic():
                post = Post.objects.create(**data)
                if tag_names:
                    _set_tags(post, tag_names)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        return post

    def update_post(self, post_id, patch, expected_version=None):
        """
        Apply ``patch`` to a post and bump its version.

        With ``expected_version`` the write only happens if the stored
        version still matches; otherwise StaleRecord is raised. A supplied
        slug is made unique, and an empty one is regenerated from the title.
        """
        patch = dict(patch)
        tag_names = patch.pop("tags", None)
        patch.setdefault("updated_at", timezone.now())
        qs = Post.objects.filter(pk=post_id)
        if expected_version is not None:
            qs = qs.filter(version=expected_version)
        try:
            with transaction.atomic():
                if "slug" in patch:
                    patch["slug"] = self._slug_for_update(post_id, patch)
                updated = qs.update(version=models.F("version") + 1, **patch)
                if not updated:
                    raise StaleRecord(f"Post {post_id} changed before it could be written")
                post = Post.objects.get(pk=post_id)
                if tag_names is not None:
                    _set_tags(post, tag_names)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        return post

    @staticmethod
    def _slug_for_update(post_id, patch):
        source = patch["slug"] or patch.get("title")
        if not source:
            source = Post.objects.filter(pk=post_id).values_list("title", flat=True).first()
        return Post.unique_slug(source or "", exclude_pk=post_id)

    def delete_post(self, post_id):
        try:
            Post.objects.filter(pk=post_id).delete()
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def append_audit_record(self, record):
        try:
            with transaction.atomic():
                return AuditLogEntry.objects.create(**record)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    # Comments and likes

    def find_comment(self, comment_id):
        try:
            return Comment.objects.select_related("parent").filter(pk=comment_id).first()
        except (ValueError, TypeError):
            return None
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def list_comments(self, post_id):
        """Return top-level comments with replies and authors prefetched."""
        try:
            return list(
                Comment.objects.filter(post_id=post_id, parent=None)
                .select_related("author__newsletter_profile")
                .prefetch_related("replies__author__newsletter_profile")
            )
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def insert_comment(self, data):
        try:
            return Comment.objects.create(**data)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def update_comment(self, comment_id, content):
        try:
            Comment.objects.filter(pk=comment_id).update(
                content=content, updated_at=timezone.now()
            )
            return Comment.objects.get(pk=comment_id)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def delete_comment(self, comment_id):
        try:
            Comment.objects.filter(pk=comment_id).delete()
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def toggle_like(self, post, user_id):
        try:
            return Like.toggle(post, user_id)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def has_liked(self, post_id, user_id):
        try:
            return Like.objects.filter(post_id=post_id, user_id=user_id).exists()
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    # Profiles

    def find_profile_by_username(self, username):
        try:
            return Profile.objects.filter(username__iexact=username).first()
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def is_username_available(self, username, user_id=None):
        try:
            return Profile.is_username_available(username, exclude_pk=user_id)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    def update_profile(self, user_id, patch):
        try:
            Profile.objects.filter(pk=user_id).update(updated_at=timezone.now(), **patch)
            return Profile.objects.get(pk=user_id)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
