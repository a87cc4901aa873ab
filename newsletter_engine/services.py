"""
Governed post, comment and profile operations.

Every operation runs a fixed pipeline and stops at the first failing
step, so a failure leaves no side effects behind:

    permission check -> rate limit -> validate + sanitize -> persist -> audit

Services are built per request with their collaborators passed in;
get_post_service(), get_comment_service() and get_profile_service() provide
the default wiring.
"""
import logging

from django.utils import timezone
from django.utils.text import slugify

from .audit import AuditLogger
from .conf import get_rate_limit, newsletter_settings
from .exceptions import (
    AccessDenied,
    ContentValidationFailed,
    InsufficientPermissions,
    PersistenceError,
    RateLimited,
)
from .permissions import PermissionService, same_id
from .ratelimit import get_rate_limiter
from .repository import PostRepository
from .validators import (
    sanitize_content,
    validate_comment,
    validate_post,
    validate_profile,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "content", "excerpt", "slug", "tags")
SANITIZED_FIELDS = ("title", "content", "excerpt")
PROFILE_FIELDS = ("username", "display_name", "avatar_url", "bio")


def client_metadata(request):
    """Network metadata for audit records, taken from a Django request."""
    if request is None:
        return {}
    return {
        "ip_address": request.META.get("REMOTE_ADDR") or None,
        "user_agent": request.META.get("HTTP_USER_AGENT", ""),
    }


class GovernedService:
    """Collaborators and pipeline steps shared by the governed services."""

    def __init__(self, repository, rate_limiter, permissions=None, audit=None, client=None):
        self.repository = repository
        self.rate_limiter = rate_limiter
        self.permissions = permissions or PermissionService(repository)
        self.audit = audit or AuditLogger(repository)
        self.client = client or {}

    def require_user(self, user_id):
        if user_id is None:
            raise AccessDenied("Authentication required")

    def throttle(self, user_id, action):
        limit, window = get_rate_limit(action)
        if self.rate_limiter.is_limited(user_id, action, limit, window):
            logger.info("Rate limited %s on %s", user_id, action)
            raise RateLimited(action)

    def record(self, user_id, action, resource, resource_id, details=None):
        self.audit.log_action(
            user_id, action, resource, resource_id, details,
            ip_address=self.client.get("ip_address"),
            user_agent=self.client.get("user_agent", ""),
        )


class SecurePostService(GovernedService):
    def get_post(self, post_id, user_id=None):
        if not self.permissions.can_read_post(post_id, user_id):
            logger.info("Read of post %s denied for %s", post_id, user_id)
            raise AccessDenied()

        # Anonymous reads are not throttled
        if user_id is not None:
            self.throttle(user_id, "read_post")

        post = self.repository.find_post(post_id, related=True)
        if post is None:
            raise PersistenceError(f"Post {post_id} disappeared while being read")

        if user_id is not None:
            self.record(user_id, "read", "post", post.pk)
        return post

    def get_post_by_slug(self, slug, user_id=None):
        """Resolve ``slug`` to a post and read it through get_post()."""
        post = self.repository.find_post_by_slug(slug)
        if post is None:
            raise AccessDenied()
        return self.get_post(post.pk, user_id)

    def create_post(self, data, user_id):
        """Create a draft post owned by ``user_id``."""
        self.require_user(user_id)
        self.throttle(user_id, "create_post")

        errors = self._field_errors(data)
        errors.extend(validate_post(data).errors)
        if errors:
            raise ContentValidationFailed(errors)

        values = self._clean(data)
        values.setdefault("excerpt", "")
        values["author_id"] = user_id
        values["status"] = "draft"
        post = self.repository.insert_post(values)

        self.record(user_id, "create", "post", post.pk, {"title": post.title})
        return post

    def update_post(self, post_id, updates, user_id):
        post = self.permissions.edit_grant(post_id, user_id)
        if post is None:
            logger.info("Edit of post %s denied for %s", post_id, user_id)
            raise AccessDenied()

        self.throttle(user_id, "update_post")

        errors = self._field_errors(updates)
        errors.extend(validate_post(updates, partial=True).errors)
        if errors:
            raise ContentValidationFailed(errors)

        patch = self._clean(updates)
        patch["updated_at"] = timezone.now()
        updated = self._write(post, patch)

        self.record(user_id, "update", "post", post.pk, {"fields": sorted(updates)})
        return updated

    def publish_post(self, post_id, user_id):
        if not self.permissions.can_publish(user_id):
            logger.info("Publish of post %s refused: %s lacks permission", post_id, user_id)
            raise InsufficientPermissions()

        post = self.permissions.edit_grant(post_id, user_id)
        if post is None:
            raise AccessDenied()

        now = timezone.now()
        updated = self._write(post, {
            "status": "published",
            "published_at": now,
            "updated_at": now,
        })

        self.record(user_id, "publish", "post", post.pk)
        return updated

    def archive_post(self, post_id, user_id):
        """Archive a post. Allowed for its author and for moderators."""
        post = self._owned_or_moderated(post_id, user_id, allow_published=True)
        updated = self._write(post, {"status": "archived", "updated_at": timezone.now()})
        self.record(user_id, "archive", "post", post.pk)
        return updated

    def delete_post(self, post_id, user_id):
        """Delete a post. Authors may delete unpublished posts; moderators any post."""
        post = self._owned_or_moderated(post_id, user_id, allow_published=False)
        self.repository.delete_post(post.pk)
        self.record(user_id, "delete", "post", post.pk, {"title": post.title})

    def _owned_or_moderated(self, post_id, user_id, allow_published):
        self.require_user(user_id)
        post = self.repository.find_post(post_id)
        if post is None:
            raise AccessDenied()
        is_author = same_id(post.author_id, user_id)
        if is_author and (allow_published or post.status != "published"):
            return post
        if self.permissions.can_moderate(user_id):
            return post
        logger.info("Change to post %s denied for %s", post_id, user_id)
        raise AccessDenied()

    def _write(self, post, patch):
        try:
            return self.repository.update_post(post.pk, patch, expected_version=post.version)
        except PersistenceError:
            logger.warning("Write to post %s failed at version %s", post.pk, post.version)
            raise

    @staticmethod
    def _field_errors(data):
        return [
            f"Field '{name}' cannot be set directly"
            for name in data
            if name not in EDITABLE_FIELDS
        ]

    @staticmethod
    def _clean(data):
        """Sanitize text fields and normalize slug and tags."""
        values = {}
        for name in EDITABLE_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if name in SANITIZED_FIELDS:
                value = sanitize_content(value) if value else ""
            elif name == "slug":
                value = slugify(value or "")[:newsletter_settings.SLUG_MAX_LENGTH]
            elif name == "tags":
                value = list(value or ())
            values[name] = value
        return values


class SecureCommentService(GovernedService):
    def list_comments(self, post_id, user_id=None):
        if not self.permissions.can_read_post(post_id, user_id):
            raise AccessDenied()
        return self.repository.list_comments(post_id)

    def create_comment(self, post_id, content, user_id, parent_id=None):
        self.require_user(user_id)
        if not self.permissions.can_read_post(post_id, user_id):
            raise AccessDenied()

        self.throttle(user_id, "create_comment")

        errors = validate_comment(content).errors
        if parent_id is not None:
            parent = self.repository.find_comment(parent_id)
            if parent is None or not same_id(parent.post_id, post_id):
                errors.append("Parent comment not found on this post")
            elif parent.parent_id is not None:
                errors.append("Replies can only be made to top-level comments")
        if errors:
            raise ContentValidationFailed(errors)

        comment = self.repository.insert_comment({
            "post_id": post_id,
            "author_id": user_id,
            "parent_id": parent_id,
            "content": sanitize_content(content.strip()),
        })
        self.record(user_id, "create", "comment", comment.pk, {"post_id": str(post_id)})
        return comment

    def edit_comment(self, comment_id, content, user_id):
        self.require_user(user_id)
        comment = self.repository.find_comment(comment_id)
        if comment is None or not same_id(comment.author_id, user_id):
            raise AccessDenied()

        self.throttle(user_id, "update_comment")

        result = validate_comment(content)
        if not result.valid:
            raise ContentValidationFailed(result.errors)

        updated = self.repository.update_comment(comment.pk, sanitize_content(content.strip()))
        self.record(user_id, "update", "comment", comment.pk)
        return updated

    def delete_comment(self, comment_id, user_id):
        self.require_user(user_id)
        comment = self.repository.find_comment(comment_id)
        if comment is None:
            raise AccessDenied()
        if not same_id(comment.author_id, user_id) and not self.permissions.can_moderate(user_id):
            raise AccessDenied()

        self.repository.delete_comment(comment.pk)
        self.record(user_id, "delete", "comment", comment.pk, {"post_id": str(comment.post_id)})

    def toggle_like(self, post_id, user_id):
        """Like or unlike a post. Returns True when the post is now liked."""
        self.require_user(user_id)
        if not self.permissions.can_read_post(post_id, user_id):
            raise AccessDenied()

        self.throttle(user_id, "toggle_like")

        post = self.repository.find_post(post_id)
        if post is None:
            raise PersistenceError(f"Post {post_id} disappeared while being liked")
        return self.repository.toggle_like(post, user_id)

    def has_liked(self, post_id, user_id):
        if user_id is None:
            return False
        return self.repository.has_liked(post_id, user_id)


class SecureProfileService(GovernedService):
    """Public profile reads and self-service profile updates."""

    def get_profile(self, username):
        """Return the profile for ``username``, or None. Profiles are public."""
        return self.repository.find_profile_by_username(username)

    def get_current_profile(self, user_id):
        if user_id is None:
            return None
        return self.repository.find_profile(user_id)

    def is_username_available(self, username, user_id=None):
        return self.repository.is_username_available(username, user_id)

    def update_profile(self, user_id, updates):
        """
        Change the caller's own public profile fields.

        Capability flags are not in PROFILE_FIELDS, so users cannot grant
        themselves publishing or moderation rights.
        """
        self.require_user(user_id)
        profile = self.repository.find_profile(user_id)
        if profile is None:
            raise AccessDenied()

        self.throttle(user_id, "update_profile")

        errors = [
            f"Field '{name}' cannot be set directly"
            for name in updates
            if name not in PROFILE_FIELDS
        ]
        result = validate_profile(updates)
        errors.extend(result.errors)
        username = updates.get("username")
        if result.valid and username:
            if not self.repository.is_username_available(username, user_id):
                errors.append("Username is already taken")
        if errors:
            raise ContentValidationFailed(errors)

        patch = {}
        for name in PROFILE_FIELDS:
            if name not in updates:
                continue
            value = updates[name] or ""
            if name in ("display_name", "bio"):
                value = sanitize_content(value)
            patch[name] = value.strip()
        updated = self.repository.update_profile(user_id, patch)

        self.record(user_id, "update", "profile", user_id, {"fields": sorted(updates)})
        return updated


def get_post_service(request=None):
    return SecurePostService(
        PostRepository(), get_rate_limiter(), client=client_metadata(request)
    )


def get_comment_service(request=None):
    return SecureCommentService(
        PostRepository(), get_rate_limiter(), client=client_metadata(request)
    )


def get_profile_service(request=None):
    return SecureProfileService(
        PostRepository(), get_rate_limiter(), client=client_metadata(request)
    )
