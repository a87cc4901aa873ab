"""
Comment and Like models for django-newsletter-engine.
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction

from ..conf import newsletter_settings


class Comment(models.Model):
    """
    Comment on a post.

    Replies are one level deep: a reply's parent must be a top-level
    comment on the same post.
    """

    post = models.ForeignKey(
        "newsletter_engine.Post",
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="newsletter_comments",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="replies",
    )
    content = models.TextField(max_length=newsletter_settings.COMMENT_MAX_LENGTH)
    like_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["post", "parent", "created_at"]),
        ]

    def __str__(self):
        return f"Comment by {self.author} on {self.post}"

    @property
    def preview(self):
        """Return truncated content for admin display."""
        if len(self.content) > 100:
            return self.content[:100] + "..."
        return self.content

    @property
    def is_reply(self):
        """Check if this is a reply to another comment."""
        return self.parent_id is not None

    def clean(self):
        if self.parent is None:
            return
        if self.parent.parent_id is not None:
            raise ValidationError("Replies can only be made to top-level comments")
        if self.parent.post_id != self.post_id:
            raise ValidationError("Reply must belong to the same post as its parent")


class Like(models.Model):
    """A user's like on a post. Keeps Post.like_count in step."""

    post = models.ForeignKey(
        "newsletter_engine.Post",
        on_delete=models.CASCADE,
        related_name="likes",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="newsletter_likes",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ["post", "user"]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user} likes {self.post}"

    @classmethod
    def toggle(cls, post, user):
        """
        Toggle a like on a post.

        Removes the like if the user already liked the post, adds it
        otherwise. ``user`` may be a user instance or its primary key.
        Returns True when the post is now liked.
        """
        from .posts import Post

        user_id = getattr(user, "pk", user)
        with transaction.atomic():
            existing = cls.objects.filter(post=post, user_id=user_id).first()
            if existing:
                existing.delete()
                Post.objects.filter(pk=post.pk, like_count__gt=0).update(
                    like_count=models.F("like_count") - 1
                )
                return False

            cls.objects.create(post=post, user_id=user_id)
            Post.objects.filter(pk=post.pk).update(like_count=models.F("like_count") + 1)
            return True
