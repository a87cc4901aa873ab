"""
Models for django-newsletter-engine.

All models are importable from newsletter_engine.models:

    from newsletter_engine.models import Post, Profile, Tag, Comment, Like
"""
from .posts import Tag, Profile, Post
from .comments import Comment, Like
from .audit import AuditLogEntry

__all__ = [
    # Posts
    "Tag",
    "Profile",
    "Post",
    # Comments
    "Comment",
    "Like",
    # Audit
    "AuditLogEntry",
]
