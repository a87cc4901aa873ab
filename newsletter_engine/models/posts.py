"""
Post, Profile, and Tag models for django-newsletter-engine.
"""
from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.text import slugify

from ..conf import newsletter_settings


class Tag(models.Model):
    """
    Flat tag for posts.

    Tags are non-hierarchical and can be applied to multiple posts.
    """

    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:newsletter_settings.SLUG_MAX_LENGTH]
        super().save(*args, **kwargs)

    @property
    def post_count(self):
        """Return count of published posts with this tag."""
        return self.posts.filter(status=Post.PUBLISHED).count()


class Profile(models.Model):
    """
    Public profile and capability flags for a user.

    The profile shares its primary key with the auth user, so a post's
    author_id is also the id of the author's profile.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        primary_key=True,
        on_delete=models.CASCADE,
        related_name="newsletter_profile",
    )
    username = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100, blank=True)
    avatar_url = models.URLField(blank=True)
    bio = models.TextField(blank=True)

    # Capabilities
    can_publish = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)
    is_moderator = models.BooleanField(default=False)
    is_admin = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["username"]

    def __str__(self):
        return self.display_name or self.username

    @property
    def may_publish(self):
        """Publishing needs both the capability and a verified account."""
        return self.can_publish and self.is_verified

    @property
    def may_moderate(self):
        return self.is_moderator or self.is_admin

    @classmethod
    def is_username_available(cls, username, exclude_pk=None):
        """Check whether no other profile has claimed this username yet."""
        return not (
            cls.objects.filter(username__iexact=username).exclude(pk=exclude_pk).exists()
        )


class PostQuerySet(models.QuerySet):
    def published(self):
        return self.filter(status=Post.PUBLISHED)

    def with_relations(self):
        """Join the author profile and prefetch tags."""
        return self.select_related("author__newsletter_profile").prefetch_related("tags")


class Post(models.Model):
    """
    Newsletter post / article written in markdown.

    Supports:
    - Draft, published and archived states
    - Optimistic concurrency through a version counter
    - Read and like counters
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    STATUS_CHOICES = newsletter_settings.POST_STATUS_CHOICES

    # Content
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=255, blank=True, db_index=True)
    content = models.TextField()
    excerpt = models.TextField(
        blank=True,
        help_text="Optional manual excerpt. Auto-generated if blank.",
    )

    # Author - uses Django's AUTH_USER_MODEL
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="newsletter_posts",
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=DRAFT,
        db_index=True,
    )
    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When post was actually published",
    )

    # Concurrency
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every governed update",
    )

    # Taxonomy
    tags = models.ManyToManyField(Tag, related_name="posts", blank=True)

    # Engagement stats
    read_count = models.PositiveIntegerField(default=0)
    like_count = models.PositiveIntegerField(default=0)

    # Timestamps
    created_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "-published_at"]),
            models.Index(fields=["author", "-created_at"]),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        # Slug from the supplied value, else from the title, made unique
        source = self.slug or self.title
        if source:
            self.slug = Post.unique_slug(source, exclude_pk=self.pk)

        if not self.created_at:
            self.created_at = timezone.now()

        if self.status == self.PUBLISHED and not self.published_at:
            self.published_at = timezone.now()

        super().save(*args, **kwargs)

    @classmethod
    def unique_slug(cls, text, exclude_pk=None):
        """Slugify ``text`` and add -1, -2... until no other post uses it."""
        base_slug = slugify(text)[:newsletter_settings.SLUG_MAX_LENGTH] or "post"
        slug = base_slug
        counter = 1
        while cls.objects.filter(slug=slug).exclude(pk=exclude_pk).exists():
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    @property
    def preview(self):
        """Return the excerpt, or truncated content for feed display."""
        if self.excerpt:
            return self.excerpt
        if len(self.content) > 280:
            return self.content[:280] + "..."
        return self.content

    @property
    def is_published(self):
        return self.status == self.PUBLISHED

    def increment_read_count(self):
        """Increment read count atomically."""
        Post.objects.filter(pk=self.pk).update(read_count=models.F("read_count") + 1)
        self.refresh_from_db(fields=["read_count"])
