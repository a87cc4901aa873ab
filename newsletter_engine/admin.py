"""
Django admin configuration for newsletter_engine.
"""
from django.contrib import admin

from .models import AuditLogEntry, Comment, Like, Post, Profile, Tag


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "post_count", "created_at"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["created_at"]


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = [
        "username",
        "display_name",
        "can_publish",
        "is_verified",
        "is_moderator",
        "is_admin",
    ]
    list_filter = ["can_publish", "is_verified", "is_moderator", "is_admin"]
    search_fields = ["username", "display_name"]
    raw_id_fields = ["user"]
    readonly_fields = ["created_at", "updated_at"]
    actions = ["verify_profiles", "grant_publishing"]

    @admin.action(description="Mark selected profiles as verified")
    def verify_profiles(self, request, queryset):
        count = queryset.update(is_verified=True)
        self.message_user(request, f"{count} profiles verified.")

    @admin.action(description="Allow selected profiles to publish")
    def grant_publishing(self, request, queryset):
        count = queryset.update(can_publish=True)
        self.message_user(request, f"{count} profiles may now publish.")


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = [
        "title_preview",
        "author",
        "status",
        "read_count",
        "like_count",
        "published_at",
        "created_at",
    ]
    list_filter = ["status", "created_at", "published_at"]
    search_fields = ["title", "content", "author__username"]
    raw_id_fields = ["author"]
    filter_horizontal = ["tags"]
    date_hierarchy = "created_at"
    readonly_fields = [
        "version",
        "read_count",
        "like_count",
        "created_at",
        "updated_at",
        "published_at",
    ]
    prepopulated_fields = {"slug": ("title",)}

    fieldsets = (
        (None, {
            "fields": ("title", "slug", "content", "excerpt", "author")
        }),
        ("Status", {
            "fields": ("status", "tags")
        }),
        ("Metadata", {
            "fields": (
                "version",
                "read_count",
                "like_count",
                "created_at",
                "updated_at",
                "published_at",
            ),
            "classes": ("collapse",),
        }),
    )

    def title_preview(self, obj):
        """Truncated title for list display."""
        return obj.title[:60] + "..." if len(obj.title) > 60 else obj.title

    title_preview.short_description = "Title"


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ["preview", "author", "post", "parent", "like_count", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["content", "author__username", "post__title"]
    raw_id_fields = ["post", "author", "parent"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ["user", "post", "created_at"]
    search_fields = ["user__username", "post__title"]
    raw_id_fields = ["user", "post"]


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    """Read-only view of the audit log."""

    list_display = ["created_at", "user_id", "action", "resource", "resource_id", "ip_address"]
    list_filter = ["action", "resource", "created_at"]
    search_fields = ["user_id", "resource_id"]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
