"""
JSON views for django-newsletter-engine.

Post, comment and profile changes go through the governed services;
failures are turned into JSON error responses with a matching status code.
"""
import json

from django.contrib.auth.mixins import LoginRequiredMixin
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404
from django.views import View
from django.views.generic import ListView

from .conf import newsletter_settings
from .exceptions import (
    AccessDenied,
    ContentValidationFailed,
    GovernanceError,
    PersistenceError,
    RateLimited,
    StaleRecord,
)
from .models import Post, Tag
from .services import get_comment_service, get_post_service, get_profile_service

STATUS_CODES = {
    StaleRecord: 409,
    PersistenceError: 503,
    ContentValidationFailed: 400,
    RateLimited: 429,
    AccessDenied: 403,
}


def status_for(exc):
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    # InsufficientPermissions and other PermissionDenied subclasses
    return 403


def current_user_id(request):
    if request.user.is_authenticated:
        return request.user.pk
    return None


def request_data(request):
    """Submitted fields from a JSON body or form POST."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise ContentValidationFailed(["Request body is not valid JSON"])
        if not isinstance(data, dict):
            raise ContentValidationFailed(["Request body must be a JSON object"])
        return data

    data = {}
    for key in request.POST:
        if key == "csrfmiddlewaretoken":
            continue
        if key == "tags":
            data[key] = request.POST.getlist(key)
        else:
            data[key] = request.POST.get(key)
    return data


def author_summary(user):
    profile = getattr(user, "newsletter_profile", None)
    if profile is None:
        return {"id": user.pk, "username": user.get_username()}
    return {
        "id": user.pk,
        "username": profile.username,
        "display_name": profile.display_name,
        "avatar_url": profile.avatar_url,
    }


def serialize_post(post, detail=False):
    data = {
        "id": post.pk,
        "author_id": post.author_id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.preview,
        "status": post.status,
        "created_at": post.created_at.isoformat(),
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "read_count": post.read_count,
        "like_count": post.like_count,
        "version": post.version,
        "tags": [{"name": tag.name, "slug": tag.slug} for tag in post.tags.all()],
    }
    if detail:
        data["content"] = post.content
        data["author"] = author_summary(post.author)
    return data


def serialize_comment(comment, with_replies=False):
    data = {
        "id": comment.pk,
        "post_id": comment.post_id,
        "parent_id": comment.parent_id,
        "author": author_summary(comment.author),
        "content": comment.content,
        "like_count": comment.like_count,
        "created_at": comment.created_at.isoformat(),
    }
    if with_replies:
        data["replies"] = [serialize_comment(reply) for reply in comment.replies.all()]
    return data


def serialize_profile(profile, private=False):
    data = {
        "id": profile.pk,
        "username": profile.username,
        "display_name": profile.display_name,
        "avatar_url": profile.avatar_url,
        "bio": profile.bio,
        "created_at": profile.created_at.isoformat(),
    }
    if private:
        # Capability flags are shown to their owner but never writable here
        data.update({
            "can_publish": profile.can_publish,
            "is_verified": profile.is_verified,
            "is_moderator": profile.is_moderator,
            "is_admin": profile.is_admin,
        })
    return data


class GovernedViewMixin:
    """Render GovernanceError as a JSON error response."""

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except GovernanceError as exc:
            return JsonResponse(exc.to_dict(), status=status_for(exc))


class PostListView(ListView):
    """List published posts with pagination."""

    model = Post
    paginate_by = newsletter_settings.POSTS_PER_PAGE

    def get_queryset(self):
        return Post.objects.published().with_relations().order_by("-published_at")

    def render_to_response(self, context, **response_kwargs):
        page = context["page_obj"]
        return JsonResponse({
            "posts": [serialize_post(post) for post in context["object_list"]],
            "page": page.number if page else 1,
            "has_next": page.has_next() if page else False,
        })


class TagPostListView(PostListView):
    """List published posts with a specific tag."""

    def get_queryset(self):
        self.tag = get_object_or_404(Tag, slug=self.kwargs["slug"])
        return super().get_queryset().filter(tags=self.tag)


class TagListView(View):
    def get(self, request):
        return JsonResponse({
            "tags": [
                {"name": tag.name, "slug": tag.slug, "post_count": tag.post_count}
                for tag in Tag.objects.all()
            ]
        })


class PostDetailView(GovernedViewMixin, View):
    """Display a single post the current user may read."""

    def fetch(self, service, user_id):
        return service.get_post(self.kwargs["pk"], user_id)

    def get(self, request, **kwargs):
        user_id = current_user_id(request)
        post = self.fetch(get_post_service(request), user_id)
        post.increment_read_count()
        data = serialize_post(post, detail=True)
        data["liked"] = get_comment_service(request).has_liked(post.pk, user_id)
        return JsonResponse(data)


class PostBySlugView(PostDetailView):
    def fetch(self, service, user_id):
        return service.get_post_by_slug(self.kwargs["slug"], user_id)


class PostCreateView(LoginRequiredMixin, GovernedViewMixin, View):
    """Create a new draft post."""

    def post(self, request):
        post = get_post_service(request).create_post(request_data(request), request.user.pk)
        return JsonResponse(serialize_post(post, detail=True), status=201)


class PostUpdateView(LoginRequiredMixin, GovernedViewMixin, View):
    """Edit an unpublished post."""

    def post(self, request, pk):
        post = get_post_service(request).update_post(pk, request_data(request), request.user.pk)
        return JsonResponse(serialize_post(post, detail=True))


class PostPublishView(LoginRequiredMixin, GovernedViewMixin, View):
    def post(self, request, pk):
        post = get_post_service(request).publish_post(pk, request.user.pk)
        return JsonResponse(serialize_post(post, detail=True))


class PostArchiveView(LoginRequiredMixin, GovernedViewMixin, View):
    def post(self, request, pk):
        post = get_post_service(request).archive_post(pk, request.user.pk)
        return JsonResponse(serialize_post(post, detail=True))


class PostDeleteView(LoginRequiredMixin, GovernedViewMixin, View):
    def post(self, request, pk):
        get_post_service(request).delete_post(pk, request.user.pk)
        return JsonResponse({"deleted": True})


class CommentListView(GovernedViewMixin, View):
    """Top-level comments on a post, each with its replies."""

    def get(self, request, pk):
        comments = get_comment_service(request).list_comments(pk, current_user_id(request))
        return JsonResponse({
            "comments": [serialize_comment(c, with_replies=True) for c in comments]
        })


class CommentCreateView(LoginRequiredMixin, GovernedViewMixin, View):
    """Add a comment or a reply to a post."""

    def post(self, request, pk):
        data = request_data(request)
        parent_id = data.get("parent_id") or None
        comment = get_comment_service(request).create_comment(
            pk, data.get("content"), request.user.pk, parent_id=parent_id
        )
        return JsonResponse(serialize_comment(comment), status=201)


class CommentUpdateView(LoginRequiredMixin, GovernedViewMixin, View):
    def post(self, request, pk):
        data = request_data(request)
        comment = get_comment_service(request).edit_comment(
            pk, data.get("content"), request.user.pk
        )
        return JsonResponse(serialize_comment(comment))


class CommentDeleteView(LoginRequiredMixin, GovernedViewMixin, View):
    def post(self, request, pk):
        get_comment_service(request).delete_comment(pk, request.user.pk)
        return JsonResponse({"deleted": True})


class LikeToggleView(LoginRequiredMixin, GovernedViewMixin, View):
    """Toggle the current user's like on a post."""

    def post(self, request, pk):
        liked = get_comment_service(request).toggle_like(pk, request.user.pk)
        post = Post.objects.get(pk=pk)
        return JsonResponse({"liked": liked, "like_count": post.like_count})


class ProfileDetailView(GovernedViewMixin, View):
    """Public profile with the user's published posts."""

    def get(self, request, username):
        profile = get_profile_service(request).get_profile(username)
        if profile is None:
            raise Http404("No such profile")
        posts = (
            Post.objects.published()
            .filter(author_id=profile.pk)
            .with_relations()
            .order_by("-published_at")
        )
        data = serialize_profile(profile)
        data["posts"] = [serialize_post(post) for post in posts]
        return JsonResponse(data)


class CurrentProfileView(LoginRequiredMixin, GovernedViewMixin, View):
    """Read or update the logged-in user's own profile."""

    def get(self, request):
        profile = get_profile_service(request).get_current_profile(request.user.pk)
        if profile is None:
            raise Http404("No profile for this user")
        return JsonResponse(serialize_profile(profile, private=True))

    def post(self, request):
        profile = get_profile_service(request).update_profile(
            request.user.pk, request_data(request)
        )
        return JsonResponse(serialize_profile(profile, private=True))


class UsernameAvailabilityView(GovernedViewMixin, View):
    def get(self, request):
        username = request.GET.get("username", "").strip()
        if not username:
            raise ContentValidationFailed(["Username is required"])
        available = get_profile_service(request).is_username_available(
            username, current_user_id(request)
        )
        return JsonResponse({"username": username, "available": available})
