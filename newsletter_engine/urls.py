"""
URL configuration for django-newsletter-engine.

Include in your project urls.py:

    path('newsletter/', include('newsletter_engine.urls')),
"""
from django.urls import path

from . import views

app_name = "newsletter_engine"

urlpatterns = [
    # Post list and detail
    path("", views.PostListView.as_view(), name="post_list"),
    path("post/<int:pk>/", views.PostDetailView.as_view(), name="post_detail"),
    path("post/slug/<slug:slug>/", views.PostBySlugView.as_view(), name="post_by_slug"),

    # Post workflow
    path("post/new/", views.PostCreateView.as_view(), name="post_create"),
    path("post/<int:pk>/edit/", views.PostUpdateView.as_view(), name="post_update"),
    path("post/<int:pk>/publish/", views.PostPublishView.as_view(), name="post_publish"),
    path("post/<int:pk>/archive/", views.PostArchiveView.as_view(), name="post_archive"),
    path("post/<int:pk>/delete/", views.PostDeleteView.as_view(), name="post_delete"),

    # Tags
    path("tags/", views.TagListView.as_view(), name="tag_list"),
    path("tag/<slug:slug>/", views.TagPostListView.as_view(), name="tag_detail"),

    # Interactions
    path("post/<int:pk>/comments/", views.CommentListView.as_view(), name="comment_list"),
    path("post/<int:pk>/comment/", views.CommentCreateView.as_view(), name="comment_create"),
    path("comment/<int:pk>/edit/", views.CommentUpdateView.as_view(), name="comment_update"),
    path("comment/<int:pk>/delete/", views.CommentDeleteView.as_view(), name="comment_delete"),
    path("post/<int:pk>/like/", views.LikeToggleView.as_view(), name="like_toggle"),

    # Profiles
    path("profile/", views.CurrentProfileView.as_view(), name="profile_current"),
    path("profile/<str:username>/", views.ProfileDetailView.as_view(), name="profile_detail"),
    path("username-available/", views.UsernameAvailabilityView.as_view(), name="username_available"),
]
