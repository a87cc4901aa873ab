"""
Authorization checks for posts and profiles.

Every check does its own single lookup and answers False when the record
it needs does not exist.
"""


def same_id(a, b):
    if a is None or b is None:
        return False
    return str(a) == str(b)


class PermissionService:
    def __init__(self, repository):
        self.repository = repository

    def can_read_post(self, post_id, user_id=None):
        """Published posts are readable by everyone; others only by their author."""
        post = self.repository.find_post(post_id)
        if post is None:
            return False
        if post.status == "published":
            return True
        return same_id(post.author_id, user_id)

    def edit_grant(self, post_id, user_id):
        """
        Return the post if ``user_id`` may edit it, otherwise None.

        Only the author may edit, and published posts are immutable: a
        change to published content needs a new draft. The returned post
        carries the version the check saw, for a conditional write.
        """
        post = self.repository.find_post(post_id)
        if post is None:
            return None
        if not same_id(post.author_id, user_id):
            return None
        if post.status == "published":
            return None
        return post

    def can_edit_post(self, post_id, user_id):
        return self.edit_grant(post_id, user_id) is not None

    def can_publish(self, user_id):
        """Publishing needs can_publish and is_verified on the profile."""
        profile = self.repository.find_profile(user_id)
        if profile is None:
            return False
        return bool(profile.can_publish and profile.is_verified)

    def can_moderate(self, user_id):
        profile = self.repository.find_profile(user_id)
        if profile is None:
            return False
        return bool(profile.is_moderator or profile.is_admin)
