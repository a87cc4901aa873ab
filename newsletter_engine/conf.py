"""
Configuration settings for django-newsletter-engine.

Override these in your Django settings.py:

    NEWSLETTER_ENGINE = {
        'RATE_LIMITS': {'create_post': (20, 3600)},
        'RATE_LIMITER_BACKEND': 'cache',
        'DENYLIST': ['spam', 'scam'],
        ...
    }

RATE_LIMITS entries are merged over the defaults, so overriding one action
keeps the others.
"""
from django.conf import settings

DEFAULTS = {
    # Post workflow
    "POST_STATUS_CHOICES": [
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ],
    "POSTS_PER_PAGE": 10,
    "SLUG_MAX_LENGTH": 100,

    # Rate limiting: action -> (limit, window in seconds)
    "RATE_LIMITS": {
        "read_post": (1000, 3600),
        "create_post": (10, 3600),
        "update_post": (50, 3600),
        "create_comment": (30, 3600),
        "update_comment": (30, 3600),
        "toggle_like": (300, 3600),
        "update_profile": (20, 3600),
    },
    "RATE_LIMITER_BACKEND": "memory",  # or "cache"
    "RATE_LIMITER_MAX_KEYS": 10000,
    "RATE_LIMITER_SWEEP_INTERVAL": 1000,  # calls between sweeps of expired windows
    "RATE_LIMIT_CACHE_ALIAS": "default",
    "RATE_LIMIT_CACHE_PREFIX": "newsletter-rl",

    # Content validation
    "TITLE_MIN_LENGTH": 3,
    "TITLE_MAX_LENGTH": 200,
    "CONTENT_MIN_LENGTH": 10,
    "DENYLIST": ["spam", "scam", "fake"],
    "COMMENT_MAX_LENGTH": 5000,

    # Audit
    "AUDIT_FAIL_SILENTLY": True,
}


class NewsletterEngineSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from newsletter_engine.conf import newsletter_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid newsletter_engine setting: {name}")

        user_settings = getattr(settings, "NEWSLETTER_ENGINE", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def RATE_LIMITS(self):
        """Return the per-action rate limits with user overrides merged in."""
        user_settings = getattr(settings, "NEWSLETTER_ENGINE", {})
        limits = dict(DEFAULTS["RATE_LIMITS"])
        limits.update(user_settings.get("RATE_LIMITS", {}))
        return limits


newsletter_settings = NewsletterEngineSettings()


def get_rate_limit(action):
    """
    Return the (limit, window_seconds) policy for an action.

    Raises KeyError for actions without a configured policy.
    """
    return newsletter_settings.RATE_LIMITS[action]
