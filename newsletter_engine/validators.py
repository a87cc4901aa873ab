"""
Content validation and sanitization for posts, comments and profiles.

sanitize_content() is a denylist filter and only defense in depth. It does
not make arbitrary HTML safe; rendered output must still go through an
allow-list sanitizer at display time.
"""
import re
from dataclasses import dataclass, field

from django.contrib.auth.validators import UnicodeUsernameValidator
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator

from .conf import newsletter_settings

SCRIPT_BLOCK_RE = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
    re.IGNORECASE,
)
JAVASCRIPT_URI_RE = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_RE = re.compile(r"\bon\w+\s*=", re.IGNORECASE)

INAPPROPRIATE_MESSAGE = "Content contains inappropriate language"

TEXT_FIELDS = ("title", "content", "excerpt", "slug")
PROFILE_TEXT_FIELDS = ("username", "display_name", "avatar_url", "bio")
USERNAME_MAX_LENGTH = 50
DISPLAY_NAME_MAX_LENGTH = 100


@dataclass
class ValidationResult:
    valid: bool
    errors: list = field(default_factory=list)

    def __bool__(self):
        return self.valid


def find_denied_word(*texts):
    """Return the first denylisted word found in the texts, or None."""
    haystack = " ".join(text for text in texts if text).lower()
    for word in newsletter_settings.DENYLIST:
        if word.lower() in haystack:
            return word
    return None


def _type_errors(data):
    """Errors for text fields that are present but not strings, and for bad tags."""
    errors = []
    for name in TEXT_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"Field '{name}' must be a string")
    tags = data.get("tags")
    if tags is not None and (
        not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags)
    ):
        errors.append("Field 'tags' must be a list of strings")
    return errors


def validate_post(data, partial=False):
    """
    Validate post fields and collect every rule that fails.

    With ``partial=True`` only the fields present in ``data`` are checked,
    which is how updates are validated. A field of the wrong type is
    reported once and skips its length and denylist checks.
    """
    errors = _type_errors(data)
    title = data.get("title")
    content = data.get("content")
    title_ok = title is None or isinstance(title, str)
    content_ok = content is None or isinstance(content, str)
    min_title = newsletter_settings.TITLE_MIN_LENGTH
    max_title = newsletter_settings.TITLE_MAX_LENGTH
    min_content = newsletter_settings.CONTENT_MIN_LENGTH

    if title_ok and (not partial or "title" in data):
        if not title or len(title) < min_title:
            errors.append(f"Title must be at least {min_title} characters")
        if title and len(title) > max_title:
            errors.append(f"Title must be less than {max_title} characters")

    if content_ok and (not partial or "content" in data):
        if not content or len(content) < min_content:
            errors.append(f"Content must be at least {min_content} characters")

    if find_denied_word(title if title_ok else None, content if content_ok else None):
        errors.append(INAPPROPRIATE_MESSAGE)

    return ValidationResult(valid=not errors, errors=errors)


def validate_comment(content):
    if content is not None and not isinstance(content, str):
        return ValidationResult(valid=False, errors=["Field 'content' must be a string"])

    errors = []
    max_length = newsletter_settings.COMMENT_MAX_LENGTH
    if not content or not content.strip():
        errors.append("Comment content is required")
    elif len(content) > max_length:
        errors.append(f"Comment must be at most {max_length} characters")
    if find_denied_word(content):
        errors.append(INAPPROPRIATE_MESSAGE)
    return ValidationResult(valid=not errors, errors=errors)


def validate_profile(data):
    """Validate the public profile fields a user may change."""
    errors = []
    for name in PROFILE_TEXT_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"Field '{name}' must be a string")
    if errors:
        return ValidationResult(valid=False, errors=errors)

    if "username" in data:
        username = data["username"] or ""
        if not username:
            errors.append("Username is required")
        elif len(username) > USERNAME_MAX_LENGTH:
            errors.append(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
        else:
            try:
                UnicodeUsernameValidator()(username)
            except ValidationError:
                errors.append("Username may only contain letters, numbers and @/./+/-/_")

    display_name = data.get("display_name") or ""
    if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
        errors.append(f"Display name must be at most {DISPLAY_NAME_MAX_LENGTH} characters")

    avatar_url = data.get("avatar_url")
    if avatar_url:
        try:
            URLValidator(schemes=["http", "https"])(avatar_url)
        except ValidationError:
            errors.append("Avatar URL must be a valid http(s) URL")

    if find_denied_word(data.get("username"), data.get("display_name"), data.get("bio")):
        errors.append(INAPPROPRIATE_MESSAGE)

    return ValidationResult(valid=not errors, errors=errors)


def sanitize_content(text):
    """
    Strip script blocks, javascript: URIs and inline on*= handlers.

    Passes repeat until the text stops changing, so nested payloads such
    as ``javajavascript:script:`` do not survive and sanitizing twice
    gives the same result as sanitizing once.
    """
    if not text:
        return text
    while True:
        cleaned = SCRIPT_BLOCK_RE.sub("", text)
        cleaned = JAVASCRIPT_URI_RE.sub("", cleaned)
        cleaned = EVENT_HANDLER_RE.sub("", cleaned)
        if cleaned == text:
            return cleaned
        text = cleaned
