"""
django-newsletter-engine - Governed publishing for a markdown newsletter.

Features:
- Posts with a draft / published / archived workflow
- Profiles with publish, verification and moderation capabilities
- Fixed-window rate limiting per user and action
- Post validation and best-effort content sanitization
- Append-only audit log of governed actions
- One-level threaded comments and likes
"""

__version__ = "0.1.0"
__author__ = "Nestor Wheelock"
