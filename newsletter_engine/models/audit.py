"""
Audit log model for django-newsletter-engine.
"""
from django.db import models


class AuditLogEntry(models.Model):
    """
    Append-only record of a governed action.

    Entries are written by AuditLogger and never updated.
    """

    user_id = models.CharField(max_length=64, db_index=True)
    action = models.CharField(max_length=50)
    resource = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=64)
    details = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Audit Log Entry"
        verbose_name_plural = "Audit Log"
        indexes = [
            models.Index(fields=["resource", "resource_id"]),
        ]

    def __str__(self):
        return f"{self.user_id} {self.action} {self.resource}:{self.resource_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not kwargs.get("force_insert"):
            raise ValueError("Audit log entries are append-only")
        super().save(*args, **kwargs)
