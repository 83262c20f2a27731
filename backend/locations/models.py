import uuid

from django.db import models

from backend.core.scoping import display_location_name, is_inactive_location_name


class Location(models.Model):
    """
    Storage location. Tenant ownership and the inactive flag are encoded in
    the name: ``<tenant code>::[INACTIVE - ]<name>``.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        return display_location_name(self.name)

    @property
    def is_active(self):
        return not is_inactive_location_name(self.name)

    class Meta:
        db_table = 'locations'
        ordering = ['name']
