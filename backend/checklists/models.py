import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class ChecklistTemplate(models.Model):
    """Checklist definition; tenant templates are named ``<base> - <tenant code>``"""
    SCHEDULE_DAILY = 'DAILY'
    SCHEDULE_WEEKLY = 'WEEKLY'
    SCHEDULE_CHOICES = [
        (SCHEDULE_DAILY, 'Daily'),
        (SCHEDULE_WEEKLY, 'Weekly'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    schedule = models.CharField(max_length=20, choices=SCHEDULE_CHOICES, default=SCHEDULE_DAILY)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='checklist_templates'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'checklist_templates'
        ordering = ['name']


class ChecklistRun(models.Model):
    """One checklist instance for a template, date and location"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SUBMITTED, 'Submitted'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(ChecklistTemplate, on_delete=models.CASCADE, related_name='runs')
    location = models.ForeignKey(
        'locations.Location', on_delete=models.SET_NULL, null=True, blank=True, related_name='checklist_runs'
    )
    run_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='checklist_runs'
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='submitted_checklist_runs'
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.template.name} {self.run_date}"

    class Meta:
        db_table = 'checklist_runs'
        ordering = ['-run_date', '-updated_at']
        unique_together = [['template', 'run_date', 'location']]
        constraints = [
            # NULLs are distinct in the unique_together index
            models.UniqueConstraint(
                fields=['template', 'run_date'],
                condition=Q(location__isnull=True),
                name='uniq_checklist_run_without_location',
            ),
        ]


class ChecklistRunItem(models.Model):
    """Single line of a run. The title is stored as ``<TYPE>::<title>``."""
    RESULT_OK = 'OK'
    RESULT_LOW = 'LOW'
    RESULT_OUT = 'OUT'
    RESULT_DAMAGED = 'DAMAGED'
    RESULT_NA = 'NA'
    RESULT_CHOICES = [
        (RESULT_OK, 'Aman'),
        (RESULT_LOW, 'Menipis'),
        (RESULT_OUT, 'Habis'),
        (RESULT_DAMAGED, 'Rusak'),
        (RESULT_NA, 'Belum Dicek'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    run = models.ForeignKey(ChecklistRun, on_delete=models.CASCADE, related_name='items')
    title = models.CharField(max_length=255)
    result = models.CharField(max_length=20, choices=RESULT_CHOICES, default=RESULT_NA)
    notes = models.TextField(blank=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'checklist_run_items'
        ordering = ['title']
