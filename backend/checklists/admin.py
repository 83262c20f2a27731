from django.contrib import admin
from .models import ChecklistTemplate, ChecklistRun, ChecklistRunItem


class ChecklistRunItemInline(admin.TabularInline):
    model = ChecklistRunItem
    extra = 0
    fields = ['title', 'result', 'notes']


@admin.register(ChecklistTemplate)
class ChecklistTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'schedule', 'created_by', 'created_at']
    search_fields = ['name']


@admin.register(ChecklistRun)
class ChecklistRunAdmin(admin.ModelAdmin):
    list_display = ['template', 'run_date', 'location', 'status', 'submitted_by', 'submitted_at']
    list_filter = ['status', 'run_date']
    search_fields = ['template__name']
    inlines = [ChecklistRunItemInline]
