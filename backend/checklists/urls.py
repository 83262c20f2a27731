from django.urls import path
from .views import (
    checklist_today, checklist_submit, checklist_monitoring,
    checklist_today_export_telegram, checklist_monitoring_export_telegram,
)

urlpatterns = [
    path('checklists/today/', checklist_today, name='checklist-today'),
    path('checklists/today/submit/', checklist_submit, name='checklist-submit'),
    path('checklists/today/export/send-telegram/', checklist_today_export_telegram,
         name='checklist-today-export-telegram'),
    path('checklists/monitoring/', checklist_monitoring, name='checklist-monitoring'),
    path('checklists/monitoring/export/send-telegram/', checklist_monitoring_export_telegram,
         name='checklist-monitoring-export-telegram'),
]
