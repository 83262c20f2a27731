from django.urls import path
from .views import location_list_create

urlpatterns = [
    path('locations/', location_list_create, name='location-list-create'),
]
