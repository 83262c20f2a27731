from django.urls import path
from .views import summary, low_stock, notifications

urlpatterns = [
    path('dashboard/summary/', summary, name='dashboard-summary'),
    path('dashboard/low-stock/', low_stock, name='dashboard-low-stock'),
    path('notifications/', notifications, name='notifications'),
]
