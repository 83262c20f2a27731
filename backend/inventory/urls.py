from django.urls import path
from .views import stock_list, transaction_list_create, transaction_bulk_adjust, transaction_export_telegram

urlpatterns = [
    path('stocks/', stock_list, name='stock-list'),
    path('transactions/', transaction_list_create, name='transaction-list-create'),
    path('transactions/bulk-adjust/', transaction_bulk_adjust, name='transaction-bulk-adjust'),
    path('transactions/export/send-telegram/', transaction_export_telegram, name='transaction-export-telegram'),
]
