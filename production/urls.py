# production/urls.py

from django.urls import path

from . import api

app_name = "production"

urlpatterns = [
    path("api/orders/", api.order_list, name="api_order_list"),
    path("api/orders/<int:pk>/", api.order_detail, name="api_order_detail"),
    path("api/batches/<int:pk>/", api.batch_detail, name="api_batch_detail"),
]
