from django.contrib import admin
from django.urls import path

# HTTP API lives outside this project; only the back-office admin is routed
urlpatterns = [
    path("admin/", admin.site.urls),
]
