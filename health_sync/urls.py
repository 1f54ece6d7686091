from django.urls import include, path

urlpatterns = [
    path("api/", include("base.urls")),
    path("", include("metrics.urls")),
]
