from django.urls import path

from bucketkv.views import BatchPutView, HealthCheckView, KeyListView, KeyValueView, TallyView

app_name = "bucketkv"

urlpatterns = [
    path("buckets/<str:bucket>/keys/", KeyListView.as_view(), name="key-list"),
    path("buckets/<str:bucket>/keys/<str:key>/", KeyValueView.as_view(), name="key-detail"),
    path("buckets/<str:bucket>/batch/", BatchPutView.as_view(), name="batch"),
    path("buckets/<str:bucket>/tallies/<str:key>/", TallyView.as_view(), name="tally"),
    path("health/", HealthCheckView.as_view(), name="health"),
]
