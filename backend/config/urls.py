from django.urls import include, path

urlpatterns = [
    path('api/', include('portal.urls')),
]
