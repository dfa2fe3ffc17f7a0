from django.urls import path

from .views import (
    ConnectView,
    DisconnectView,
    MyDoctorsView,
    ProviderConnectionDecisionView,
    ProviderConnectionsView,
)

urlpatterns = [
    path('patient/my-doctors/', MyDoctorsView.as_view(), name='patient-my-doctors'),
    path('patient/doctors/connect/', ConnectView.as_view(), name='patient-connect'),
    path('patient/my-doctors/disconnect/', DisconnectView.as_view(), name='patient-disconnect'),
    path('provider/connections/', ProviderConnectionsView.as_view(), name='provider-connections'),
    path(
        'provider/connections/<uuid:link_id>/approve/',
        ProviderConnectionDecisionView.as_view(decision='approve'),
        name='provider-connection-approve',
    ),
    path(
        'provider/connections/<uuid:link_id>/reject/',
        ProviderConnectionDecisionView.as_view(decision='reject'),
        name='provider-connection-reject',
    ),
]
