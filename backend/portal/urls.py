from django.urls import path

from .views import (
    AppointmentListView,
    FeedView,
    InteractionCheckView,
    MedicationsView,
    OutboxView,
    PromptAcceptView,
    PromptDismissView,
    SessionView,
    StatusCatalogView,
)

session = 'portal/<str:role>/<str:user_id>/'

urlpatterns = [
    path('statuses/', StatusCatalogView.as_view(), name='status-catalog'),
    path('prescriptions/interactions/', InteractionCheckView.as_view(), name='interaction-check'),

    path(session, SessionView.as_view(), name='portal-session'),
    path(session + 'feed/', FeedView.as_view(), name='portal-feed'),
    path(session + 'outbox/', OutboxView.as_view(), name='portal-outbox'),
    path(session + 'appointments/', AppointmentListView.as_view(), name='portal-appointments'),
    path(session + 'prompts/<str:appointment_id>/accept/', PromptAcceptView.as_view(), name='prompt-accept'),
    path(session + 'prompts/<str:appointment_id>/dismiss/', PromptDismissView.as_view(), name='prompt-dismiss'),
    path(session + 'medications/', MedicationsView.as_view(), name='portal-medications'),
]
