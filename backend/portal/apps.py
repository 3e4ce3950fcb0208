from django.apps import AppConfig
from django.conf import settings


class PortalConfig(AppConfig):
    name = 'portal'
    verbose_name = 'HealthLink portal'

    def ready(self):
        from .sessions import SessionStore

        # 进程内的 session 容器；进程重启即清空
        self.sessions = SessionStore(idle_timeout=settings.PORTAL_SESSION_IDLE_SECONDS)
