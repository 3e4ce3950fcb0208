"""
ASGI entry point.

  uvicorn config.asgi:application

async 视图、去抖定时器、延迟跳转定时器共用这一个事件循环。
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_asgi_application()
