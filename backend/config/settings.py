import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', '0') == '1'
ALLOWED_HOSTS = ['*']

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'corsheaders',
    'portal.apps.PortalConfig',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'
# lifecycle 的定时器跑在 ASGI 事件循环上，必须用 ASGI server 部署
ASGI_APPLICATION = 'config.asgi.application'

# 不持有任何数据表；所有记录都来自远端 HealthLink 后端
DATABASES = {}

USE_TZ = True
TIME_ZONE = 'UTC'

# CORS
CORS_ALLOW_ALL_ORIGINS = True

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
    'EXCEPTION_HANDLER': 'portal.exception_handler.unified_exception_handler',
}

# 远端 HealthLink 后端
PORTAL_BACKEND_URL = os.getenv('PORTAL_BACKEND_URL', 'http://localhost:8080')
PORTAL_BACKEND_TIMEOUT = float(os.getenv('PORTAL_BACKEND_TIMEOUT', '10'))

# lifecycle（时间单位：毫秒）
REVIEW_PROMPT_DELAY_MS = int(os.getenv('REVIEW_PROMPT_DELAY_MS', '5000'))
INTERACTION_DEBOUNCE_MS = int(os.getenv('INTERACTION_DEBOUNCE_MS', '1000'))
REMINDER_WINDOW_HOURS = int(os.getenv('REMINDER_WINDOW_HOURS', '48'))
HISTORY_FEED_LIMIT = int(os.getenv('HISTORY_FEED_LIMIT', '5'))

# 空闲多少秒后回收 PortalSession；0 = 永不回收
PORTAL_SESSION_IDLE_SECONDS = int(os.getenv('PORTAL_SESSION_IDLE_SECONDS', '1800'))

# 药物相互作用检查器：backend | llm
INTERACTION_CHECKER = os.getenv('INTERACTION_CHECKER', 'backend')

# LLM
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'anthropic')
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', '')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', '')

# Logging
PORTAL_LOG_LEVEL = os.getenv('PORTAL_LOG_LEVEL', 'INFO')
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'portal': {
            'handlers': ['console'],
            'level': PORTAL_LOG_LEVEL,
            'propagate': True,
        },
    },
}
