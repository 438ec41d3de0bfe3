# bloodnet/settings.py
"""
Django settings for the BloodNet project.

Every deploy-specific value comes from the environment (a local .env file is
loaded first).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    try:
        value = int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def env_float(name, default):
    try:
        value = float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'bloodnet-dev-secret-key-change-me')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h.strip() for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]


# ========================================
# APPLICATIONS
# ========================================
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',

    'accounts',
    'bloodrequests',
    'donors',
    'matching',
    'alerts',
    'api',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'bloodnet.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION = 'bloodnet.asgi.application'
WSGI_APPLICATION = 'bloodnet.wsgi.application'


# ========================================
# DATABASE
# ========================================
DB_ENGINE = os.environ.get('DB_ENGINE', 'sqlite')

if DB_ENGINE == 'postgres':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME', 'bloodnet'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.environ.get('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'accounts.User'


# ========================================
# I18N / STATIC
# ========================================
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('DJANGO_TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# ========================================
# REST FRAMEWORK
# ========================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'EXCEPTION_HANDLER': 'api.exceptions.api_exception_handler',
}


# ========================================
# DONOR MATCHING / CACHE
# ========================================
# REDIS_URL empty -> in-process cache only
MATCHING = {
    'REDIS_URL': os.environ.get('REDIS_URL', ''),
    'REDIS_CONNECT_TIMEOUT': env_float('REDIS_CONNECT_TIMEOUT_SECONDS', 2.0),
    'REDIS_RETRY_SECONDS': env_int('REDIS_RETRY_SECONDS', 30),
    'CACHE_TTL': env_int('REDIS_CACHE_TTL_SECONDS', 120),
    'SEARCH_CACHE_TTL': env_int('DONOR_SEARCH_CACHE_TTL_SECONDS', 120),
    'CACHE_PREFIX': 'matching:nearby:',
    'DEFAULT_RADIUS_KM': 10,
    'DEFAULT_LIMIT': 50,
}


# ========================================
# LIVE ALERTS
# ========================================
ALERTS = {
    'HEARTBEAT_SECONDS': env_int('ALERT_HEARTBEAT_SECONDS', 25),
    'DEFAULT_RADIUS_KM': env_float('ALERT_DEFAULT_RADIUS_KM', 5),
    'MAX_PENDING_EVENTS': env_int('ALERT_MAX_PENDING_EVENTS', 100),
    'RECENT_MAX_RADIUS_KM': 50,
    'RECENT_MAX_LIMIT': 20,
    'RECENT_DEFAULT_LIMIT': 10,
}


# ========================================
# BLOOD REQUESTS
# ========================================
# Resolved once at startup; High/Emergency requests wait for a verified
# authority before they are broadcast when enabled.
BLOOD_REQUESTS = {
    'VERIFICATION_ENABLED': env_bool('REQUEST_VERIFICATION_ENABLED', True),
    'EMERGENCY_RADIUS_KM': 5,
    'DEFAULT_SEARCH_RADIUS_KM': 10,
}


# ========================================
# DONATIONS
# ========================================
# When enabled only verified authorities may mark a donation completed.
DONATIONS = {
    'REQUIRE_AUTHORITY_FOR_COMPLETION': env_bool('DONATION_COMPLETION_REQUIRES_AUTHORITY', False),
}


# ========================================
# LOGGING
# ========================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}
