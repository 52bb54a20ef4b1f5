"""
Django settings for the POS HQ backend.

Deployment-specific values are read from the environment.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_list(name, default=''):
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = env_list('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver')


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',
    'rest_framework.authtoken',
    'django_filters',

    'accounts',
    'inventory',
    'sales',
    'finance',
    'webhooks',
    'reports',
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

ROOT_URLCONF = 'pos_hq.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'pos_hq.wsgi.application'


# Database
if os.getenv('DB_ENGINE', 'sqlite') == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DB_NAME', 'pos_hq'),
            'USER': os.getenv('DB_USER', 'postgres'),
            'PASSWORD': os.getenv('DB_PASSWORD', ''),
            'HOST': os.getenv('DB_HOST', 'localhost'),
            'PORT': os.getenv('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_USER_MODEL = 'accounts.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Jakarta')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
    'EXCEPTION_HANDLER': 'reports.exceptions.report_exception_handler',
    'COERCE_DECIMAL_TO_STRING': False,
}


# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER', False)


# Consolidated reporting
REPORTS_PRIVILEGED_ROLES = env_list('REPORTS_PRIVILEGED_ROLES', 'super_admin,admin,owner')
REPORTS_CURRENCY = os.getenv('REPORTS_CURRENCY', 'IDR')
REPORTS_CURRENCY_DECIMAL_PLACES = int(os.getenv('REPORTS_CURRENCY_DECIMAL_PLACES', '2'))
# ISO 4217 minor units for currencies that differ from the default
REPORTS_CURRENCY_MINOR_UNITS = {
    'JPY': 0,
    'KRW': 0,
    'VND': 0,
    'CLP': 0,
    'ISK': 0,
    'BHD': 3,
    'JOD': 3,
    'KWD': 3,
    'OMR': 3,
    'TND': 3,
}
REPORTS_TOP_N = int(os.getenv('REPORTS_TOP_N', '10'))
REPORTS_DETAILS_LIMIT = int(os.getenv('REPORTS_DETAILS_LIMIT', '100'))
REPORTS_REQUEST_TIMEOUT_SECONDS = float(os.getenv('REPORTS_REQUEST_TIMEOUT_SECONDS', '30'))
REPORTS_PARALLEL_AGGREGATION = env_bool('REPORTS_PARALLEL_AGGREGATION', False)
REPORTS_MAX_WORKERS = int(os.getenv('REPORTS_MAX_WORKERS', '4'))
REPORTS_CASH_CATEGORIES = env_list('REPORTS_CASH_CATEGORIES', 'Sales,Cash,Bank')
REPORTS_PAYABLE_CATEGORIES = env_list('REPORTS_PAYABLE_CATEGORIES', 'Payable,Supplier')


# Outgoing webhooks
WEBHOOK_USER_AGENT = os.getenv('WEBHOOK_USER_AGENT', 'POS-HQ-Webhook/1.0')
WEBHOOK_DEFAULT_TIMEOUT_SECONDS = int(os.getenv('WEBHOOK_DEFAULT_TIMEOUT_SECONDS', '30'))
WEBHOOK_RESPONSE_BODY_LIMIT = int(os.getenv('WEBHOOK_RESPONSE_BODY_LIMIT', '1000'))


# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
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
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'reports': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'webhooks': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
