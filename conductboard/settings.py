# conductboard/settings.py

"""
Django settings for the conductboard grading engine.

All deployment-specific values come from CONDUCTBOARD_* environment
variables. GRADING_DEFAULTS holds the values copied onto every new
SchoolYear; editing them never touches existing years.
"""

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Domain apps live under apps/ and are imported as top-level packages
APPS_DIR = BASE_DIR / 'apps'
if str(APPS_DIR) not in sys.path:
    sys.path.insert(0, str(APPS_DIR))


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# =============================================================================
# CORE
# =============================================================================

SECRET_KEY = os.environ.get(
    'CONDUCTBOARD_SECRET_KEY',
    'django-insecure-conductboard-development-key',
)
DEBUG = env_bool('CONDUCTBOARD_DEBUG', False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('CONDUCTBOARD_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'utils',
    'core',
    'academics',
    'students',
    'grading',
    'discipline',
    'summaries',
]

MIDDLEWARE = [
    'django.middleware.common.CommonMiddleware',
    'utils.middleware.ActingIdentityMiddleware',
]

ROOT_URLCONF = 'conductboard.urls'
WSGI_APPLICATION = 'conductboard.wsgi.application'


# =============================================================================
# DATABASE
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('CONDUCTBOARD_DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.environ.get('CONDUCTBOARD_DB_NAME', str(BASE_DIR / 'conductboard.sqlite3')),
        'USER': os.environ.get('CONDUCTBOARD_DB_USER', ''),
        'PASSWORD': os.environ.get('CONDUCTBOARD_DB_PASSWORD', ''),
        'HOST': os.environ.get('CONDUCTBOARD_DB_HOST', ''),
        'PORT': os.environ.get('CONDUCTBOARD_DB_PORT', ''),
        'ATOMIC_REQUESTS': False,
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('CONDUCTBOARD_TIME_ZONE', 'Asia/Ho_Chi_Minh')
USE_I18N = True
USE_TZ = True


# =============================================================================
# GRADING DEFAULTS
# =============================================================================
# Days are ISO weekdays: 1 = Monday ... 7 = Sunday

GRADING_DEFAULTS = {
    'coefficients': {
        'excellent': 20,
        'good': 10,
        'average': 0,
        'poor': -10,
        'failing': -20,
    },
    'bonuses': {
        'good_day_bonus': 20,
        'good_week_bonus': 0,
        'good_week_min_days': 4,
    },
    'thresholds': {
        'red': 90,
        'green': 70,
        'yellow': 50,
    },
    'conduct': {
        'max_points_per_item': 5,
        'days_per_week': 5,
        'items': [
            {'name': 'Flag ceremony', 'applicable_days': [1], 'order': 1},
            {'name': 'Morning review', 'applicable_days': [2, 3, 4], 'order': 2},
            {'name': 'Wearing badge', 'applicable_days': [1, 2, 3, 4], 'order': 3},
            {'name': 'Class/area cleanliness', 'applicable_days': [1, 2, 3, 4], 'order': 4},
            {'name': 'Punctuality', 'applicable_days': [1, 2, 3, 4], 'order': 5},
            {'name': 'Civilized lifestyle', 'applicable_days': [1, 2, 3, 4], 'order': 6},
        ],
    },
    'week': {
        'start_day': 1,
        'end_day': 7,
    },
}


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get('CONDUCTBOARD_LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
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
            'level': 'WARNING',
            'propagate': False,
        },
        **{
            app: {
                'handlers': ['console'],
                'level': LOG_LEVEL,
                'propagate': False,
            }
            for app in ('utils', 'core', 'academics', 'students', 'grading', 'discipline', 'summaries')
        },
    },
}
