"""
Django settings for main project.
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = 'changeme'

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ['127.0.0.1', 'localhost', '0.0.0.0']

# Application definition
INSTALLED_APPS = [
    'agmanager.apps.AgManagerConfig',
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'safedelete',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'main.urls'

# Database

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'agmanager',
    }
}

# Internationalization

LANGUAGE_CODE = 'en'

LANGUAGES = [
    ('en', 'English'),
    ('pt-br', 'Português'),
]

TIME_ZONE = 'UTC'

USE_I18N = True

# Deadlines are compared against aware instants
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'

MEDIA_URL = '/media/'

MEDIA_ROOT = os.path.join(BASE_DIR, '../../media')

# Registration settings

# Registration deadlines end at midnight of this fixed civil timezone
AG_DEADLINE_UTC_OFFSET_HOURS = -3

# Reviewer stamped on automatically approved registrations
AG_SYSTEM_REVIEWER = 'system'

# Fraction of eligible members that must be present for quorum
AG_QUORUM_THRESHOLD = 0.5

# Lock the assembly row while checking capacity, no overbooking under concurrency
AG_STRICT_CAPACITY = False

# Cache timeout settings
# Maximum cache duration: 1 day (86400 seconds)
CACHE_TIMEOUT_1_DAY = 86400

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {module} {funcName} {lineno} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} {funcName}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'agmanager': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
