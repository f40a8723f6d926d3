"""
Django settings for the Tumble dashboard.
Laundry pickup & delivery - customer, driver and admin web dashboard

Configuration notes:
- All domain data lives in the Tumble REST backend (TUMBLE_API_URL)
- The local database only stores sessions
- Redis cache when REDIS_URL is set, in-process cache otherwise
"""

from decimal import Decimal
from pathlib import Path
from decouple import config, Csv

# ===========================================
# BASE CONFIGURATION
# ===========================================
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config('SECRET_KEY', default='dev-secret-key-change-in-production')
DEBUG = config('DEBUG', default=True, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,0.0.0.0', cast=Csv())
CSRF_TRUSTED_ORIGINS = config('CSRF_TRUSTED_ORIGINS', default='http://localhost:3000', cast=Csv())

# ===========================================
# APPLICATION DEFINITION
# ===========================================
INSTALLED_APPS = [
    # Django Core
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third Party
    'rest_framework',
    'drf_spectacular',

    # Tumble Apps
    'core.apps.CoreConfig',
    'home.apps.HomeConfig',
    'orders.apps.OrdersConfig',
    'subscriptions.apps.SubscriptionsConfig',
    'accounts.apps.AccountsConfig',
    'drivers.apps.DriversConfig',            # Driver workspace
    'backoffice.apps.BackofficeConfig',      # Admin workspace
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',

    # Tumble session & security
    'core.middleware.RateLimitMiddleware',
    'core.middleware.SessionUserMiddleware',
    'core.middleware.LoginRequiredMiddleware',
    'core.middleware.SecurityHeadersMiddleware',
    'core.middleware.RequestAuditMiddleware',
]

ROOT_URLCONF = 'tumble_core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.messages.context_processors.messages',
                'core.context_processors.tumble',
            ],
        },
    },
]

WSGI_APPLICATION = 'tumble_core.wsgi.application'

# ===========================================
# DATABASE - sessions only
# ===========================================
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': config('DB_PATH', default=str(BASE_DIR / 'db.sqlite3')),
    }
}

# ===========================================
# SESSIONS
# ===========================================
SESSION_ENGINE = 'django.contrib.sessions.backends.db'
SESSION_COOKIE_AGE = config('SESSION_COOKIE_AGE', default=60 * 60 * 12, cast=int)
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_SECURE = not DEBUG

LOGIN_URL = 'core:signin'
LOGIN_REDIRECT_URL = 'core:dashboard'

# ===========================================
# INTERNATIONALIZATION
# ===========================================
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='America/New_York')
USE_I18N = True
USE_TZ = True

# ===========================================
# STATIC FILES
# ===========================================
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STATICFILES_DIRS = [BASE_DIR / 'static']

# ===========================================
# DEFAULT PRIMARY KEY
# ===========================================
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ===========================================
# DJANGO REST FRAMEWORK
# ===========================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'core.authentication.BackendSessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

# ===========================================
# API DOCUMENTATION (drf-spectacular)
# ===========================================
SPECTACULAR_SETTINGS = {
    'TITLE': 'Tumble Dashboard API',
    'DESCRIPTION': 'JSON helpers used by the Tumble laundry dashboard',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

# ===========================================
# CACHE (Redis when configured)
# ===========================================
REDIS_URL = config('REDIS_URL', default='')

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'tumble-dashboard',
        }
    }

# Public catalog (plans, services) cache lifetime in seconds
CATALOG_CACHE_TTL = config('CATALOG_CACHE_TTL', default=300, cast=int)

# Rate limiting is skipped in DEBUG unless explicitly enabled
RATE_LIMIT_IN_DEBUG = config('RATE_LIMIT_IN_DEBUG', default=False, cast=bool)

# (path prefix, counted methods, max requests, window seconds); first match wins
RATE_LIMITS = [
    ('/auth/signin/', ('POST',), 10, 60),
    ('/auth/signup/', ('POST',), 5, 60),
    ('/api/', (), 100, 60),
]

# ===========================================
# EXTERNAL SERVICES
# ===========================================

# Tumble REST backend
TUMBLE_API_URL = config('TUMBLE_API_URL', default='http://localhost:8080')
TUMBLE_API_TIMEOUT = config('TUMBLE_API_TIMEOUT', default=10, cast=float)

# Stripe (browser side only, Stripe.js)
STRIPE_PUBLISHABLE_KEY = config('STRIPE_PUBLISHABLE_KEY', default='')

# ===========================================
# BUSINESS RULES - SCHEDULE PRICING
# ===========================================
PICKUP_SERVICE_FEE = config('PICKUP_SERVICE_FEE', default='10.00', cast=Decimal)    # USD per pickup
STANDARD_BAG_PRICE = config('STANDARD_BAG_PRICE', default='45.00', cast=Decimal)    # USD per bag
TAX_RATE = config('TAX_RATE', default='0.06', cast=Decimal)                         # 6%
TIP_PRESET_PERCENTAGES = [15, 18, 20, 25]
ADMIN_ORDER_PAGE_SIZE = 100                                                         # backend cap

# ===========================================
# LOGGING CONFIGURATION
# ===========================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
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
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'tumble.backend': {
            'handlers': ['console'],
            'level': config('BACKEND_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'tumble.security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'tumble.monitoring': {
            'handlers': ['console'],
            'level': config('MONITORING_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}
