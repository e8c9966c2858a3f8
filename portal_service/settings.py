"""
Django settings for portal_service.

Every deployment value comes from the environment; the defaults are for
local development against a backend on localhost.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-portal-dev-key')

DEBUG = os.environ.get('DJANGO_DEBUG', 'true').lower() == 'true'

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if host]

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'rest_framework',
    'adrf',
    'portal',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'portal_service.urls'

ASGI_APPLICATION = 'portal_service.asgi.application'

# No local database: sessions live in signed cookies and all data in the backend.
DATABASES = {}

SESSION_ENGINE = 'django.contrib.sessions.backends.signed_cookies'
SESSION_COOKIE_HTTPONLY = True

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('TIME_ZONE', 'UTC')
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'portal.authentication.PortalSessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'UNAUTHENTICATED_USER': None,
}

LOGIN_URL = os.environ.get('LOGIN_URL', '/login/')

# --- booking backend ---
BOOKING_BASE_URL = os.environ.get('BOOKING_BASE_URL', 'http://localhost:5000/api')
BOOKING_HTTP_TIMEOUT = float(os.environ.get('BOOKING_HTTP_TIMEOUT', 10.0))

# --- checkout provider ---
CHECKOUT_PUBLIC_KEY = os.environ.get('CHECKOUT_PUBLIC_KEY', '')
CHECKOUT_BACKEND = os.environ.get('CHECKOUT_BACKEND', 'portal.checkout.HostedCheckout')
CHECKOUT_SCRIPT_URL = os.environ.get('CHECKOUT_SCRIPT_URL', 'https://checkout.razorpay.com/v1/checkout.js')
CHECKOUT_MERCHANT_NAME = os.environ.get('CHECKOUT_MERCHANT_NAME', 'Ease My Booking')
CHECKOUT_THEME_COLOR = os.environ.get('CHECKOUT_THEME_COLOR', '#3b82f6')

# 'recreate' issues a new booking+order on every "Pay Now"; 'resume' reopens
# the last payment session held for that booking when there is one.
PAYMENT_RETRY_MODE = os.environ.get('PAYMENT_RETRY_MODE', 'recreate')
PAYMENT_CALLBACK_TIMEOUT = (
    float(os.environ['PAYMENT_CALLBACK_TIMEOUT']) if os.environ.get('PAYMENT_CALLBACK_TIMEOUT') else None
)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'portal': {
            'handlers': ['console'],
            'level': os.environ.get('PORTAL_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
}
