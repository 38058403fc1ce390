import os

from dotenv import load_dotenv

from portal.exceptions import ConfigurationError


load_dotenv()

REQUIRED_SETTINGS = ('JWT_SECRET_KEY', 'PUBLIC_BASE_URL')
SMTP_SETTINGS = ('SMTP_HOST', 'SMTP_FROM')


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


def load_config() -> dict:
    """Read settings from the environment (.env is loaded on import)."""
    database_path = os.getenv('DATABASE_PATH', 'portal.sqlite')
    secret = os.getenv('JWT_SECRET_KEY') or os.getenv('SECRET_KEY')

    return {
        'SECRET_KEY': secret,
        'JWT_SECRET_KEY': secret,
        'JWT_EXPIRES_HOURS': int(os.getenv('JWT_EXPIRES_HOURS', 24)),
        'PUBLIC_BASE_URL': os.getenv('PUBLIC_BASE_URL'),
        'DATABASE_URL': os.getenv('DATABASE_URL', f'sqlite:///{database_path}'),
        'INVITATION_TTL_HOURS': int(os.getenv('INVITATION_TTL_HOURS', 24)),

        'SEND_EMAILS': _env_bool('SEND_EMAILS', 'true'),
        'SMTP_HOST': os.getenv('SMTP_HOST'),
        'SMTP_PORT': int(os.getenv('SMTP_PORT', 587)),
        'SMTP_USER': os.getenv('SMTP_USER'),
        'SMTP_PASSWORD': os.getenv('SMTP_PASSWORD'),
        'SMTP_FROM': os.getenv('SMTP_FROM'),
        'SMTP_USE_TLS': _env_bool('SMTP_USE_TLS', 'true'),
        'EMAIL_TIMEOUT': int(os.getenv('EMAIL_TIMEOUT', 10)),

        'REDIS_HOST': os.getenv('REDIS_HOST', 'localhost'),
        'REDIS_PORT': int(os.getenv('REDIS_PORT', 6379)),

        'UPLOAD_DIR': os.getenv('UPLOAD_DIR', 'uploads'),
        'MAX_UPLOAD_MB': int(os.getenv('MAX_UPLOAD_MB', 20)),
        'ALLOWED_UPLOAD_EXTENSIONS': {
            ext.strip().lower()
            for ext in os.getenv('ALLOWED_UPLOAD_EXTENSIONS', 'pdf,png,jpg,jpeg,doc,docx,xls,xlsx').split(',')
            if ext.strip()
        },

        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
    }


def validate_config(config) -> None:
    """Fail fast when a setting every request depends on is absent."""
    missing = [key for key in REQUIRED_SETTINGS if not config.get(key)]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


def require_settings(config, keys) -> None:
    """Check settings that are only needed by one feature, at first use."""
    missing = [key for key in keys if not config.get(key)]
    if missing:
        raise ConfigurationError(f"Missing settings: {', '.join(missing)}")
