# clinpath_app_pkg/config.py
import os

# Environment variables are loaded from .env by run.py and the app factory.

DEFAULT_NOTIFICATION_TEMPLATE = (
    "Halo, Data Clinical Pathway baru telah ditambahkan:\n\n"
    "Nama Pasien: {nama_pasien}\n"
    "No. RM: {no_rm}\n"
    "Jenis CP: {jenis_clinical_pathway}\n"
    "Tanggal Masuk: {tanggal_masuk}\n"
    "Jam Masuk: {jam_masuk}\n"
    "DPJP: {dpjp}\n"
    "Verifikator: {verifikator_pelaksana}\n\n"
    "Silakan cek sistem untuk detail lebih lanjut."
)

INSECURE_SECRET_KEY = 'you_REALLY_should_set_a_secret_key_in_env'
INSECURE_JWT_SECRET_KEY = 'you_REALLY_should_set_a_JWT_secret_key_in_env'


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name):
    value = os.environ.get(name, '')
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    """Base configuration settings."""
    # Application Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or INSECURE_SECRET_KEY
    # Tokens are issued by the hospital identity service; we only verify them.
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or INSECURE_JWT_SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRATION_MINUTES = int(os.environ.get('JWT_EXPIRATION_MINUTES', 60))

    # Database
    # Default to SQLite if DATABASE_URL is not set in the environment
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///clinpath_default.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Compliance classification
    # 'placeholder' marks CP/support/therapy compliant until an operator overrides it,
    # 'checklist' derives them from the share of checklist items performed.
    COMPLIANCE_DERIVATION_POLICY = os.environ.get('COMPLIANCE_DERIVATION_POLICY', 'placeholder')
    CP_COMPLIANCE_THRESHOLD = float(os.environ.get('CP_COMPLIANCE_THRESHOLD', 80))
    SUPPORT_COMPLIANCE_THRESHOLD = float(os.environ.get('SUPPORT_COMPLIANCE_THRESHOLD', 70))
    THERAPY_COMPLIANCE_THRESHOLD = float(os.environ.get('THERAPY_COMPLIANCE_THRESHOLD', 75))

    # Dashboard
    DASHBOARD_PREFER_LIVE = _env_bool('DASHBOARD_PREFER_LIVE', True)

    # Outbound notifications (delivery itself is done by the messaging gateway)
    NOTIFICATIONS_ENABLED = _env_bool('NOTIFICATIONS_ENABLED', True)
    NOTIFICATION_RECIPIENTS = _env_list('NOTIFICATION_RECIPIENTS')
    NOTIFICATION_MESSAGE_TEMPLATE = os.environ.get('NOTIFICATION_MESSAGE_TEMPLATE') or DEFAULT_NOTIFICATION_TEMPLATE


class DevelopmentConfig(Config):
    """Development-specific configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or os.environ.get('DATABASE_URL') or 'sqlite:///clinpath_dev.db'


class TestingConfig(Config):
    """Testing-specific configuration."""
    TESTING = True
    DEBUG = True
    # In-memory SQLite unless a dedicated test database is configured
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite://'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length'
    COMPLIANCE_DERIVATION_POLICY = 'placeholder'
    DASHBOARD_PREFER_LIVE = True
    NOTIFICATION_RECIPIENTS = []


class ProductionConfig(Config):
    """Production-specific configuration."""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///prod_fallback.db'  # Fallback for local testing

    @classmethod
    def validate(cls):
        if cls.SECRET_KEY == INSECURE_SECRET_KEY:
            raise ValueError("SECRET_KEY not set via environment variable for production")
        if cls.JWT_SECRET_KEY == INSECURE_JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY not set via environment variable for production")


def get_config(config_name=None):
    """Helper function to get the correct config class based on FLASK_ENV."""
    env = (config_name or os.environ.get('FLASK_ENV', 'development')).lower()
    if env == 'production':
        return ProductionConfig
    elif env == 'testing':
        return TestingConfig
    return DevelopmentConfig
