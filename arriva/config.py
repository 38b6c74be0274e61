"""
Configuration management for Arriva.

Loads settings from environment variables with sensible defaults.
The resulting AppConfig is built once at process start and handed to
each component; nothing else in the package reads the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

# Fixed source
BOARD_URL = 'https://fis.com.mv/arrivals'

BOARD_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    """Parse an integer setting, falling back to default if empty/invalid."""
    value = env.get(key, '')
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass(frozen=True)
class BoardConfig:
    """Arrivals board source settings."""
    url: str = BOARD_URL
    user_agent: str = BOARD_USER_AGENT
    timeout_seconds: int = 15


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = 'sqlite:///arriva.db'

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and (':memory:' in self.url or self.url == 'sqlite://')


@dataclass(frozen=True)
class TwilioConfig:
    """Twilio SMS credentials."""
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@dataclass(frozen=True)
class ResendConfig:
    """Resend transactional email credentials."""
    api_key: Optional[str] = None
    from_address: str = 'ARRIVA.MV <notifications@resend.dev>'

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class FcmConfig:
    """Firebase Cloud Messaging push credentials."""
    server_key: Optional[str] = None
    icon: str = '/icon-512.png'

    @property
    def is_configured(self) -> bool:
        return bool(self.server_key)


@dataclass(frozen=True)
class DispatchConfig:
    """Notification fan-out settings."""
    max_workers: int = 4  # Respect provider rate limits
    channel_timeout_seconds: int = 10


@dataclass(frozen=True)
class IngestionConfig:
    """Scheduled ingestion settings."""
    interval_seconds: int = 0  # 0 = only on manual trigger


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    board: BoardConfig = field(default_factory=BoardConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    twilio: TwilioConfig = field(default_factory=TwilioConfig)
    resend: ResendConfig = field(default_factory=ResendConfig)
    fcm: FcmConfig = field(default_factory=FcmConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)

    # Flask settings
    secret_key: str = 'dev-key-change-in-prod'
    debug: bool = False


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load and validate all configuration.

    Args:
        environ: Mapping to read settings from. Defaults to os.environ
                 after loading a .env file if present.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    env = environ
    resend_defaults = ResendConfig()

    return AppConfig(
        board=BoardConfig(
            timeout_seconds=_int(env, 'BOARD_TIMEOUT_SECONDS', 15),
        ),
        database=DatabaseConfig(
            url=env.get('DATABASE_URL') or 'sqlite:///arriva.db',
        ),
        twilio=TwilioConfig(
            account_sid=env.get('TWILIO_ACCOUNT_SID') or None,
            auth_token=env.get('TWILIO_AUTH_TOKEN') or None,
            from_number=env.get('TWILIO_PHONE_NUMBER') or None,
        ),
        resend=ResendConfig(
            api_key=env.get('RESEND_API_KEY') or None,
            from_address=env.get('RESEND_FROM_ADDRESS') or resend_defaults.from_address,
        ),
        fcm=FcmConfig(
            server_key=env.get('FCM_SERVER_KEY') or None,
        ),
        dispatch=DispatchConfig(
            max_workers=max(1, _int(env, 'DISPATCH_MAX_WORKERS', 4)),
            channel_timeout_seconds=_int(env, 'CHANNEL_TIMEOUT_SECONDS', 10),
        ),
        ingestion=IngestionConfig(
            interval_seconds=max(0, _int(env, 'INGEST_INTERVAL_SECONDS', 0)),
        ),
        secret_key=env.get('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=env.get('FLASK_DEBUG', '0') == '1',
    )
