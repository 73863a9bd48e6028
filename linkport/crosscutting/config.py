import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass(frozen=True)
class Settings:
    """Runtime settings for matching, adapters and logging."""

    title_weight: float = 0.7
    artist_weight: float = 0.3
    max_alternatives: int = 2
    max_workers: int = 1
    supplier_timeout: Optional[float] = None
    search_limit: int = 5
    mock_seed: int = 0
    share_base_url: str = 'https://linkport.app'
    log_level: str = 'INFO'
    log_file: Optional[str] = None
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    youtube_api_key: Optional[str] = None
    soundcloud_client_id: Optional[str] = None
    request_timeout: float = 15.0

    def __post_init__(self):
        if self.title_weight < 0 or self.artist_weight < 0:
            raise ConfigError("Matching weights must be non-negative")
        if abs(self.title_weight + self.artist_weight - 1.0) > 1e-9:
            raise ConfigError("LINKPORT_TITLE_WEIGHT and LINKPORT_ARTIST_WEIGHT must sum to 1.0")
        if self.max_alternatives < 0:
            raise ConfigError("LINKPORT_MAX_ALTERNATIVES must be >= 0")
        if self.max_workers < 1:
            raise ConfigError("LINKPORT_MAX_WORKERS must be >= 1")
        if self.supplier_timeout is not None and self.supplier_timeout <= 0:
            raise ConfigError("LINKPORT_SUPPLIER_TIMEOUT must be positive")
        if self.search_limit < 1:
            raise ConfigError("LINKPORT_SEARCH_LIMIT must be >= 1")
        if self.request_timeout <= 0:
            raise ConfigError("LINKPORT_REQUEST_TIMEOUT must be positive")
        if self.log_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigError(f"Unknown log level: {self.log_level}")

    @property
    def has_spotify_credentials(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    def summary(self) -> Dict[str, Any]:
        """Settings without sensitive data."""
        data = asdict(self)
        data.pop('spotify_client_secret')
        data['spotify_client_id'] = bool(self.spotify_client_id)
        data.pop('youtube_api_key')
        data.pop('soundcloud_client_id')
        data['has_spotify_credentials'] = self.has_spotify_credentials
        data['has_youtube_api_key'] = bool(self.youtube_api_key)
        data['has_soundcloud_client_id'] = bool(self.soundcloud_client_id)
        return data


def _get(values: Mapping[str, Optional[str]], key: str) -> Optional[str]:
    value = values.get(key)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _parse(values: Mapping[str, Optional[str]], key: str, cast, default):
    raw = _get(values, key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {key}: {raw!r}") from e


def load_settings(env_file: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from an optional .env file and the process environment.

    Environment variables take precedence over the file. ``os.environ`` is
    never modified.

    Args:
        env_file: Path to a dotenv file; defaults to ``.env`` in the working directory
        environ: Environment mapping, ``os.environ`` when omitted

    Raises:
        ConfigError: If the file is missing (when given explicitly) or a value is malformed
    """
    if env_file is not None and not Path(env_file).exists():
        raise ConfigError(f"Env file not found: {env_file}")
    path = Path(env_file) if env_file else Path('.env')

    values: Dict[str, Optional[str]] = {}
    if path.exists():
        values.update(dotenv_values(path))
    values.update(os.environ if environ is None else environ)

    return Settings(
        title_weight=_parse(values, 'LINKPORT_TITLE_WEIGHT', float, 0.7),
        artist_weight=_parse(values, 'LINKPORT_ARTIST_WEIGHT', float, 0.3),
        max_alternatives=_parse(values, 'LINKPORT_MAX_ALTERNATIVES', int, 2),
        max_workers=_parse(values, 'LINKPORT_MAX_WORKERS', int, 1),
        supplier_timeout=_parse(values, 'LINKPORT_SUPPLIER_TIMEOUT', float, None),
        search_limit=_parse(values, 'LINKPORT_SEARCH_LIMIT', int, 5),
        mock_seed=_parse(values, 'LINKPORT_MOCK_SEED', int, 0),
        share_base_url=_get(values, 'LINKPORT_SHARE_BASE_URL') or 'https://linkport.app',
        log_level=(_get(values, 'LINKPORT_LOG_LEVEL') or 'INFO').upper(),
        log_file=_get(values, 'LINKPORT_LOG_FILE'),
        spotify_client_id=_get(values, 'SPOTIFY_CLIENT_ID'),
        spotify_client_secret=_get(values, 'SPOTIFY_CLIENT_SECRET'),
        youtube_api_key=_get(values, 'YOUTUBE_API_KEY'),
        soundcloud_client_id=_get(values, 'SOUNDCLOUD_CLIENT_ID'),
        request_timeout=_parse(values, 'LINKPORT_REQUEST_TIMEOUT', float, 15.0),
    )
