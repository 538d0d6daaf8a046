"""
Configuration for a bucket mirror run.
"""
import os
import shlex
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .errors import ConfigError


REQUIRED_KEYS = (
    'PROFILE',
    'REGION',
    'BUCKET',
    'RETENTION_DAYS',
    'LOCAL_DIR',
    'LOCK_FILE',
    'ENCRYPTION_KEY',
)

# Length in bytes of an AES-256 customer-provided key
ENCRYPTION_KEY_LENGTH = 32

DEFAULT_TIMEOUT = 60
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ESCROW_PREFIX = 'encryption-key-backup/'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off', '')


@dataclass(frozen=True)
class MirrorConfig:
    """Immutable, validated settings shared by every mirror component."""
    profile: str
    region: str
    bucket: str
    retention_days: int
    local_dir: str
    lock_file: str
    encryption_key: str = field(repr=False)
    prefix: str = ''
    listing_file: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    follow_symlinks: bool = False
    endpoint: Optional[str] = None
    escrow_prefix: str = DEFAULT_ESCROW_PREFIX
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self):
        missing = [
            name for name in ('profile', 'region', 'bucket', 'local_dir', 'lock_file', 'encryption_key')
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required configuration values: {', '.join(missing)}")

        if isinstance(self.retention_days, bool) or not isinstance(self.retention_days, int):
            raise ConfigError("retention_days must be an integer")
        if self.retention_days < 0:
            raise ConfigError("retention_days must be zero or greater")
        if self.timeout <= 0:
            raise ConfigError("timeout must be a positive number of seconds")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")

        key_length = len(self.encryption_key.encode('utf-8'))
        if key_length != ENCRYPTION_KEY_LENGTH:
            raise ConfigError(
                f"encryption_key must be exactly {ENCRYPTION_KEY_LENGTH} bytes, got {key_length}"
            )

        # Normalized so object keys never carry a leading or doubled slash
        object.__setattr__(self, 'prefix', (self.prefix or '').strip('/'))

        escrow_prefix = (self.escrow_prefix or '').strip('/')
        if not escrow_prefix:
            raise ConfigError("escrow_prefix must name a folder, not the whole bucket")
        object.__setattr__(self, 'escrow_prefix', f"{escrow_prefix}/")

    def object_key(self, relative_path: str) -> str:
        """
        Build the object key for a path relative to the local directory.
        
        Args:
            relative_path: POSIX style path relative to ``local_dir``
            
        Returns:
            Object key under the configured prefix
        """
        relative_path = relative_path.lstrip('/')
        if not self.prefix:
            return relative_path
        return f"{self.prefix}/{relative_path}"

    def in_escrow(self, key: str) -> bool:
        """Check whether an object key lies under the key escrow prefix."""
        return key.startswith(self.escrow_prefix)

    @property
    def key_prefix(self) -> str:
        """Listing prefix for the mirrored objects ('' for the whole bucket)."""
        return f"{self.prefix}/" if self.prefix else ''

    @property
    def destination(self) -> str:
        """Human readable destination used in log messages."""
        return f"s3://{self.bucket}/{self.key_prefix}"

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> 'MirrorConfig':
        """
        Create MirrorConfig from a mapping of upper-case configuration keys.
        
        Args:
            values: Mapping such as the parsed configuration file
            
        Returns:
            Validated MirrorConfig
            
        Raises:
            ConfigError: If a required key is missing or a value is malformed
        """
        missing = [key for key in REQUIRED_KEYS if not values.get(key)]
        if missing:
            raise ConfigError(f"Missing required configuration keys: {', '.join(missing)}")

        return cls(
            profile=values['PROFILE'],
            region=values['REGION'],
            bucket=values['BUCKET'],
            retention_days=_parse_int('RETENTION_DAYS', values['RETENTION_DAYS']),
            local_dir=values['LOCAL_DIR'],
            lock_file=values['LOCK_FILE'],
            encryption_key=values['ENCRYPTION_KEY'],
            prefix=values.get('PREFIX', ''),
            listing_file=values.get('LISTING_FILE') or None,
            timeout=_parse_int('TIMEOUT', values.get('TIMEOUT') or str(DEFAULT_TIMEOUT)),
            follow_symlinks=_parse_bool('FOLLOW_SYMLINKS', values.get('FOLLOW_SYMLINKS', '')),
            endpoint=values.get('ENDPOINT') or None,
            escrow_prefix=values.get('ESCROW_PREFIX') or DEFAULT_ESCROW_PREFIX,
            max_attempts=_parse_int('MAX_ATTEMPTS', values.get('MAX_ATTEMPTS') or str(DEFAULT_MAX_ATTEMPTS)),
        )

    @classmethod
    def from_file(cls, path: str) -> 'MirrorConfig':
        """Create MirrorConfig from a shell-style ``KEY=value`` file."""
        return cls.from_mapping(read_config_file(path))

    @classmethod
    def from_env(cls, prefix: str = 'MIRROR') -> 'MirrorConfig':
        """Create MirrorConfig from environment variables with given prefix."""
        marker = f"{prefix}_"
        values = {
            name[len(marker):]: value
            for name, value in os.environ.items()
            if name.startswith(marker)
        }
        return cls.from_mapping(values)


def read_config_file(path: str) -> Dict[str, str]:
    """
    Parse a shell-style configuration file.
    
    Blank lines and ``#`` comments are ignored, an ``export`` prefix is
    accepted and values follow shell quoting rules.
    
    Args:
        path: Path of the configuration file
        
    Returns:
        Dictionary of upper-case keys to string values
        
    Raises:
        ConfigError: If the file cannot be read or a line is malformed
    """
    values: Dict[str, str] = {}
    try:
        with open(path, 'r', encoding='utf-8') as config_file:
            lines = config_file.readlines()
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith('export '):
            line = line[len('export '):].lstrip()

        key, separator, raw_value = line.partition('=')
        key = key.strip()
        if not separator or not key:
            raise ConfigError(f"{path}:{line_number}: expected KEY=value")

        try:
            tokens = shlex.split(_strip_comment(raw_value))
        except ValueError as e:
            raise ConfigError(f"{path}:{line_number}: {e}") from e

        values[key.upper()] = ' '.join(tokens)

    return values


def _strip_comment(raw_value: str) -> str:
    """Cut a trailing comment; as in the shell, ``#`` only starts one at the beginning of a word."""
    quote = None
    escaped = False
    word_start = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
        elif char == '\\' and quote != "'":
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char.isspace():
            word_start = True
            continue
        elif char in ('"', "'"):
            quote = char
        elif char == '#' and word_start:
            return raw_value[:index]
        word_start = False
    return raw_value


def _parse_int(name: str, value: str) -> int:
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _parse_bool(name: str, value: str) -> bool:
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")
