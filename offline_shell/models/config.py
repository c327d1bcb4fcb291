"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from urllib.parse import urljoin, urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

# The app shell: everything needed to render the application offline.
# Changing this list requires bumping `version` so clients re-seed.
DEFAULT_SEED_PATHS = [
    "/",
    "/index.html",
    "/manifest.json",
    "/icon-192.png",
    "/icon-512.png",
    "/favicon.png",
]

STORE_BACKENDS = ("file", "memory")


class ShellConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Upstream
    origin: str
    fetch_timeout: float = 30.0
    max_connections: int = 32
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: int = 30

    # Cache namespaces
    cache_prefix: str = "app"
    version: str = "1"
    seed_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_SEED_PATHS))
    store: str = "file"
    cache_dir: str = ""
    sync_tag: str = Field("", validate_default=True)

    # Logging
    log_dir: str = ""

    # Proxy
    host: str = "127.0.0.1"
    port: int = 8080

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("origin")
    @classmethod
    def validate_origin(cls, v: str) -> str:
        """Ensures the origin is an absolute http(s) URL without a trailing slash."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Origin must be an absolute http(s) URL, got: {v!r}")
        return v.rstrip("/")

    @field_validator("cache_prefix", "version")
    @classmethod
    def validate_name_part(cls, v: str) -> str:
        if not v:
            raise ValueError("Cache prefix and version cannot be empty.")
        if any(sep in v for sep in ("/", "\\", "..")):
            raise ValueError(f"'{v}' cannot contain path separators.")
        return v

    @field_validator("seed_paths")
    @classmethod
    def validate_seed_paths(cls, v: list[str]) -> list[str]:
        for path in v:
            if not path.startswith("/"):
                raise ValueError(f"Seed path must be absolute (start with '/'): {path}")
        return v

    @field_validator("store")
    @classmethod
    def validate_store(cls, v: str) -> str:
        if v not in STORE_BACKENDS:
            raise ValueError(f"Store must be one of {', '.join(STORE_BACKENDS)}.")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """Ensures a reasonable connection pool size."""
        if v < 1 or v > 256:
            raise ValueError("Max connections must be between 1 and 256.")
        return v

    @field_validator("fetch_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Fetch timeout must be positive.")
        return v

    @field_validator("sync_tag")
    @classmethod
    def default_sync_tag(cls, v: str, info: ValidationInfo) -> str:
        """Background sync tag defaults to '<cache_prefix>-sync'."""
        if v:
            return v
        return f"{info.data.get('cache_prefix', 'app')}-sync"

    @property
    def namespace_prefix(self) -> str:
        return f"{self.cache_prefix}-"

    @property
    def static_namespace(self) -> str:
        return f"{self.cache_prefix}-static-v{self.version}"

    @property
    def runtime_namespace(self) -> str:
        return f"{self.cache_prefix}-runtime-v{self.version}"

    @property
    def current_namespaces(self) -> frozenset[str]:
        return frozenset({self.static_namespace, self.runtime_namespace})

    @property
    def shell_url(self) -> str:
        """The root document seeded as the app shell."""
        return self.origin + "/"

    @property
    def seed_urls(self) -> list[str]:
        return [urljoin(self.origin + "/", path.lstrip("/")) for path in self.seed_paths]

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
