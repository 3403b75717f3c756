"""OpenSearch connection config, resolved from settings. Read-only; no business logic."""

from dataclasses import dataclass, field

from app.config.settings import Settings, get_settings


@dataclass(frozen=True)
class OpenSearchConfig:
    host: str
    index: str
    use_ssl: bool
    verify_certs: bool
    timeout: int
    username: str = ""
    password: str = field(default="", repr=False)

    @property
    def http_auth(self) -> tuple[str, str] | None:
        """Basic auth pair, or None for clusters running without the security plugin."""
        if self.username and self.password:
            return (self.username, self.password)
        return None


def get_opensearch_config(settings: Settings | None = None) -> OpenSearchConfig:
    s = settings or get_settings()
    return OpenSearchConfig(
        host=s.opensearch_host,
        index=s.opensearch_index,
        use_ssl=s.opensearch_use_ssl,
        verify_certs=s.opensearch_verify_certs,
        timeout=s.opensearch_timeout,
        username=s.opensearch_username,
        password=s.opensearch_password,
    )
