"""MongoDB connection config for the mongo cache backend, resolved from settings."""

from dataclasses import dataclass, field

from app.config.settings import Settings, get_settings


@dataclass(frozen=True)
class MongoConfig:
    uri: str = field(repr=False)
    database: str
    connect_timeout_ms: int
    server_selection_timeout_ms: int
    max_pool_size: int
    app_name: str

    def client_options(self) -> dict:
        """Keyword arguments for AsyncIOMotorClient. Datetimes come back timezone-aware."""
        return {
            "connectTimeoutMS": self.connect_timeout_ms,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "maxPoolSize": self.max_pool_size,
            "tz_aware": True,
            "appname": self.app_name,
        }


def get_mongo_config(settings: Settings | None = None) -> MongoConfig:
    s = settings or get_settings()
    return MongoConfig(
        uri=s.mongo_uri,
        database=s.mongo_database,
        connect_timeout_ms=s.mongo_connect_timeout_ms,
        server_selection_timeout_ms=s.mongo_server_selection_timeout_ms,
        max_pool_size=s.mongo_max_pool_size,
        app_name=s.app_name,
    )
