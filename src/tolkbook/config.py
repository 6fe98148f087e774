import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load the appropriate .env file on module import
env = os.environ.get("TOLKBOOK_ENV", "development").lower()
env_file = f".env.{env}"
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    # Fall back to the default .env file
    load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    environment: str
    database_url: str
    redis_url: str
    notification_queue: str
    per_page: int
    log_level: str
    legacy_error_responses: bool

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            environment=env,
            database_url=os.environ.get(
                "DATABASE_URL", "postgresql://localhost:5432/tolkbook_development"
            ),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            notification_queue=os.environ.get("NOTIFICATION_QUEUE", "notifications"),
            per_page=int(os.environ.get("PER_PAGE", "15")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            legacy_error_responses=_flag("LEGACY_ERROR_RESPONSES"),
        )


config = Config.from_env()
