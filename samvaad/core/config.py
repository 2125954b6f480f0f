# samvaad/core/config.py
import os
from typing import List, Literal
from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - PUB_SUB_SERVICE how messages fan out: "local" (in-process) or "redis"
        - MESSAGE_STORE where chat history lives: "memory" or "redis"
        - JWT_* token signing for the auth endpoints
        - SOCKET_URL / API_URL / RECONNECTION_* / HISTORY_TIMEOUT client side
    """

    # Load environment variables from the .env file
    load_dotenv()

    PUB_SUB_SERVICE: Literal["local", "redis"] = os.getenv("PUB_SUB_SERVICE", "local")
    MESSAGE_STORE: Literal["memory", "redis"] = os.getenv("MESSAGE_STORE", "memory")

    REDIS_URL: str = os.getenv("REDIS_URL", "")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))

    USERS_FILE: str = os.getenv("USERS_FILE", "users.json")
    VOLUNTEERS_FILE: str = os.getenv("VOLUNTEERS_FILE", "volunteers.json")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT", "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    CORS_ORIGINS: List[str] = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    ]

    # Client side (chat session controller)
    SOCKET_URL: str = os.getenv("SOCKET_URL", "ws://localhost:8000/ws")
    API_URL: str = os.getenv("API_URL", "http://localhost:8000")
    RECONNECTION_ATTEMPTS: int = int(os.getenv("RECONNECTION_ATTEMPTS", "5"))
    RECONNECTION_DELAY: float = float(os.getenv("RECONNECTION_DELAY", "1.0"))
    HISTORY_TIMEOUT: float = float(os.getenv("HISTORY_TIMEOUT", "5.0"))

    @property
    def redis_url(self) -> str:
        """Explicit REDIS_URL wins, otherwise build one from host/port/key."""
        if self.REDIS_URL:
            return self.REDIS_URL
        scheme = "rediss" if self.REDIS_SSL else "redis"
        auth = f":{self.REDIS_ACCESS_KEY}@" if self.REDIS_ACCESS_KEY else ""
        return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()
