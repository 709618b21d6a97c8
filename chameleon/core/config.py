"""
Application configuration settings
应用配置设置
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 1

    # Database configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./chameleon.db"
    DB_POOL_RECYCLE: int = 1800

    # Redis configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    ROOM_CHANNEL_PREFIX: str = "room"  # 房间变更通知频道前缀

    # Game configuration
    MIN_PLAYERS: int = 3
    MAX_PLAYERS_PER_ROOM: int = 12
    DEFAULT_MAX_PLAYERS: int = 10
    DEFAULT_MAX_ROUNDS: int = 3
    DEFAULT_PRESENTING_TIME: int = 60  # 每位玩家描述时间(秒)
    DEFAULT_DISCUSSION_TIME: int = 120
    DEFAULT_VOTING_TIME: int = 30
    RESULTS_COUNTDOWN: int = 5  # 结果展示倒计时(秒)
    TIMER_SYNC_INTERVAL: int = 5  # 计时器持久化间隔，避免每秒写入

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
