from pydantic_settings import BaseSettings
from typing import Optional
from enum import Enum


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    # 应用基础配置
    app_name: str = "Driving Course Settlement Service"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = True

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "driving_school_db"
    db_user: str = "driving_school_user"
    db_password: str = "driving_school_password"

    # Redis配置 (支付网关令牌缓存)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # 支付网关配置 (Yapay)
    yapay_api_url: str = "https://api.intermediador.yapay.com.br"
    yapay_consumer_key: str = ""
    yapay_consumer_secret: str = ""
    yapay_code: str = ""
    yapay_timeout_seconds: float = 15.0
    yapay_token_refresh_margin_seconds: int = 300
    yapay_default_token_ttl_hours: int = 24

    # 支付链接默认参数
    payment_link_default_code: str = "CURSO"
    payment_link_max_split_transaction: int = 12

    # 支付状态定时对账
    payment_status_job_enabled: bool = True
    payment_status_check_interval_minutes: int = 5
    payment_status_check_timeout_seconds: float = 30.0

    # 日志配置
    log_level: str = "INFO"

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    class Config:
        env_file = ".env"
        case_sensitive = False


# 全局配置实例
settings = Settings()
