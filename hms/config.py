"""
应用配置
从环境变量读取配置
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "HMS"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./hms.db"
    SQL_ECHO: bool = False

    # 体育设施未配置容量时的默认容量
    SPORT_FACILITY_DEFAULT_CAPACITY: int = 1

    # 即将到店的默认天数窗口
    UPCOMING_STAYS_DAYS: int = 7

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
