from pydantic import Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pathlib import Path
import os

# 获取项目根目录
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class LogConfig(BaseSettings):
    """日志配置"""
    LOG_LEVEL: str = Field("INFO", description="日志级别")
    LOG_FILE: str = Field(str(BASE_DIR / "logs/app.log"), description="日志文件路径，为空时只输出到控制台")
    LOG_FORMAT: str = Field(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>",
        description="日志格式"
    )
    LOG_ROTATION: str = Field("500 MB", description="日志轮转大小")
    LOG_RETENTION: str = Field("10 days", description="日志保留时间")

    model_config = ConfigDict(
        env_file="",  # 禁用环境变量文件
        env_prefix="",  # 不使用前缀，因为属性名已包含前缀
        extra="ignore",
        case_sensitive=True
    )

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            import warnings
            warnings.warn(f"无效的日志级别: {v}，使用默认值: INFO")
            return "INFO"
        return v

class DatabaseConfig(BaseSettings):
    """数据库配置"""
    DB_URL: str = Field(
        default=f"sqlite:///{BASE_DIR}/casebook.db",
        description="数据库连接URL"
    )
    DB_ECHO: bool = Field(False, description="是否打印SQL语句")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class StorageConfig(BaseSettings):
    """键值存储配置（对应浏览器 localStorage）"""
    STORAGE_BACKEND: str = Field("database", description="存储后端: database/memory")
    STORAGE_SEED_DEFAULTS: bool = Field(True, description="首次加载时是否写入默认模块和团队成员")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

    @field_validator("STORAGE_BACKEND")
    def validate_backend(cls, v: str) -> str:
        """验证存储后端"""
        v = v.lower()
        if v not in {"database", "memory"}:
            raise ValueError(f"不支持的存储后端: {v}")
        return v

class ObjectStorageConfig(BaseSettings):
    """对象存储配置（用例截图）"""
    OBJECT_STORAGE_ENABLED: bool = Field(False, description="是否启用对象存储")
    OBJECT_STORAGE_ENDPOINT: str = Field("", description="存储服务端点")
    OBJECT_STORAGE_ACCESS_KEY: str = Field("", description="访问密钥")
    OBJECT_STORAGE_SECRET_KEY: str = Field("", description="访问密钥")
    OBJECT_STORAGE_BUCKET_NAME: str = Field("casebook", description="存储桶名称")
    OBJECT_STORAGE_PUBLIC_URL: str = Field("", description="公共访问URL")
    OBJECT_STORAGE_REGION: str = Field("", description="区域")
    OBJECT_STORAGE_MAX_SIZE: int = Field(5 * 1024 * 1024, description="单张截图最大大小(bytes)")

    model_config = ConfigDict(
        env_file="",
        env_prefix="",
        extra="ignore",
        case_sensitive=True
    )

class Settings(BaseSettings):
    """应用配置"""
    # 基础配置
    APP_NAME: str = Field("Casebook", description="应用名称")
    APP_VERSION: str = Field("1.0.0", description="应用版本")
    DEBUG: bool = Field(False, description="调试模式")

    # 路径配置
    BASE_DIR: Path = Field(default=BASE_DIR, description="项目根目录")

    # 子配置
    log: LogConfig = Field(default_factory=LogConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    object_storage: ObjectStorageConfig = Field(default_factory=ObjectStorageConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        env_prefix=""  # 不使用前缀
    )

    def __init__(self, **kwargs):
        # 从 .env 文件加载配置
        from dotenv import dotenv_values

        env_path = BASE_DIR / ".env"
        env_config = dotenv_values(env_path) if env_path.exists() else {}

        # 按前缀分组更新子配置，进程环境变量优先
        if env_config:
            env_config = {k: v for k, v in env_config.items() if k not in os.environ and v is not None}

            log_config = {k: v for k, v in env_config.items() if k.startswith('LOG_')}
            if log_config and 'log' not in kwargs:
                kwargs['log'] = LogConfig(**log_config)

            db_config = {k: v for k, v in env_config.items() if k.startswith('DB_')}
            if db_config and 'db' not in kwargs:
                kwargs['db'] = DatabaseConfig(**db_config)

            storage_config = {k: v for k, v in env_config.items() if k.startswith('STORAGE_')}
            if storage_config and 'storage' not in kwargs:
                kwargs['storage'] = StorageConfig(**storage_config)

            object_config = {k: v for k, v in env_config.items() if k.startswith('OBJECT_STORAGE_')}
            if object_config and 'object_storage' not in kwargs:
                kwargs['object_storage'] = ObjectStorageConfig(**object_config)

            # 更新基础配置
            for key in ('APP_NAME', 'APP_VERSION'):
                if key in env_config:
                    kwargs.setdefault(key, env_config[key])
            if 'DEBUG' in env_config:
                kwargs.setdefault('DEBUG', env_config['DEBUG'].lower() == 'true')

        super().__init__(**kwargs)
        self._init_directories()

        if self.DEBUG and not os.environ.get('RELOAD_PROCESS'):
            self._print_debug_info()

    def _init_directories(self):
        """初始化必要的目录"""
        if self.log.LOG_FILE:
            Path(self.log.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)

        if self.db.DB_URL.startswith("sqlite:///") and ":memory:" not in self.db.DB_URL:
            db_path = self.db.DB_URL.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def _print_debug_info(self):
        """打印调试信息"""
        print("\n=== 配置加载信息 ===")
        print(f"项目根目录: {self.BASE_DIR}")
        print(f"日志级别: {self.log.LOG_LEVEL}")
        print(f"日志文件: {self.log.LOG_FILE}")
        print(f"存储后端: {self.storage.STORAGE_BACKEND}")
        if self.storage.STORAGE_BACKEND == "database":
            print(f"数据库URL: {self.db.DB_URL}")
        print(f"对象存储: {'已启用' if self.object_storage.OBJECT_STORAGE_ENABLED else '未启用'}")
        if self.object_storage.OBJECT_STORAGE_ENABLED:
            print(f"存储桶: {self.object_storage.OBJECT_STORAGE_BUCKET_NAME}")
        print("===================\n")

@lru_cache()
def get_settings() -> Settings:
    """获取配置实例"""
    return Settings()

# 创建全局配置实例
settings = get_settings()

# 导出配置实例
__all__ = ["settings", "get_settings", "Settings"]
