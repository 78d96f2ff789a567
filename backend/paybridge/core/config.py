"""
paybridge 配置

所有配置都来自环境变量（或 backend 上一级目录的 .env），由 pydantic-settings 做类型校验。
本地开发不需要任何环境变量即可启动；支付平台密钥未配置时对应的 Webhook 返回 500。
"""
import warnings
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, HttpUrl, PostgresDsn, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> list[str] | str:
    """BACKEND_CORS_ORIGINS 支持逗号分隔的字符串，也支持 JSON 列表"""
    if isinstance(v, str) and not v.startswith("["):
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    if isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "paybridge"
    # 支付平台后台里配置的回调地址是 /api/<provider>/webhook，前缀不带版本号
    API_V1_STR: str = "/api"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # 数据库（订单、问卷、任务、Webhook 日志）
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # 服务端密钥：调用下游函数时做 Bearer 认证，也用来识别服务端之间的 Webhook 重放
    SERVICE_ROLE_KEY: str | None = None

    # 下游函数网关（邮件通知、歌词 / 音频生成）
    FUNCTIONS_BASE_URL: str = "http://localhost:54321/functions/v1"
    FUNCTIONS_TIMEOUT_SECONDS: float = 30.0  # 超时按可重试错误处理

    # 支付平台共享密钥
    CAKTO_WEBHOOK_SECRET: str | None = None
    HOTMART_WEBHOOK_SECRET: str | None = None

    # 事件名无法识别时：approve 按已支付处理，ignore 只确认收到
    UNRECOGNIZED_STATUS_POLICY: Literal["approve", "ignore"] = "approve"

    # 重试：第 n 次失败后等待 RETRY_BACKOFF_MULTIPLIER * 2^(n-1) 秒
    LYRICS_MAX_ATTEMPTS: int = 3
    AUDIO_MAX_ATTEMPTS: int = 4
    RETRY_BACKOFF_MULTIPLIER: float = 1.0

    # 确认邮件去重：pending 记录在 EMAIL_PENDING_FRESH_SECONDS 内视为正在发送，
    # 等待 EMAIL_RECHECK_DELAY_SECONDS 后再查一次
    EMAIL_PENDING_FRESH_SECONDS: float = 10.0
    EMAIL_RECHECK_DELAY_SECONDS: float = 2.0

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        if value != "changethis":
            return
        message = f'{var_name} is still "changethis", set a real value before deploying.'
        if self.ENVIRONMENT == "local":
            warnings.warn(message, stacklevel=1)
        else:
            raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        for name in ("POSTGRES_PASSWORD", "SERVICE_ROLE_KEY", "CAKTO_WEBHOOK_SECRET", "HOTMART_WEBHOOK_SECRET"):
            self._check_default_secret(name, getattr(self, name))
        return self


settings = Settings()  # type: ignore
