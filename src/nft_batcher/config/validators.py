from __future__ import annotations

from ..core.errors import ConfigurationError
from .settings import AppSettings


def validate_batching(settings: AppSettings) -> None:
    """確認批次延遲、區塊大小與逾時設定位於合理區間。"""

    if settings.batch_delay_ms < 0:
        raise ConfigurationError("BATCH_DELAY_MS 不可為負數")
    if settings.batch_chunk_size <= 0:
        raise ConfigurationError("BATCH_CHUNK_SIZE 必須為正整數")
    timeout = settings.batch_fetch_timeout_seconds
    if timeout is not None and timeout <= 0:
        raise ConfigurationError("BATCH_FETCH_TIMEOUT_SECONDS 必須大於 0")
    if settings.gateway_timeout_seconds <= 0:
        raise ConfigurationError("GATEWAY_TIMEOUT_SECONDS 必須大於 0")


def validate_gateway(settings: AppSettings) -> str:
    """確認已設定查詢閘道位址並回傳。"""

    base_url = (settings.gateway_base_url or "").strip()
    if not base_url:
        raise ConfigurationError("GATEWAY_BASE_URL 未設定，--live 需要 JSON 查詢閘道位址")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"GATEWAY_BASE_URL 格式不正確：{base_url}")
    return base_url
