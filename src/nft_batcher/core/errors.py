from __future__ import annotations


class BatcherError(Exception):
    """批次查詢流程的基底例外。"""


class ConfigurationError(BatcherError):
    """設定或環境變數錯誤。"""


class GroupNotConfiguredError(BatcherError):
    """群組未註冊查詢函式，且呼叫端也未提供。"""


class AdapterError(BatcherError):
    """外部資料提供者錯誤。"""


class FetchFailure(BatcherError):
    """批次查詢失敗，整個批次週期的等待者都會收到此錯誤。"""


class FetchTimeoutError(FetchFailure):
    """單一區塊查詢超過設定的逾時時間。"""


class NormalizationError(BatcherError):
    """資料正規化失敗。"""
