from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """configuration class for environment variable"""

    # Logging
    @property
    def LOG_LEVEL(self) -> str:
        return os.getenv('LOG_LEVEL', 'info')

    # Feishu bitable credentials
    @property
    def FEISHU_APP_ID(self) -> Optional[str]:
        return os.getenv('FEISHU_APP_ID')

    @property
    def FEISHU_APP_SECRET(self) -> Optional[str]:
        return os.getenv('FEISHU_APP_SECRET')

    @property
    def FEISHU_PERSONAL_TOKEN(self) -> Optional[str]:
        return os.getenv('FEISHU_PERSONAL_TOKEN')

    @property
    def FEISHU_AUTH_URL(self) -> str:
        return os.getenv('FEISHU_AUTH_URL', 'https://open.feishu.cn/open-apis/auth/v3/tenant_access_token/internal')

    @property
    def FEISHU_API_BASE(self) -> str:
        return os.getenv('FEISHU_API_BASE', 'https://open.feishu.cn/open-apis')

    @property
    def FEISHU_BASE_ID(self) -> str:
        return os.getenv('FEISHU_BASE_ID', 'JwkobygDAa6bEnsQU4UcMG6Angd')

    @property
    def FEISHU_TABLE_ID(self) -> str:
        return os.getenv('FEISHU_TABLE_ID', 'tblGMChHj0PSrXZ6')

    @property
    def FEISHU_VIEW_ID(self) -> str:
        return os.getenv('FEISHU_VIEW_ID', 'vewopfd3Ay')

    @property
    def TOKEN_SAFETY_MARGIN(self) -> float:
        return float(os.getenv('TOKEN_SAFETY_MARGIN', '300'))

    # Cache Settings
    @property
    def CACHE_TTL(self) -> float:
        return float(os.getenv('CACHE_TTL', '300'))

    @property
    def FEED_FETCH_TIMEOUT(self) -> float:
        return float(os.getenv('FEED_FETCH_TIMEOUT', '30'))

    @property
    def TABULAR_FETCH_TIMEOUT(self) -> float:
        return float(os.getenv('TABULAR_FETCH_TIMEOUT', '10'))

    # Feed Collection Settings
    @property
    def SOURCE_REQUEST_TIMEOUT(self) -> float:
        return float(os.getenv('SOURCE_REQUEST_TIMEOUT', '8'))

    @property
    def FEED_BATCH_SIZE(self) -> int:
        return int(os.getenv('FEED_BATCH_SIZE', '5'))

    @property
    def FEED_BATCH_DELAY(self) -> float:
        return float(os.getenv('FEED_BATCH_DELAY', '0.5'))

    @property
    def FEED_MAX_ITEMS(self) -> int:
        return int(os.getenv('FEED_MAX_ITEMS', '10'))

    @property
    def USER_AGENT(self) -> str:
        return os.getenv('USER_AGENT', 'Mozilla/5.0 (compatible; RSS Reader)')

    # Notifier Settings
    @property
    def NOTIFIER_POLL_INTERVAL(self) -> float:
        return float(os.getenv('NOTIFIER_POLL_INTERVAL', '30'))

    @property
    def NOTIFIER_STALE_AFTER(self) -> float:
        return float(os.getenv('NOTIFIER_STALE_AFTER', '180'))

    @property
    def SSE_HEARTBEAT_INTERVAL(self) -> float:
        return float(os.getenv('SSE_HEARTBEAT_INTERVAL', '30'))

    # Server Settings
    @property
    def SERVER_HOST(self) -> str:
        return os.getenv('SERVER_HOST', '0.0.0.0')

    @property
    def SERVER_PORT(self) -> int:
        return int(os.getenv('SERVER_PORT', '8000'))


CONFIG = Config()


__all__ = ["CONFIG", "Config"]
