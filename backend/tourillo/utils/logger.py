import logging
import sys
from datetime import datetime, timezone
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger("tourillo")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column in this project stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def mask_secret(value: Optional[str], show: int = 4) -> str:
    """Shorten a session token or OAuth secret for log lines."""
    if not value:
        return "None"
    if len(value) <= show * 2:
        return "***"
    return f"{value[:show]}...{value[-show:]}"
