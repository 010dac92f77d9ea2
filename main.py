"""本地服务启动入口。"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# 确保 src 加入路径
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from scripts.dev_server import main as run_dev_server
from screengate.config import AppConfig
from screengate.core.preferences import validate_preferences
from screengate.service import build_service


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")
    logger = logging.getLogger(__name__)

    config = AppConfig.load()
    service = build_service(config)

    for error in validate_preferences(service.get_preferences()):
        logger.warning("偏好设置无效 (%s): %s", error.kind.value, error.message)

    upcoming = service.next_transition()
    if upcoming is not None:
        logger.info("下一次限制切换时间: %s", upcoming.isoformat(timespec="minutes"))

    asyncio.run(run_dev_server(service=service))


if __name__ == "__main__":
    main()
