"""开发环境启动 FastAPI 服务。"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from contextlib import suppress

import uvicorn

from screengate.config import AppConfig
from screengate.service import GateService, build_service
from screengate.ui import create_app

logger = logging.getLogger(__name__)


async def main(service: GateService | None = None, host: str = "127.0.0.1", port: int = 8000) -> None:
    if service is None:
        service = build_service(AppConfig.load())

    app = create_app(service)
    uvicorn_config = uvicorn.Config(app, host=host, port=port, reload=False)
    server = uvicorn.Server(uvicorn_config)

    if threading.current_thread() is threading.main_thread():
        stop_event = asyncio.Event()

        def _handle_stop(*_: object) -> None:
            logger.info("收到终止信号，准备关闭服务器…")
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _handle_stop)

        async def _serve() -> None:
            await server.serve()
            stop_event.set()

        serve_task = asyncio.create_task(_serve())

        await stop_event.wait()
        serve_task.cancel()
        with suppress(asyncio.CancelledError):
            await serve_task
    else:
        await server.serve()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")
    asyncio.run(main())
