"""Operator console gateway entrypoint."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from services.console_gateway.dependencies import get_console
from services.console_gateway.presentation.http.routes import router
from services.console_gateway.presentation.ws.live_channel import ws_router


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    console = get_console()
    console.start()
    try:
        yield
    finally:
        await console.stop()


app = FastAPI(title="Operator Console", lifespan=lifespan)
app.include_router(router)
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        app,
        host=os.getenv("CONSOLE_HOST", "127.0.0.1"),
        port=int(os.getenv("CONSOLE_PORT", "8000")),
    )
