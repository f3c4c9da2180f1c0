from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from .display import MessageRegistry
from .models import StatusSnapshot
from .status import STATUS_PAGE_PATH, STATUS_PAGE_TITLE, render_status_page
from .task import RestaurantMenuTask

logger = logging.getLogger(__name__)


class MessageResponse(BaseModel):
    message: str
    visible: bool


class DisplayMessagesResponse(BaseModel):
    messages: List[str]


class MenuService:
    """Owns the task and drives it from the event loop."""

    def __init__(self, task: RestaurantMenuTask):
        self.task = task
        self._poll_task: Optional[asyncio.Task] = None

    async def run_once(self) -> bool:
        return await asyncio.to_thread(self.task.tick)

    async def poll_forever(self) -> None:
        logger.info("Starting menu polling every %s seconds", self.task.interval)
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Menu refresh failed")
            await asyncio.sleep(self.task.interval)

    def start(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self.poll_forever())

    async def stop(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None


def create_app(
    task: RestaurantMenuTask,
    *,
    registry: Optional[MessageRegistry] = None,
    start_polling: bool = True,
) -> FastAPI:
    service = MenuService(task)
    app = FastAPI(title="Menu Display")
    app.state.menu_service = service
    pages: Dict[str, str] = {STATUS_PAGE_PATH: STATUS_PAGE_TITLE}

    @app.on_event("startup")
    async def _startup() -> None:
        if not start_polling:
            logger.info("Menu polling disabled for this app instance.")
            return
        service.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await service.stop()
        if registry is not None:
            registry.remove_owner(task)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        links = "\n".join(f'<li><a href="/{path}">{title}</a></li>' for path, title in pages.items())
        return f"<!DOCTYPE html><html><body><ul>\n{links}\n</ul></body></html>"

    @app.get(f"/{STATUS_PAGE_PATH}", response_class=HTMLResponse)
    async def menu_status_page() -> HTMLResponse:
        return HTMLResponse(render_status_page(task.status_snapshot()))

    @app.get("/api/status", response_model=StatusSnapshot)
    async def status() -> StatusSnapshot:
        return task.status_snapshot()

    @app.get("/api/message", response_model=MessageResponse)
    async def message() -> MessageResponse:
        text = task.get_menu_string()
        return MessageResponse(message=text, visible=bool(text))

    @app.get("/api/display", response_model=DisplayMessagesResponse)
    async def display_messages() -> DisplayMessagesResponse:
        if registry is None:
            return DisplayMessagesResponse(messages=[])
        return DisplayMessagesResponse(messages=registry.current_messages())

    return app
