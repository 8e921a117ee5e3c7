import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .config import settings
from .gateway import GatewaySendError, TelegramGateway
from .ingest import InvalidUpdateError, Update, to_command
from .log import configure_logging
from .models import Command, CommandResponse, TextKey
from .render import main_keyboard, render
from .service import RewardService
from .store import LedgerStore, StoreIOError

logger = logging.getLogger(__name__)

# One store per process: every request must share its lock and records
_service: Optional[RewardService] = None
_gateway: Optional[TelegramGateway] = None
_build_lock = threading.Lock()


def get_service() -> RewardService:
    global _service
    if _service is None:
        with _build_lock:
            if _service is None:
                _service = RewardService(LedgerStore(settings.USERS_FILE), settings)
    return _service


def get_gateway() -> TelegramGateway:
    global _gateway
    if _gateway is None:
        with _build_lock:
            if _gateway is None:
                _gateway = TelegramGateway(
                    settings.BOT_TOKEN, base_url=settings.TELEGRAM_API_URL, timeout=settings.GATEWAY_TIMEOUT,
                )
    return _gateway


def close_gateway() -> None:
    global _gateway
    with _build_lock:
        if _gateway is not None:
            _gateway.close()
            _gateway = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging("rewardbot", settings)
    service = get_service()
    logger.info(f"Reward bot started with {len(service.store.snapshot())} user records")
    yield
    close_gateway()
    logger.info("Reward bot stopped")


app = FastAPI(
    title="Reward Bot API",
    description="Webhook backend for the reward bot: balances, referrals, earning and withdrawals",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc!r}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


def deliver(gateway: TelegramGateway, command: Command, response: CommandResponse) -> None:
    """Send the reply and any queued notifications. Failures are logged by the gateway."""
    if command.callback_id:
        gateway.acknowledge(command.callback_id)
    gateway.send(command.chat_id, render(response.text_key, response.data), reply_markup=main_keyboard())
    for notification in response.notifications:
        gateway.send(notification.chat_id, render(notification.text_key, notification.data))


def internal_error(gateway: TelegramGateway, command: Command) -> HTTPException:
    gateway.send(command.chat_id, render(TextKey.INTERNAL_ERROR, {}))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "reward-bot"}


@app.post("/webhook", tags=["Webhook"])
def receive_update(
    update: Update,
    background_tasks: BackgroundTasks,
    service: RewardService = Depends(get_service),
    gateway: TelegramGateway = Depends(get_gateway),
) -> dict:
    try:
        command = to_command(update)
    except InvalidUpdateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        response = service.handle(command)
    except StoreIOError as e:
        logger.error(f"Update for {command.chat_id} failed, nothing was saved: {e}")
        raise internal_error(gateway, command)
    except Exception as e:
        logger.error(f"Update for {command.chat_id} failed and was rolled back: {e!r}")
        raise internal_error(gateway, command)

    background_tasks.add_task(deliver, gateway, command, response)
    return {"ok": True, "status": response.status, "text_key": response.text_key}


@app.get("/webhook", tags=["Webhook"])
def webhook_setup(url: Optional[str] = None, gateway: TelegramGateway = Depends(get_gateway)) -> dict:
    if not url:
        return {"status": "running", "detail": "Provide ?url=https://your-domain/webhook to register the webhook"}
    try:
        result = gateway.set_webhook(url)
    except GatewaySendError as e:
        logger.error(f"Webhook registration for {url} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Webhook registration failed")
    return {"webhook": url, "result": result}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
