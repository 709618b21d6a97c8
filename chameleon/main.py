"""
FastAPI main application entry point
变色龙派对游戏主应用入口
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from chameleon.core.config import settings
from chameleon.core.database import init_db, close_db, db_manager
from chameleon.core.redis_client import init_redis, close_redis, redis_manager
from chameleon.api.v1.api import api_router
from chameleon.services.notifier import BroadcastNotifier, RedisRoomNotifier
from chameleon.services.orchestrator import RoundOrchestrator
from chameleon.services.storage import SqlAlchemyRoomStore
from chameleon.services.timer import PhaseTimer
from chameleon.websocket.connection_manager import connection_manager
import logging
import os

# Configure logging - 同时输出到控制台和文件
log_level = getattr(logging, settings.LOG_LEVEL.upper())
log_format = settings.LOG_FORMAT

# 确保日志目录存在
log_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
os.makedirs(log_dir, exist_ok=True)
log_file = os.path.join(log_dir, 'app.log')

logging.basicConfig(
    level=log_level,
    format=log_format,
    handlers=[
        logging.StreamHandler(),  # 控制台输出
        logging.FileHandler(log_file, encoding='utf-8')  # 文件输出
    ]
)
logger = logging.getLogger(__name__)

# 减少 SQLAlchemy 和 httpx 的日志噪音
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


def build_orchestrator() -> RoundOrchestrator:
    """组装存储、通知和计时器"""
    notifiers = [connection_manager]
    if redis_manager.available:
        notifiers.append(RedisRoomNotifier(redis_manager))
    else:
        logger.warning("Redis unavailable, room changes are pushed to local websocket clients only")

    orchestrator = RoundOrchestrator(
        store=SqlAlchemyRoomStore(db_manager),
        notifier=BroadcastNotifier(notifiers),
    )
    orchestrator.attach_timer(PhaseTimer(orchestrator))
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Chameleon game service...")

    try:
        await init_db()
        await init_redis()
        app.state.orchestrator = build_orchestrator()
        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        orchestrator = getattr(app.state, "orchestrator", None)
        if orchestrator is not None and orchestrator.timer is not None:
            await orchestrator.timer.shutdown()
        await close_redis()
        await close_db()
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="Chameleon",
    description="Chameleon party game - 变色龙派对游戏回合服务",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "Chameleon Game API",
        "status": "running",
        "version": "1.0.0"
    }
