"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter

from chameleon.core.database import health_check as db_health_check
from chameleon.core.redis_client import redis_health_check

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    基础健康检查端点
    """
    return {
        "status": "healthy",
        "service": "chameleon-game",
        "version": "1.0.0"
    }


@router.get("/health/database")
async def database_health():
    """数据库连接健康检查"""
    return await db_health_check()


@router.get("/health/redis")
async def redis_health():
    """Redis连接健康检查"""
    return await redis_health_check()
