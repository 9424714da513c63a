from fastapi import APIRouter
import logging

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import database_service
from app.core.scheduler import get_scheduler, PAYMENT_STATUS_JOB_ID

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/detailed")
async def detailed_health():
    """详细健康检查：数据库、Redis令牌缓存、对账任务"""
    pg_status = await database_service.health_check()
    redis_ok = await redis_manager.ping()

    scheduler = get_scheduler()
    job = scheduler.get_job(PAYMENT_STATUS_JOB_ID) if scheduler.running else None

    status = {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "debug": settings.debug
        },
        "postgresql": pg_status,
        # Redis只缓存网关令牌，不可用时不影响整体状态
        "redis": {"status": "healthy" if redis_ok else "unavailable"},
        "payment_status_job": {
            "enabled": settings.payment_status_job_enabled,
            "next_run_time": job.next_run_time.isoformat() if job and job.next_run_time else None
        },
        "overall": pg_status["status"] == "healthy"
    }

    if not status["overall"]:
        logger.warning(f"健康检查失败: {pg_status['message']}")
    return status
