from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from app.core.config import settings
from app.core.redis import redis_manager, get_redis_client
from app.core.database import init_database, close_database
from app.core.exceptions import BusinessException
from app.core.scheduler import get_scheduler, register_payment_status_job
from app.services.common_cache import provider_token_cache
from app.services.payment_status_job import run_payment_status_check
from app.api.health import router as health_router
from app.api.transactions import router as transactions_router
from app.api.coupons import router as coupons_router
from app.api.payment_links import router as payment_links_router
from app.api.exceptions import (
    validation_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler
)

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动交易结算服务")

    await init_database()
    logger.info("PostgreSQL数据库初始化成功")

    try:
        await redis_manager.init_redis()
        provider_token_cache.redis_client = get_redis_client()
    except Exception as e:
        # 令牌缓存退化为进程内缓存
        logger.warning(f"Redis不可用，网关令牌仅缓存在进程内: {e}")

    scheduler = get_scheduler()
    if settings.payment_status_job_enabled:
        register_payment_status_job(scheduler, run_payment_status_check)
        scheduler.start()

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    scheduler.shutdown(wait=False)
    await redis_manager.close_redis()
    await close_database()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="驾校课程销售 - 交易与优惠券结算服务",
    debug=settings.debug,
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 注册路由
app.include_router(health_router)
app.include_router(transactions_router)
app.include_router(coupons_router)
app.include_router(payment_links_router)

# 注册异常处理器
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(BusinessException, business_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
