from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional
import logging

from app.core.config import settings, Environment

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()

# 全局数据库引擎
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


async def init_database() -> None:
    """初始化数据库连接"""
    global engine, async_session_maker

    try:
        engine_options = {
            "echo": settings.debug,  # 调试模式下打印SQL
            "pool_pre_ping": True,  # 连接前ping检查
            "pool_recycle": 3600,   # 连接回收时间1小时
        }
        if settings.environment == Environment.TESTING:
            engine_options["poolclass"] = NullPool

        # 创建异步数据库引擎
        engine = create_async_engine(settings.database_url_computed, **engine_options)

        # 创建异步session工厂
        async_session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        logger.info("数据库连接初始化成功")

    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def close_database() -> None:
    """关闭数据库连接"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("数据库连接已关闭")


def get_session_maker() -> async_sessionmaker:
    """获取session工厂（供后台任务使用）"""
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")
    return async_session_maker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话依赖注入函数"""
    session_maker = get_session_maker()

    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    原子操作单元
    块内所有写入要么全部生效，要么全部回滚；
    会话已处于事务中时使用SAVEPOINT，由外层负责最终提交
    """
    if session.in_transaction():
        async with session.begin_nested():
            yield session
    else:
        async with session.begin():
            yield session


class DatabaseService:
    """数据库服务类"""

    @property
    def engine(self):
        return engine

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            if not self.engine:
                return {"status": "error", "message": "数据库引擎未初始化"}

            # 执行简单查询测试连接
            async with self.engine.begin() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            return {
                "status": "error",
                "message": f"数据库连接失败: {str(e)}"
            }


# 全局数据库服务实例
database_service = DatabaseService()
