"""
交易结算数据库表创建脚本
用法: python -m scripts.create_tables
"""

import asyncio

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy import text
from app.core.config import settings
from app.core.database import Base

# 导入所有数据库模型以确保表被注册
import app.models.database  # noqa: F401


async def create_database_if_not_exists():
    """创建数据库（如果不存在）"""
    server_url = settings.database_url_computed.replace(f"/{settings.db_name}", "/postgres")
    engine = create_async_engine(server_url, isolation_level="AUTOCOMMIT")

    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
            {"db_name": settings.db_name}
        )
        if not result.fetchone():
            await conn.execute(text(f'CREATE DATABASE "{settings.db_name}"'))
            print(f"数据库 '{settings.db_name}' 创建成功")
        else:
            print(f"数据库 '{settings.db_name}' 已存在")

    await engine.dispose()


async def create_tables():
    """创建所有数据表"""
    engine = create_async_engine(settings.database_url_computed)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        print("所有数据表创建成功")

    await engine.dispose()


async def create_indexes():
    """创建部分唯一索引，作为业务规则在数据库层的兜底"""
    engine = create_async_engine(settings.database_url_computed)

    indexes = [
        # 每个学员最多一笔待支付交易
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_transactions_student_pending "
        "ON transactions(student_id) WHERE payment_status = 'pending';",
        # 每个用户最多一张启用中的优惠券
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_coupons_user_active "
        "ON coupons(user_id) WHERE active AND user_id IS NOT NULL;",
        # 每笔交易最多一个待支付链接
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_payment_links_transaction_pending "
        "ON payment_links(transaction_id) WHERE status = 1 AND transaction_id IS NOT NULL;",
    ]

    async with engine.begin() as conn:
        for index_sql in indexes:
            await conn.execute(text(index_sql))
        print(f"创建索引 {len(indexes)} 个")

    await engine.dispose()


async def main():
    await create_database_if_not_exists()
    await create_tables()
    await create_indexes()


if __name__ == "__main__":
    asyncio.run(main())
