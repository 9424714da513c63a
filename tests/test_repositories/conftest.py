"""
仓库层测试配置 - 使用真实PostgreSQL
每个测试运行在一个外层事务中，结束时整体回滚
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.core.database import Base
from app.models.database import UserDB, StudentDB, CourseDB, CourseModalityDB


@pytest_asyncio.fixture
async def test_db_engine():
    """测试数据库引擎，使用 <db_name>_test 数据库"""
    test_db_url = settings.database_url_computed.replace(
        settings.db_name,
        f"{settings.db_name}_test"
    )
    engine = create_async_engine(test_db_url, echo=False, poolclass=NullPool)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception:
        await engine.dispose()
        pytest.skip("PostgreSQL test database not available")

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db_engine) -> AsyncSession:
    """测试数据库会话，会话内的提交只释放保存点"""
    async with test_db_engine.connect() as conn:
        outer = await conn.begin()
        session = AsyncSession(
            bind=conn,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint"
        )
        try:
            yield session
        finally:
            await session.close()
            await outer.rollback()


@pytest_asyncio.fixture
async def seed(db_session):
    """基础数据：销售、学员、课程和授课形式"""
    suffix = uuid4().hex[:8]
    user = UserDB(email=f"seller_{suffix}@example.com", name="Maria Souza", role="SELLER")
    course = CourseDB(code=f"CAT_B_{suffix}", name="Categoria B")
    modality = CourseModalityDB(code=f"PRESENCIAL_{suffix}", name="Presencial")
    db_session.add_all([user, course, modality])
    await db_session.flush()

    student = StudentDB(full_name="João da Silva", cpf=f"123.456.{suffix[:3]}-01", user_id=user.id)
    db_session.add(student)
    await db_session.flush()

    return SimpleNamespace(user=user, student=student, course=course, modality=modality, suffix=suffix)
