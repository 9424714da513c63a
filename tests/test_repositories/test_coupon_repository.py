"""
优惠券Repository数据库操作测试 - 使用真实数据库
"""

import pytest

from app.models.database.coupon_db import CouponDB
from app.repositories.coupon_repository import CouponRepository


async def _add_coupon(db_session, suffix: str, **fields) -> CouponDB:
    coupon = CouponDB(code=f"MARIA-{suffix[:4].upper()}", **fields)
    db_session.add(coupon)
    await db_session.flush()
    return coupon


@pytest.mark.asyncio
class TestCouponRepository:
    """优惠券使用次数计数测试类"""

    async def test_increment_stops_at_limit(self, db_session, seed):
        """测试使用次数达到上限后不再递增"""
        coupon_repo = CouponRepository(db_session)
        coupon = await _add_coupon(db_session, seed.suffix, usage_limit=2, usage_count=0)

        assert await coupon_repo.increment_usage(coupon.id) is True
        assert await coupon_repo.increment_usage(coupon.id) is True
        assert await coupon_repo.increment_usage(coupon.id) is False

        await db_session.refresh(coupon)
        assert coupon.usage_count == 2

    async def test_increment_without_limit(self, db_session, seed):
        coupon_repo = CouponRepository(db_session)
        coupon = await _add_coupon(db_session, seed.suffix, usage_limit=None, usage_count=41)

        assert await coupon_repo.increment_usage(coupon.id) is True

        await db_session.refresh(coupon)
        assert coupon.usage_count == 42

    async def test_decrement_never_goes_negative(self, db_session, seed):
        """测试使用次数为0时不递减"""
        coupon_repo = CouponRepository(db_session)
        coupon = await _add_coupon(db_session, seed.suffix, usage_count=0)

        assert await coupon_repo.decrement_usage(coupon.id) is False

        await db_session.refresh(coupon)
        assert coupon.usage_count == 0

    async def test_decrement_restores_increment(self, db_session, seed):
        coupon_repo = CouponRepository(db_session)
        coupon = await _add_coupon(db_session, seed.suffix, usage_limit=1, usage_count=0)

        await coupon_repo.increment_usage(coupon.id)
        assert await coupon_repo.decrement_usage(coupon.id) is True
        assert await coupon_repo.increment_usage(coupon.id) is True

        await db_session.refresh(coupon)
        assert coupon.usage_count == 1

    async def test_get_by_code_sees_latest_count(self, db_session, seed):
        """测试计数更新后按代码查找能读到最新值"""
        coupon_repo = CouponRepository(db_session)
        coupon = await _add_coupon(db_session, seed.suffix, usage_count=0)

        await coupon_repo.increment_usage(coupon.id)
        found = await coupon_repo.get_by_code(coupon.code)

        assert found.usage_count == 1
