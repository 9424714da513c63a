"""
优惠券业务服务层
负责优惠券的查找、可用性校验以及后台管理（创建、启停、折扣配置）
"""

import logging
import re
import secrets
import string
import unicodedata
from typing import List, Optional
from datetime import datetime

from app.core.exceptions import (
    ReasonCode, NotFoundError, ValidationError, ConflictError
)
from app.models.coupon import (
    Coupon, CouponCreate, CouponConfiguration, CouponUserType,
    ApplicationMode, CouponValidationStatus
)
from app.repositories.coupon_repository import CouponRepository
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


# 校验结果与原因码、提示信息的对应关系
VALIDATION_ERRORS = {
    CouponValidationStatus.INACTIVE: (ReasonCode.COUPON_INACTIVE, "优惠券已停用"),
    CouponValidationStatus.EXPIRED: (ReasonCode.COUPON_EXPIRED, "优惠券已过期"),
    CouponValidationStatus.USAGE_LIMIT_EXCEEDED: (ReasonCode.COUPON_USAGE_LIMIT_EXCEEDED, "优惠券使用次数已达上限"),
}

CODE_SUFFIX_LENGTH = 4
CODE_MAX_ATTEMPTS = 10
CODE_BASE_MAX_LENGTH = 12


def normalize_code_base(name: Optional[str]) -> str:
    """把用户名转换为优惠券代码前缀：去掉重音符号，取第一个词，大写"""
    if not name:
        return "CUPOM"
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    words = re.findall(r"[A-Za-z0-9]+", ascii_name)
    if not words:
        return "CUPOM"
    return words[0].upper()[:CODE_BASE_MAX_LENGTH]


def generate_coupon_code(base: str) -> str:
    """生成 BASE-XXXX 格式的优惠券代码"""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(CODE_SUFFIX_LENGTH))
    return f"{base}-{suffix}"


class CouponService:
    """优惠券业务服务"""

    def __init__(self, coupon_repo: CouponRepository, user_repo: Optional[UserRepository] = None):
        self.coupon_repo = coupon_repo
        self.user_repo = user_repo

    # ---------- 查找与校验（只读） ----------

    async def resolve(self, identifier: str) -> Coupon:
        """
        按代码或展示名称查找优惠券
        先精确匹配代码，再按名称不区分大小写匹配启用中的优惠券；
        名称命中多个时取第一个启用的
        """
        identifier = (identifier or "").strip()
        if not identifier:
            raise NotFoundError("优惠券不存在", ReasonCode.COUPON_NOT_FOUND, field="coupon_code")

        db_coupon = await self.coupon_repo.get_by_code(identifier)
        if db_coupon:
            return self.coupon_repo.to_model(db_coupon)

        candidates = await self.coupon_repo.find_active_by_custom_name(identifier)
        for candidate in candidates:
            if candidate.active:
                if len(candidates) > 1:
                    logger.warning(f"优惠券名称 {identifier} 匹配到 {len(candidates)} 个，使用 {candidate.code}")
                return self.coupon_repo.to_model(candidate)

        raise NotFoundError("优惠券不存在", ReasonCode.COUPON_NOT_FOUND, field="coupon_code")

    def validate(self, coupon: Coupon, now: Optional[datetime] = None) -> CouponValidationStatus:
        """校验优惠券当前是否可用"""
        return coupon.validation_status(now)

    async def resolve_and_validate(self, identifier: str) -> Coupon:
        """查找并校验优惠券，不可用时抛出业务异常"""
        coupon = await self.resolve(identifier)
        status = self.validate(coupon)
        if status != CouponValidationStatus.VALID:
            reason_code, message = VALIDATION_ERRORS[status]
            raise ValidationError(message, reason_code, field="coupon_code")
        return coupon

    # ---------- 后台管理 ----------

    async def get_coupon(self, coupon_id: int) -> Coupon:
        """获取优惠券，不存在时抛出异常"""
        db_coupon = await self.coupon_repo.get_by_id(coupon_id)
        if not db_coupon:
            raise NotFoundError("优惠券不存在", ReasonCode.COUPON_NOT_FOUND, field="coupon_id")
        return self.coupon_repo.to_model(db_coupon)

    async def list_coupons(self, active: Optional[bool] = None) -> List[Coupon]:
        db_coupons = await self.coupon_repo.list_coupons(active=active)
        return [self.coupon_repo.to_model(c) for c in db_coupons]

    async def get_active_user_coupon(self, user_id: int) -> Optional[Coupon]:
        """获取用户当前启用的优惠券"""
        db_coupon = await self.coupon_repo.get_active_by_user(user_id)
        return self.coupon_repo.to_model(db_coupon, include_configurations=False) if db_coupon else None

    async def generate_unique_code(self, base_name: Optional[str]) -> str:
        """生成数据库中不存在的优惠券代码"""
        base = normalize_code_base(base_name)
        for _ in range(CODE_MAX_ATTEMPTS):
            code = generate_coupon_code(base)
            if not await self.coupon_repo.code_exists(code):
                return code
        raise ConflictError("无法生成唯一的优惠券代码", ReasonCode.COUPON_CODE_GENERATION_FAILED, field="code")

    async def _get_coupon_owner(self, user_id: Optional[int], user_type: CouponUserType):
        """查找优惠券所属用户，并确认其角色与优惠券类型一致"""
        if user_id is None:
            raise ValidationError("绑定用户的优惠券必须指定用户", ReasonCode.COUPON_CONFIGURATION_INVALID, field="user_id")

        db_user = await self.user_repo.get_by_id(user_id)
        if not db_user:
            raise NotFoundError("用户不存在", ReasonCode.USER_NOT_FOUND, field="user_id")
        if db_user.role != user_type.value:
            raise ValidationError(
                f"该用户不是{user_type.value}角色",
                ReasonCode.USER_ROLE_MISMATCH,
                field="user_type"
            )
        return db_user

    async def create_coupon(self, data: CouponCreate) -> Coupon:
        """
        创建优惠券
        绑定用户的优惠券以用户名为代码前缀，每个用户同时只能有一张启用的优惠券；
        通用券使用 GERAL 前缀
        """
        if data.user_type == CouponUserType.NONE:
            user_id = None
            base_name = "GERAL"
        else:
            db_user = await self._get_coupon_owner(data.user_id, data.user_type)
            user_id = db_user.id
            base_name = db_user.name
            if await self.coupon_repo.get_active_by_user(user_id):
                raise ConflictError(
                    "该用户已有启用中的优惠券，请先停用",
                    ReasonCode.USER_ALREADY_HAS_COUPON,
                    field="user_id"
                )

        code = await self.generate_unique_code(base_name)
        db_coupon = await self.coupon_repo.create_coupon(
            code=code,
            user_id=user_id,
            user_type=data.user_type.value,
            custom_name=data.custom_name,
            expiration_date=data.expiration_date,
            usage_limit=data.usage_limit
        )
        logger.info(f"创建优惠券 {code} (用户: {user_id})")
        return self.coupon_repo.to_model(db_coupon, include_configurations=False)

    async def update_application_mode(self, coupon_id: int, mode: ApplicationMode) -> Coupon:
        """切换应用模式"""
        await self.get_coupon(coupon_id)
        await self.coupon_repo.update_coupon(coupon_id, application_mode=mode.value)
        return await self.get_coupon(coupon_id)

    async def toggle_active(self, coupon_id: int) -> Coupon:
        """启用/停用优惠券"""
        coupon = await self.get_coupon(coupon_id)
        if not coupon.active and coupon.user_id is not None:
            existing = await self.coupon_repo.get_active_by_user(coupon.user_id)
            if existing and existing.id != coupon_id:
                raise ConflictError(
                    "该用户已有启用中的优惠券，请先停用",
                    ReasonCode.USER_ALREADY_HAS_COUPON,
                    field="user_id"
                )

        await self.coupon_repo.update_coupon(coupon_id, active=not coupon.active)
        return await self.get_coupon(coupon_id)

    def _check_configuration(self, config: CouponConfiguration) -> None:
        """折扣、佣金各自只能设置固定金额或百分比中的一个"""
        if (config.discount_value is None) == (config.discount_percent is None):
            raise ValidationError(
                "折扣金额与折扣百分比必须且只能设置一个",
                ReasonCode.COUPON_CONFIGURATION_INVALID,
                field="discount"
            )
        if (config.commission_value is None) == (config.commission_percent is None):
            raise ValidationError(
                "佣金金额与佣金百分比必须且只能设置一个",
                ReasonCode.COUPON_CONFIGURATION_INVALID,
                field="commission"
            )

    async def _save_configuration(
        self,
        coupon_id: int,
        expected_mode: ApplicationMode,
        config: CouponConfiguration,
        course_modality_id: Optional[int] = None,
        course_id: Optional[int] = None
    ) -> CouponConfiguration:
        coupon = await self.get_coupon(coupon_id)
        if coupon.application_mode != expected_mode:
            raise ValidationError(
                f"优惠券不是{expected_mode.value}模式",
                ReasonCode.COUPON_CONFIGURATION_INVALID,
                field="application_mode"
            )
        self._check_configuration(config)

        db_config = await self.coupon_repo.save_configuration(
            coupon_id=coupon_id,
            course_modality_id=course_modality_id,
            course_id=course_id,
            discount_value=config.discount_value,
            discount_percent=config.discount_percent,
            commission_value=config.commission_value,
            commission_percent=config.commission_percent
        )
        return self.coupon_repo.configuration_to_model(db_config)

    async def upsert_general_configuration(
        self,
        coupon_id: int,
        course_modality_id: int,
        config: CouponConfiguration
    ) -> CouponConfiguration:
        """GENERAL模式：按授课形式设置折扣与佣金"""
        return await self._save_configuration(
            coupon_id, ApplicationMode.GENERAL, config, course_modality_id=course_modality_id
        )

    async def upsert_specific_configuration(
        self,
        coupon_id: int,
        course_id: int,
        config: CouponConfiguration,
        course_modality_id: Optional[int] = None
    ) -> CouponConfiguration:
        """SPECIFIC模式：按课程设置折扣与佣金"""
        return await self._save_configuration(
            coupon_id, ApplicationMode.SPECIFIC, config,
            course_modality_id=course_modality_id, course_id=course_id
        )

    async def list_configurations(self, coupon_id: int) -> List[CouponConfiguration]:
        db_configs = await self.coupon_repo.get_configurations(coupon_id)
        return [self.coupon_repo.configuration_to_model(c) for c in db_configs]

    async def delete_configuration(self, coupon_id: int, configuration_id: int) -> None:
        deleted = await self.coupon_repo.delete_configuration(coupon_id, configuration_id)
        if not deleted:
            raise NotFoundError(
                "优惠券配置不存在",
                ReasonCode.COUPON_CONFIGURATION_NOT_FOUND,
                field="configuration_id"
            )
