"""
全局异常处理器
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import BusinessException

logger = logging.getLogger(__name__)


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    logger.info(f"业务异常 {exc.reason_code.value}: {exc.message} ({request.url.path})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {"code": "REQUEST_VALIDATION_ERROR", "message": "请求参数错误", "details": jsonable_encoder(exc.errors())}
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"数据库操作失败 ({request.url.path}): {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": {"code": "DATABASE_ERROR", "message": "数据库操作失败"}}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"未处理的异常 ({request.url.path}): {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": {"code": "INTERNAL_ERROR", "message": "服务器内部错误"}}
    )
