"""
定时任务调度
基于APScheduler，在应用进程内周期执行支付状态对账
"""

import logging
from typing import Callable, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings

logger = logging.getLogger(__name__)

PAYMENT_STATUS_JOB_ID = "payment_status_check"


class SchedulerService:
    """定时任务调度服务"""

    def __init__(self):
        job_defaults = {
            "coalesce": True,  # 合并错过的执行
            "max_instances": 1,  # 同一任务同时只运行一个
            "misfire_grace_time": 30
        }
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults=job_defaults,
            timezone="UTC"
        )
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info("定时任务调度器已启动")

    def shutdown(self, wait: bool = True) -> None:
        if self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("定时任务调度器已停止")

    def add_interval_job(self, func: Callable, job_id: str, minutes: int = 0, seconds: int = 0, **kwargs) -> str:
        """注册按固定间隔执行的任务，同ID任务会被替换"""
        self._scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(minutes=minutes, seconds=seconds),
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs
        )
        logger.info(f"注册定时任务 '{job_id}': 每 {minutes}分{seconds}秒")
        return job_id

    def get_job(self, job_id: str):
        return self._scheduler.get_job(job_id)

    def get_jobs(self) -> list:
        return self._scheduler.get_jobs()


_scheduler_service: Optional[SchedulerService] = None


def get_scheduler() -> SchedulerService:
    """获取全局调度器实例"""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service


def register_payment_status_job(scheduler: SchedulerService, job: Callable) -> str:
    """注册支付状态对账任务"""
    return scheduler.add_interval_job(
        job,
        job_id=PAYMENT_STATUS_JOB_ID,
        minutes=settings.payment_status_check_interval_minutes
    )
