import logging

import requests
from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,   # 初始重试延迟（秒），指数退避会乘以 2^retry_count
    acks_late=True,           # 任务执行完才 ack，防止 worker 崩溃时任务丢失
    reject_on_worker_lost=True,
)
def print_order_documents(self, urls: list[str]):
    """
    把住院单的文档 URL 交给外部打印 / 合并服务。

    重试策略：
      - 最多重试 3 次
      - 指数退避：10s → 20s → 40s
      - 超出次数后只记日志，订单本身不受影响
    """
    logger.info("[Celery][print_order_documents] 开始打印 %d 份文档 (attempt %d/%d)",
                len(urls), self.request.retries + 1, self.max_retries + 1)

    try:
        r = requests.post(
            settings.PRINT_SERVICE_URL,
            json={'urls': urls},
            timeout=settings.COLLABORATOR_TIMEOUT,
        )
        r.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("[Celery] 打印失败 (attempt %d): %s", self.request.retries + 1, str(exc))

        if self.request.retries < self.max_retries:
            countdown = self.default_retry_delay * (2 ** self.request.retries)
            logger.info("[Celery] 将在 %ds 后重试 (第 %d 次)...", countdown, self.request.retries + 1)
            raise self.retry(exc=exc, countdown=countdown)

        logger.error("[Celery] 已达最大重试次数，放弃打印: %s", urls)
        return False

    logger.info("[Celery] 文档已提交打印: %s", urls[0] if urls else '')
    return True
