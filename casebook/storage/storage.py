from typing import Optional
import base64
import io
import mimetypes
import uuid
import minio
from starlette.concurrency import run_in_threadpool
from casebook.config.settings import settings
from casebook.logger.logger import logger
from casebook.utils.common import format_file_size
from casebook.utils.decorators import retry

class AttachmentStorage:
    """截图附件存储

    启用对象存储时上传截图并返回公共访问URL；
    未启用时返回 data URI（base64 编码）。两种引用都作为不透明字符串保存在用例上。
    """

    def __init__(self, client: Optional[minio.Minio] = None):
        """初始化附件存储"""
        config = settings.object_storage
        self.enabled = config.OBJECT_STORAGE_ENABLED
        self.bucket = config.OBJECT_STORAGE_BUCKET_NAME
        self.public_url = config.OBJECT_STORAGE_PUBLIC_URL.rstrip("/")
        self.max_size = config.OBJECT_STORAGE_MAX_SIZE
        self.client = client

        if not self.enabled:
            logger.info("对象存储未启用，截图将以 data URI 保存")
            return

        try:
            if self.client is None:
                self.client = minio.Minio(
                    config.OBJECT_STORAGE_ENDPOINT,
                    access_key=config.OBJECT_STORAGE_ACCESS_KEY,
                    secret_key=config.OBJECT_STORAGE_SECRET_KEY,
                    secure=config.OBJECT_STORAGE_PUBLIC_URL.startswith("https"),
                    region=config.OBJECT_STORAGE_REGION or None
                )

            # 确保存储桶存在
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"创建存储桶: {self.bucket}")

            logger.info("对象存储初始化成功")
        except Exception as e:
            logger.error(f"对象存储初始化失败: {str(e)}")
            raise

    @staticmethod
    def guess_content_type(filename: str, content_type: Optional[str] = None) -> str:
        if content_type:
            return content_type
        return mimetypes.guess_type(filename)[0] or "application/octet-stream"

    @retry(max_retries=3, delay=1)
    def _put_object(self, object_name: str, content: bytes, content_type: str) -> None:
        self.client.put_object(
            self.bucket,
            object_name,
            io.BytesIO(content),
            length=len(content),
            content_type=content_type
        )

    async def save_screenshot(
        self,
        test_case_id: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None
    ) -> str:
        """保存截图并返回引用

        Args:
            test_case_id: 用例标识，用作对象路径前缀
            filename: 原始文件名
            content: 文件内容
            content_type: MIME类型，为空时按文件名推断

        Returns:
            str: 公共访问URL或 data URI

        Raises:
            ValueError: 文件为空、不是图片或超过大小限制
        """
        content_type = self.guess_content_type(filename, content_type)
        if not content:
            raise ValueError("截图文件为空")
        if not content_type.startswith("image/"):
            raise ValueError(f"不支持的截图类型: {content_type}")
        if len(content) > self.max_size:
            raise ValueError(
                f"截图过大: {format_file_size(len(content))}，上限 {format_file_size(self.max_size)}"
            )

        if not self.enabled:
            encoded = base64.b64encode(content).decode("utf-8")
            return f"data:{content_type};base64,{encoded}"

        object_name = f"screenshots/{test_case_id}/{uuid.uuid4().hex}-{filename}"
        logger.info(f"开始上传截图: {filename} -> {object_name}")
        try:
            await run_in_threadpool(self._put_object, object_name, content, content_type)
        except Exception as e:
            logger.error(f"截图上传失败: {str(e)}")
            raise

        url = f"{self.public_url}/{self.bucket}/{object_name}"
        logger.info(f"截图上传成功: {url}, size={format_file_size(len(content))}")
        return url

    async def delete_screenshot(self, reference: str) -> bool:
        """删除对象存储中的截图，data URI 或未启用时返回 False"""
        if not self.enabled or reference.startswith("data:"):
            return False

        prefix = f"{self.public_url}/{self.bucket}/"
        if not reference.startswith(prefix):
            return False
        object_name = reference[len(prefix):]
        try:
            await run_in_threadpool(self.client.remove_object, self.bucket, object_name)
            logger.info(f"截图删除成功: {object_name}")
            return True
        except Exception as e:
            logger.error(f"截图删除失败: {str(e)}")
            return False

# 全局附件存储实例
_attachment_storage: Optional[AttachmentStorage] = None

def get_attachment_storage() -> AttachmentStorage:
    """获取附件存储实例"""
    global _attachment_storage
    if _attachment_storage is None:
        _attachment_storage = AttachmentStorage()
    return _attachment_storage
