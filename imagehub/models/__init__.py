from imagehub.models.product import Product
from imagehub.models.image import ProductImage
from imagehub.models.upload_batch import UploadBatch
from imagehub.models.settings import Settings
from imagehub.models.audit_log import AuditLog
from imagehub.models.actor import Actor
from imagehub.models.watermark import WatermarkSettings

__all__ = [
    "Product",
    "ProductImage",
    "UploadBatch",
    "Settings",
    "AuditLog",
    "Actor",
    "WatermarkSettings",
]
