"""
Product media handling
Validates uploaded images/videos and attaches them to products
"""

import logging
from typing import List

from django.conf import settings
from django.core.files.base import ContentFile

from ..models import ProductMedia
from .utils import validate_image_file, validate_video_file, generate_unique_filename

logger = logging.getLogger(__name__)

IMAGE_FIELDS = ('images', 'images[]', 'image')
VIDEO_FIELDS = ('videos', 'videos[]', 'video')


def _collect(files, field_names) -> List:
    collected = []
    for name in field_names:
        collected.extend(files.getlist(name))
    return collected


def attach_media(product, files) -> List[ProductMedia]:
    """
    Store valid uploaded images and videos for a product.

    New media are appended after the existing ones. Invalid files are
    skipped with a warning. When the product has no primary image yet,
    the first stored image becomes `image_url`.

    Returns:
        The ProductMedia rows created
    """
    if not files:
        return []

    images = _collect(files, IMAGE_FIELDS)
    videos = _collect(files, VIDEO_FIELDS)
    if not images and not videos:
        return []

    last = product.media.order_by('-display_order').first()
    next_order = last.display_order + 1 if last else 0
    created = []

    for upload in images:
        is_valid, error = validate_image_file(upload, settings.MAX_IMAGE_UPLOAD_MB)
        if not is_valid:
            logger.warning(f'Skipped image {upload.name} for product {product.pk}: {error}')
            continue
        created.append(_store(product, upload, ProductMedia.MEDIA_IMAGE, next_order, 'product-image'))
        next_order += 1

    for upload in videos:
        is_valid, error = validate_video_file(upload, settings.MAX_VIDEO_UPLOAD_MB)
        if not is_valid:
            logger.warning(f'Skipped video {upload.name} for product {product.pk}: {error}')
            continue
        created.append(_store(product, upload, ProductMedia.MEDIA_VIDEO, next_order, 'product-video'))
        next_order += 1

    first_image = next((m for m in created if m.media_type == ProductMedia.MEDIA_IMAGE), None)
    if first_image is not None and not product.image_url:
        product.image_url = first_image.url
        product.save(update_fields=['image_url', 'updated_at'])

    if created:
        logger.info(f'Stored {len(created)} media file(s) for product {product.pk}')

    return created


def _store(product, upload, media_type, display_order, prefix):
    upload.seek(0)
    media = ProductMedia(product=product, media_type=media_type, display_order=display_order)
    media.file.save(
        generate_unique_filename(upload.name, prefix=prefix),
        ContentFile(upload.read()),
        save=False,
    )
    media.save()
    return media
