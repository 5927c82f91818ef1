"""
Shop Utility Functions
Reference codes, text helpers and upload validation
"""

import os
import secrets
import string
from datetime import datetime
from typing import Tuple

from django.core.files.uploadedfile import UploadedFile
from django.utils.text import slugify
from PIL import Image, UnidentifiedImageError
import logging

logger = logging.getLogger(__name__)


IMAGE_EXTENSIONS = ('jpeg', 'jpg', 'png', 'gif', 'webp')
VIDEO_EXTENSIONS = ('mp4', 'webm', 'ogg', 'mov', 'avi')


# ==========================================
# REFERENCES & TEXT
# ==========================================

def generate_reference(prefix: str = 'REF', length: int = 10) -> str:
    """
    Generate unique reference code

    Args:
        prefix: Reference prefix (e.g., 'ORD', 'PAY')
        length: Length of random part

    Returns:
        Reference string (e.g., 'ORD_20250114_A8K3M9P2L5')
    """
    chars = string.ascii_uppercase + string.digits
    random_part = ''.join(secrets.choice(chars) for _ in range(length))
    timestamp = datetime.now().strftime('%Y%m%d')

    return f"{prefix}_{timestamp}_{random_part}"


def truncate_text(text: str, max_length: int = 100, suffix: str = '...') -> str:
    """
    Keep the first `max_length` characters and append `suffix`
    when the text is longer than that
    """
    if len(text) <= max_length:
        return text

    return text[:max_length] + suffix


def generate_unique_filename(original_filename: str, prefix: str = '') -> str:
    name, ext = os.path.splitext(original_filename)
    name = slugify(name) or 'file'

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    random_str = secrets.token_hex(4)

    if prefix:
        return f"{prefix}_{name}_{timestamp}_{random_str}{ext.lower()}"

    return f"{name}_{timestamp}_{random_str}{ext.lower()}"


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or '')[1].lstrip('.').lower()


# ==========================================
# UPLOAD VALIDATION
# ==========================================

def validate_image_file(file: UploadedFile, max_size_mb: int = 5) -> Tuple[bool, str]:
    """
    Validate uploaded image file

    Args:
        file: Uploaded file
        max_size_mb: Maximum file size in MB

    Returns:
        Tuple of (is_valid: bool, error_message: str)
    """
    max_size_bytes = max_size_mb * 1024 * 1024
    if file.size > max_size_bytes:
        return False, f'File size must be less than {max_size_mb}MB'

    if file_extension(file.name) not in IMAGE_EXTENSIONS:
        return False, 'Only JPEG, PNG, GIF and WEBP images are allowed'

    try:
        img = Image.open(file)
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False, 'Invalid image file'
    finally:
        file.seek(0)

    return True, ''


def validate_video_file(file: UploadedFile, max_size_mb: int = 50) -> Tuple[bool, str]:
    max_size_bytes = max_size_mb * 1024 * 1024
    if file.size > max_size_bytes:
        return False, f'File size must be less than {max_size_mb}MB'

    if file_extension(file.name) not in VIDEO_EXTENSIONS:
        return False, 'Only MP4, WEBM, OGG, MOV and AVI videos are allowed'

    content_type = getattr(file, 'content_type', '') or ''
    if content_type and not content_type.startswith('video/') and content_type != 'application/octet-stream':
        return False, 'File is not a video'

    return True, ''
