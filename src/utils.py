"""
Utility functions for receipt processing: configuration, logging, uploads
"""

import copy
import os
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2
import yaml
from loguru import logger


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "receipt_config.yaml"

DEFAULT_CONFIG: Dict = {
    "ocr": {
        "lang": "pt",
        "use_textline_orientation": True,
        "device": "cpu",
    },
    "qr": {
        "upscale_factor": 2.0,
    },
    "extraction": {
        "placeholder_on_empty": True,
        "categories": None,
    },
    "nfce": {
        "timeout_seconds": 20.0,
        "danfe_viewers": {
            "sefaz.ba.gov.br": "http://nfe.sefaz.ba.gov.br/servicos/nfce/Modulos/Geral/NFCEC_consulta_danfe.aspx",
        },
    },
    "backend": {
        "base_url": "",
        "timeout_seconds": 15.0,
    },
    "api": {
        "upload_dir": "data/uploads",
        "max_file_size_mb": 10,
        "allowed_extensions": [".jpg", ".jpeg", ".png", ".webp", ".bmp"],
    },
    "preprocessing": {
        "min_image_size": 100,
        "max_image_size": 8192,
    },
    "logging": {
        "file": "logs/receipt_service.log",
        "level": "INFO",
    },
}


def _deep_merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load the service configuration.

    Resolution order: explicit path, $RECEIPT_CONFIG, config/receipt_config.yaml.
    The YAML is deep-merged over DEFAULT_CONFIG; a missing file yields the
    defaults. $INVENTORY_API_URL and $RECEIPT_LOG_LEVEL override the file.
    """
    path = Path(config_path or os.environ.get("RECEIPT_CONFIG") or DEFAULT_CONFIG_PATH)

    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            config = _deep_merge(DEFAULT_CONFIG, yaml.safe_load(f) or {})
    else:
        logger.warning(f"Config file not found: {path}, using defaults")
        config = copy.deepcopy(DEFAULT_CONFIG)

    if os.environ.get("INVENTORY_API_URL"):
        config["backend"]["base_url"] = os.environ["INVENTORY_API_URL"]
    if os.environ.get("RECEIPT_LOG_LEVEL"):
        config["logging"]["level"] = os.environ["RECEIPT_LOG_LEVEL"].upper()

    return config


def validate_image_file(
    file_path: str,
    allowed_extensions: Optional[List[str]] = None,
    min_size: int = 100,
    max_size: int = 8192,
) -> Tuple[bool, str]:
    """
    Validate that a file is a readable image within the size bounds

    Returns:
        (is_valid, message)
    """
    if allowed_extensions is None:
        allowed_extensions = DEFAULT_CONFIG["api"]["allowed_extensions"]

    if not os.path.exists(file_path):
        return False, "File not found"

    ext = os.path.splitext(file_path)[1].lower()
    if ext not in allowed_extensions:
        return False, f"Invalid extension: {ext}. Allowed: {allowed_extensions}"

    # decode the pixels rather than trusting the extension
    img = cv2.imread(file_path)
    if img is None:
        return False, "Unable to read image file"

    height, width = img.shape[:2]
    if width > max_size or height > max_size:
        return False, f"Image too large (max: {max_size}px)"
    if width < min_size or height < min_size:
        return False, f"Image too small (min: {min_size}px)"

    return True, "Valid image file"


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal and special characters
    """
    filename = os.path.basename(filename or "")
    filename = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)

    if len(filename) > 100:
        name, ext = os.path.splitext(filename)
        filename = name[:95] + ext

    return filename


def ensure_directory(dir_path: str) -> str:
    """Create the directory if needed and return its absolute path"""
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return str(path.absolute())


def format_processing_time(milliseconds: int) -> str:
    """e.g. "456ms", "1.23s" """
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    return f"{milliseconds / 1000:.2f}s"


def setup_logging(log_file: str = "logs/receipt_service.log", level: str = "INFO"):
    """
    Setup logging configuration

    Args:
        log_file: Path to log file
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level
    )

    log_dir = os.path.dirname(log_file)
    if log_dir:
        ensure_directory(log_dir)
    logger.add(
        log_file,
        rotation="10 MB",
        retention="30 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
    )

    logger.info("Logging initialized")
