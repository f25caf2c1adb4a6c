"""
QR code decoding for photographed NFCe receipts.

Receipt QR codes are small and often printed on thermal paper, so a first
miss is retried on a grayscale, upscaled copy of the image.
"""

import os
from typing import Dict, Optional

import cv2
from loguru import logger

from errors import ImageProcessingFailed


class QRDecoder:
    """Decode the first QR code found in an image file."""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.upscale_factor = float(self.config.get("upscale_factor", 2.0))
        self.detector = cv2.QRCodeDetector()

    def decode(self, image_path: str) -> Optional[str]:
        """
        Returns the decoded payload, or None when no QR code is readable.

        Raises ImageProcessingFailed when the file is missing or is not an image.
        """
        if not os.path.exists(image_path):
            raise ImageProcessingFailed("Imagem do QR Code não encontrada")

        img = cv2.imread(image_path)
        if img is None:
            raise ImageProcessingFailed("Não foi possível ler a imagem do QR Code")

        payload = self._detect(img)
        if payload:
            logger.info(f"[QRDecoder] decoded {len(payload)} chars")
            return payload

        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        if self.upscale_factor > 1:
            gray = cv2.resize(
                gray, None,
                fx=self.upscale_factor, fy=self.upscale_factor,
                interpolation=cv2.INTER_CUBIC,
            )
        payload = self._detect(gray)
        if payload:
            logger.info(f"[QRDecoder] decoded {len(payload)} chars on retry")
            return payload

        logger.warning(f"[QRDecoder] no QR code found in {image_path}")
        return None

    def _detect(self, img) -> Optional[str]:
        try:
            payload, _points, _ = self.detector.detectAndDecode(img)
        except cv2.error as e:
            logger.debug(f"[QRDecoder] detector error: {e}")
            return None
        return payload or None
