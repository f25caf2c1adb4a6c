"""
Core OCR Engine for Receipt Text Extraction
Uses PaddleOCR (Portuguese model) for text detection and recognition

The PaddleOCR model is heavy, so it is created lazily on the first image
and reused for the lifetime of the engine. Install with the ``ocr`` extra.
"""

import time
from typing import Dict, List, Optional, Tuple

import numpy as np
from loguru import logger

from errors import ImageProcessingFailed
from utils import validate_image_file


class OCREngine:
    """
    Receipt OCR Engine powered by PaddleOCR

    Args:
        config: the ``ocr`` section (lang, use_textline_orientation, device);
                a ``preprocessing`` key may carry min/max image size
        ocr:    an already-built engine exposing ``predict(path)``
    """

    def __init__(self, config: Optional[Dict] = None, ocr=None):
        self.config = config or {}
        self.ocr = ocr

    def _initialize_ocr(self):
        """Initialize the PaddleOCR model"""
        init_params = {
            "lang": self.config.get("lang", "pt"),
            "use_textline_orientation": self.config.get("use_textline_orientation", True),
            "device": self.config.get("device", "cpu"),
        }
        logger.info(f"Initializing PaddleOCR: {init_params}")

        try:
            from paddleocr import PaddleOCR
        except ImportError as e:
            logger.error(f"Missing dependency: {e}")
            logger.info("Install with: pip install 'receipt-nfce-extractor[ocr]'")
            raise ImageProcessingFailed("Mecanismo de OCR não está instalado no servidor") from e

        try:
            self.ocr = PaddleOCR(**init_params)
        except Exception as e:
            logger.error(f"Failed to initialize PaddleOCR: {e}")
            raise ImageProcessingFailed() from e

        logger.success("PaddleOCR model loaded successfully")

    def extract_text(self, image_path: str) -> Dict:
        """
        Extract text from a receipt image

        Returns:
            Dictionary with status, full text, per-line text/confidence/bbox
            and timing
        """
        is_valid, message = self.validate_image(image_path)
        if not is_valid:
            logger.warning(f"[OCR] rejected {image_path}: {message}")
            raise ImageProcessingFailed(f"Erro ao processar a imagem da nota fiscal: {message}")

        if self.ocr is None:
            self._initialize_ocr()

        logger.info(f"Processing image: {image_path}")
        start_time = time.time()

        try:
            results = self.ocr.predict(image_path)
        except Exception as e:
            logger.error(f"OCR extraction failed: {e}")
            raise ImageProcessingFailed() from e

        lines = []
        for page in results or []:
            lines.extend(self._parse_ocr_result(page))

        processing_time = int((time.time() - start_time) * 1000)

        if not lines:
            logger.warning(f"No text detected in {image_path}")
            return {
                "status": "no_text_found",
                "text": "",
                "lines": [],
                "lines_detected": 0,
                "average_confidence": 0.0,
                "processing_time_ms": processing_time,
            }

        avg_confidence = float(np.mean([line["confidence"] for line in lines]))
        logger.info(f"Extracted {len(lines)} lines in {processing_time}ms  "
                    f"avg_conf={avg_confidence:.2f}")

        return {
            "status": "success",
            "text": "\n".join(line["text"] for line in lines),
            "lines": lines,
            "lines_detected": len(lines),
            "average_confidence": round(avg_confidence, 3),
            "processing_time_ms": processing_time,
        }

    def recognize(self, image_path: str) -> str:
        """Recognised text only, one OCR line per text line"""
        return self.extract_text(image_path)["text"]

    def _parse_ocr_result(self, page) -> List[Dict]:
        """Parse one PaddleOCR page result (rec_texts / rec_scores / rec_polys)"""
        # rec_scores and rec_polys come back as numpy arrays
        texts, scores, polys = (
            [] if page.get(key) is None else page.get(key)
            for key in ("rec_texts", "rec_scores", "rec_polys")
        )

        lines = []
        for i, text in enumerate(texts):
            if not str(text).strip():
                continue
            bbox = polys[i] if i < len(polys) else None
            lines.append({
                "text": str(text),
                "confidence": round(float(scores[i]), 3) if i < len(scores) else 0.0,
                "bbox": np.asarray(bbox).tolist() if bbox is not None else None,
            })
        return lines

    def validate_image(self, image_path: str) -> Tuple[bool, str]:
        """
        Validate if image is suitable for OCR

        Returns:
            (is_valid, message)
        """
        preprocessing = self.config.get("preprocessing", {})
        return validate_image_file(
            image_path,
            min_size=preprocessing.get("min_image_size", 100),
            max_size=preprocessing.get("max_image_size", 8192),
        )
