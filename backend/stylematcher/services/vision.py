"""
Reference image style detection.

The active detector is pluggable. The default one does not look at pixels:
it checks the upload really is an image, then derives a chart label from the
file name so the same file always gets the same answer.

Configure via STYLE_DETECTOR environment variable.
"""
import logging
import random
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Dict, List, Optional
from fastapi import HTTPException
from PIL import Image, UnidentifiedImageError
from stylematcher.core.config import get_settings
from stylematcher.core.errors import ErrorCodes, get_error_response
from stylematcher.core.performance import track_performance
from stylematcher.core.schemas import Row, StyleDetection

logger = logging.getLogger(__name__)

STYLE_LABELS = [
    'Bar Chart', 'Line Chart', 'Scatter Plot', 'Pie Chart', 'Heatmap',
    'Density Plot', 'Area Chart', 'Radial Bar Chart', 'Pyramid Chart',
]

SAMPLE_CATEGORIES = ['Electronics', 'Clothing', 'Home Decor', 'Books', 'Sports']
SAMPLE_REGIONS = ['North', 'South', 'East', 'West', 'Central']
ALLOWED_IMAGE_FORMATS = {'PNG', 'JPEG', 'GIF', 'WEBP'}


def filename_hash(name: str) -> int:
    """
    32-bit signed string hash (h = h * 31 + code unit) over UTF-16 code units.
    """
    h = 0
    raw = name.encode('utf-16-le')
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def label_for_filename(name: str) -> str:
    return STYLE_LABELS[abs(filename_hash(name)) % len(STYLE_LABELS)]


def synthetic_rows(label: str, rng: random.Random) -> List[Row]:
    """Sample rows shaped like the data a chart of this kind usually shows."""
    kind = label.lower()

    if 'bar' in kind or 'column' in kind or 'radial' in kind:
        return [
            {'Category': cat, 'Value': rng.randint(200, 1199), 'Region': rng.choice(SAMPLE_REGIONS)}
            for cat in SAMPLE_CATEGORIES
        ]

    if 'line' in kind or 'area' in kind:
        return [
            {'Date': f"2025-{month:02d}-01T00:00:00", 'Value': rng.randint(0, 499) + (month - 1) * 20,
             'Trend': rng.randint(0, 99)}
            for month in range(1, 13)
        ]

    if 'scatter' in kind or 'bubble' in kind:
        return [
            {'id': i, 'X_Value': rng.randint(0, 99), 'Y_Value': rng.randint(0, 99),
             'Size': rng.randint(10, 59), 'Group': SAMPLE_CATEGORIES[i % len(SAMPLE_CATEGORIES)]}
            for i in range(30)
        ]

    return [{'Category': cat, 'Value': rng.randint(0, 999)} for cat in SAMPLE_CATEGORIES]


def verify_image(content: bytes) -> str:
    """Return the image format, or raise 400 if the bytes aren't a supported image."""
    if not content:
        raise HTTPException(status_code=400, detail=get_error_response(ErrorCodes.INVALID_IMAGE, "The image is empty."))
    try:
        with Image.open(BytesIO(content)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning(f"Rejected reference image: {e}")
        raise HTTPException(status_code=400, detail=get_error_response(ErrorCodes.INVALID_IMAGE))

    if image_format not in ALLOWED_IMAGE_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=get_error_response(ErrorCodes.INVALID_IMAGE, f"Format {image_format} is not supported.")
        )
    return image_format


class StyleDetector(ABC):
    """Abstract base class for reference image detectors."""

    @abstractmethod
    def detect(self, filename: str, content: bytes) -> StyleDetection:
        """Detect the chart style of an uploaded image."""
        pass


class FilenameHashStyleDetector(StyleDetector):
    """
    Deterministic stand-in detector.

    Label, sample rows and confidence all derive from the file name hash.
    """

    def detect(self, filename: str, content: bytes) -> StyleDetection:
        verify_image(content)

        seed = filename_hash(filename or "")
        label = label_for_filename(filename or "")
        rng = random.Random(seed)
        rows = synthetic_rows(label, rng)

        return StyleDetection(
            detected_label=label,
            confidence=round(0.85 + rng.random() * 0.14, 4),
            sample_data=rows,
            summary=f"Detected {label} with {len(rows)} data points.",
        )


_DETECTORS: Dict[str, type] = {
    'filename-hash': FilenameHashStyleDetector,
}

_detector: Optional[StyleDetector] = None


def get_style_detector() -> StyleDetector:
    """Get the active style detector, building it from settings on first use."""
    global _detector
    if _detector is None:
        name = get_settings().style_detector
        _detector = _DETECTORS[name]()
        logger.info(f"Using style detector: {name}")
    return _detector


def set_style_detector(detector: Optional[StyleDetector]) -> None:
    """Replace the active detector; None resets to the configured default."""
    global _detector
    _detector = detector


@track_performance("detect_style")
def detect_style(filename: str, content: bytes) -> StyleDetection:
    detection = get_style_detector().detect(filename, content)
    logger.info(f"Detected style '{detection.detected_label}' ({detection.confidence:.2f})")
    return detection
