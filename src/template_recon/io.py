"""
I/O utilities for the template reconstruction pipeline.

Handles:
- Loading page text layers and extracted fields from JSON
- Loading page images and encoding them for vision services
- Writing template results
- Directory management
"""

import io
import json
import base64
import logging
from pathlib import Path
from typing import List, Union, Any, Dict
from dataclasses import asdict

from PIL import Image, UnidentifiedImageError

from .geometry import PageTextLayer, ExtractedField, PageImage, FaithfulTemplateResult

logger = logging.getLogger(__name__)


# ============================================================================
# Text Layers and Fields
# ============================================================================

def load_text_layers(json_path: Union[str, Path]) -> List[PageTextLayer]:
    """
    Load page text layers produced by the text-extraction step.

    Accepts a list of pages or an object with a "pages" list. Pages keep
    their file order; missing page numbers are filled from position.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the JSON has no page list
    """
    data = load_json(json_path)
    if isinstance(data, dict):
        data = data.get("pages")
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of pages in {json_path}")

    pages = [
        PageTextLayer.from_dict(item, default_page_number=i + 1)
        for i, item in enumerate(data)
        if isinstance(item, dict)
    ]
    logger.info(
        f"Loaded {len(pages)} page(s) with "
        f"{sum(len(p.fragments) for p in pages)} fragments from {json_path}"
    )
    return pages


def load_fields(json_path: Union[str, Path]) -> List[ExtractedField]:
    """
    Load extracted fields.

    Accepts a list of fields or a scan result object with a "fields" list.
    """
    data = load_json(json_path)
    if isinstance(data, dict):
        data = data.get("fields", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of fields in {json_path}")

    fields = [ExtractedField.from_dict(item) for item in data if isinstance(item, dict)]
    logger.info(f"Loaded {len(fields)} fields from {json_path}")
    return fields


# ============================================================================
# Image Loading
# ============================================================================

def encode_image(image: Image.Image, fmt: str = "PNG") -> PageImage:
    """Encode a PIL image as a base64 PageImage."""
    fmt = "JPEG" if fmt.upper() == "JPG" else fmt.upper()
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    mime_type = Image.MIME.get(fmt, "image/png")
    return PageImage(
        data=base64.b64encode(buffer.getvalue()).decode("utf-8"),
        mime_type=mime_type,
        width=image.width,
        height=image.height,
    )


def load_page_image(image_path: Union[str, Path]) -> PageImage:
    """
    Load a page raster for refinement.

    PNG, JPEG, GIF and WEBP files are passed through unchanged; other
    formats are re-encoded as PNG.

    Raises:
        FileNotFoundError: If the image file doesn't exist
        ValueError: If the image cannot be decoded
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    raw = image_path.read_bytes()
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            fmt = (img.format or "").upper()
            if fmt not in ("PNG", "JPEG", "GIF", "WEBP"):
                logger.debug(f"Re-encoding {fmt or 'unknown'} image as PNG: {image_path}")
                return encode_image(img, "PNG")
            width, height = img.size
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not decode image: {image_path}") from e

    logger.debug(f"Loaded image: {image_path} ({width}x{height}, {fmt})")
    return PageImage(
        data=base64.b64encode(raw).decode("utf-8"),
        mime_type=Image.MIME[fmt],
        width=width,
        height=height,
    )


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles dataclasses and paths."""

    def default(self, obj):
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """
    Load data from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_result(
    result: FaithfulTemplateResult,
    output_dir: Union[str, Path],
    stem: str = "template",
    save_skeleton: bool = False
) -> Dict[str, Path]:
    """
    Write a template result as HTML plus a JSON summary.

    Returns:
        Mapping of output kind ("html", "json", "skeleton") to path
    """
    output_dir = ensure_dir(output_dir)
    paths: Dict[str, Path] = {}

    html_path = output_dir / f"{stem}.html"
    html_path.write_text(result.html, encoding="utf-8")
    paths["html"] = html_path

    paths["json"] = save_json(result.to_dict(), output_dir / f"{stem}.json")

    if save_skeleton and result.skeleton:
        skeleton_path = output_dir / f"{stem}.skeleton.html"
        skeleton_path.write_text(result.skeleton, encoding="utf-8")
        paths["skeleton"] = skeleton_path

    logger.debug(f"Saved result files: {', '.join(str(p) for p in paths.values())}")
    return paths


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
