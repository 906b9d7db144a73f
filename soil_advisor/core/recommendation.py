"""
Fertilizer recommendation request and response handling.

The inference provider sits behind the `Recommender` protocol; this module
only validates inputs, builds the prompt and normalizes the structured output.
"""

import base64
import io
import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from . import config
from .errors import ResponseFormatError, ValidationError
from .models import AnalysisResult, SoilData

logger = logging.getLogger(__name__)

INVALID_RESPONSE_MESSAGE = "The AI returned an invalid response. Please try again."

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "productRecommendation": {
            "type": "STRING",
            "enum": list(config.PRODUCTS),
            "description": "The recommended fertilizer product.",
        },
        "reasoning": {
            "type": "STRING",
            "description": (
                "A detailed explanation for the recommendation, based on the "
                "soil data and image analysis."
            ),
        },
        "confidence": {
            "type": "NUMBER",
            "description": "A confidence score between 0 and 1 for the recommendation.",
        },
    },
    "required": ["productRecommendation", "reasoning", "confidence"],
}


@dataclass(frozen=True)
class ImagePayload:
    """Validated crop/soil photo ready to be sent inline."""

    data: bytes
    mime_type: str
    name: str = ""

    @property
    def image_b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "") -> "ImagePayload":
        """
        Validate raw image bytes.

        Raises:
            ValidationError: empty, oversized, or not a JPEG/PNG image
        """
        if not data:
            raise ValidationError("Please upload an image of the crop or soil.")
        if len(data) > config.MAX_IMAGE_BYTES:
            raise ValidationError("The image must be smaller than 4 MB.")
        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
        except (UnidentifiedImageError, OSError):
            raise ValidationError("The uploaded file is not a readable image.") from None
        mime_type = config.ACCEPTED_IMAGE_FORMATS.get(image_format or "")
        if mime_type is None:
            raise ValidationError("Only JPEG or PNG images are supported.")
        return cls(data=data, mime_type=mime_type, name=name)

    @classmethod
    def from_path(cls, path: str | None) -> "ImagePayload":
        """Validate an uploaded file; the size is checked before reading it."""
        if not path:
            raise ValidationError("Please upload an image of the crop or soil.")
        try:
            size = os.path.getsize(path)
        except OSError:
            raise ValidationError("The uploaded image could not be read.") from None
        if size > config.MAX_IMAGE_BYTES:
            raise ValidationError("The image must be smaller than 4 MB.")
        with open(path, "rb") as f:
            data = f.read()
        return cls.from_bytes(data, name=os.path.basename(path))


class Recommender(Protocol):
    """Anything that turns soil data plus a photo into a recommendation."""

    def recommend(self, soil_data: SoilData, image: ImagePayload) -> AnalysisResult: ...


def build_prompt(soil_data: SoilData) -> str:
    """Fixed agronomist instructions with the measurements embedded as JSON."""
    products = "\n".join(f"- {name}" for name in config.PRODUCTS)
    return (
        "You are an expert agronomy AI for a fertilizer company called \"ON FERT\". "
        "Your task is to analyze the soil data provided and a photo of the "
        "crop/soil to recommend the best fertilizer product.\n\n"
        f"Available products:\n{products}\n\n"
        "Please analyze the following information:\n"
        f"- Soil data: {soil_data.to_prompt_json()}\n"
        "- Attached image: a photo of the crop and/or soil condition. Look for "
        "visual cues such as leaf discoloration (chlorosis, necrosis), stunted "
        "growth or soil texture.\n\n"
        "Based on a comprehensive analysis of the data and the image, provide a "
        "tailored product recommendation. Your answer must be JSON matching the "
        "provided schema."
    )


def parse_analysis(raw: str) -> AnalysisResult:
    """
    Parse and normalize the model's JSON answer.

    An unknown product is replaced by the default product and the reasoning
    is prefixed with CORRECTION_NOTICE.

    Raises:
        ResponseFormatError: not JSON, or fields missing / of the wrong type
    """
    text = (raw or "").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.error("Failed to parse model response: %r", text)
        raise ResponseFormatError(INVALID_RESPONSE_MESSAGE) from None

    if not isinstance(payload, dict):
        logger.error("Model response is not an object: %r", text)
        raise ResponseFormatError(INVALID_RESPONSE_MESSAGE)

    product = payload.get("productRecommendation")
    reasoning = payload.get("reasoning")
    confidence = payload.get("confidence")

    if not isinstance(product, str) or not isinstance(reasoning, str):
        logger.error("Model response missing fields: %r", text)
        raise ResponseFormatError(INVALID_RESPONSE_MESSAGE)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        logger.error("Model response has non-numeric confidence: %r", text)
        raise ResponseFormatError(INVALID_RESPONSE_MESSAGE)
    confidence = float(confidence)
    if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
        logger.error("Model response confidence out of range: %r", text)
        raise ResponseFormatError(INVALID_RESPONSE_MESSAGE)

    if product not in config.PRODUCTS:
        logger.warning(
            "Model recommended unknown product %r, using %r",
            product,
            config.DEFAULT_PRODUCT,
        )
        product = config.DEFAULT_PRODUCT
        reasoning = f"{config.CORRECTION_NOTICE} {reasoning}"

    return AnalysisResult(
        product_recommendation=product,
        reasoning=reasoning,
        confidence=confidence,
    )


def analyze(
    recommender: Recommender, soil_data: SoilData, image: ImagePayload | None
) -> AnalysisResult:
    """Check the submission locally, then ask the recommender."""
    if image is None:
        raise ValidationError("Please upload an image of the crop or soil.")
    if len(image.data) > config.MAX_IMAGE_BYTES:
        raise ValidationError("The image must be smaller than 4 MB.")
    return recommender.recommend(soil_data, image)
