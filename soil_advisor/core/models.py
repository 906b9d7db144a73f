"""
Value records for soil analyses and live transcripts.
"""

import json
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .errors import ValidationError


@dataclass(frozen=True)
class SoilData:
    """Measurements submitted with one analysis."""

    crop: str
    soil_type: str
    ph: float
    nitrogen: float
    phosphorus: float
    potassium: float
    history: str = ""
    climate: str = ""

    @classmethod
    def from_form(
        cls,
        crop: str | None,
        soil_type: str | None,
        ph,
        nitrogen,
        phosphorus,
        potassium,
        history: str | None = "",
        climate: str | None = "",
    ) -> "SoilData":
        """
        Build a record from raw form values.

        Raises:
            ValidationError: a required field is blank or a number is invalid
        """
        crop = (crop or "").strip()
        soil_type = (soil_type or "").strip()
        if not crop:
            raise ValidationError("Crop is required.")
        if not soil_type:
            raise ValidationError("Soil type is required.")

        values = {}
        for name, raw in (
            ("pH", ph),
            ("Nitrogen", nitrogen),
            ("Phosphorus", phosphorus),
            ("Potassium", potassium),
        ):
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                raise ValidationError(f"{name} is required.")
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be a number.") from None
            if not math.isfinite(value):
                raise ValidationError(f"{name} must be a number.")
            values[name] = value

        if not 0.0 <= values["pH"] <= 14.0:
            raise ValidationError("pH must be between 0 and 14.")
        for name in ("Nitrogen", "Phosphorus", "Potassium"):
            if values[name] < 0:
                raise ValidationError(f"{name} cannot be negative.")

        return cls(
            crop=crop,
            soil_type=soil_type,
            ph=values["pH"],
            nitrogen=values["Nitrogen"],
            phosphorus=values["Phosphorus"],
            potassium=values["Potassium"],
            history=(history or "").strip(),
            climate=(climate or "").strip(),
        )

    def to_prompt_json(self) -> str:
        """Serialize with the field names the model sees in the prompt."""
        payload = {
            "crop": self.crop,
            "soilType": self.soil_type,
            "ph": self.ph,
            "nitrogen": self.nitrogen,
            "phosphorus": self.phosphorus,
            "potassium": self.potassium,
            "history": self.history,
            "climate": self.climate,
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class AnalysisResult:
    """Normalized recommendation returned by the inference service."""

    product_recommendation: str
    reasoning: str
    confidence: float


@dataclass(frozen=True)
class SavedAnalysis:
    """A completed analysis kept for the session report."""

    soil_data: SoilData
    image_ref: str
    result: AnalysisResult
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Speaker(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


@dataclass(frozen=True)
class TranscriptionEntry:
    """One line of the live conversation log."""

    speaker: Speaker
    text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
