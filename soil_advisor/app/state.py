"""
View and report state for the application shell.
"""

import logging
import threading
from enum import Enum

from ..core.errors import SoilAdvisorError
from ..core.models import SavedAnalysis, SoilData, Speaker, TranscriptionEntry
from ..core.recommendation import ImagePayload, Recommender, analyze

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred during the analysis."
REASONING_SUMMARY_CHARS = 80


class AppView(Enum):
    ANALYSIS_FORM = "form"
    ANALYSIS_RESULT = "result"
    LIVE_ASSISTANT = "live"
    COMPANY_REPORT = "report"


class AppState:
    """
    In-memory state for the running process: the current view, the last
    analysis and the saved report (newest first). Nothing is persisted.

    One instance backs the whole UI, so every browser tab connected to the
    server shares the same report.
    """

    def __init__(self, recommender: Recommender):
        self.recommender = recommender
        self.view = AppView.ANALYSIS_FORM
        self.error: str | None = None
        self.is_loading = False
        self.current_analysis: SavedAnalysis | None = None
        self._saved: list[SavedAnalysis] = []
        self._lock = threading.Lock()

    @property
    def saved_analyses(self) -> list[SavedAnalysis]:
        with self._lock:
            return list(self._saved)

    def navigate(self, view: AppView) -> None:
        if view is AppView.ANALYSIS_RESULT and self.current_analysis is None:
            view = AppView.ANALYSIS_FORM
        self.view = view

    def submit_analysis(
        self, soil_data: SoilData, image: ImagePayload | None, image_ref: str = ""
    ) -> SavedAnalysis | None:
        """
        Run one analysis. On success switch to the result view; on failure
        stay on the form with `error` set.
        """
        self.is_loading = True
        self.error = None
        try:
            result = analyze(self.recommender, soil_data, image)
        except SoilAdvisorError as e:
            self.report_error(str(e))
            return None
        except Exception:
            logger.exception("Analysis failed")
            self.report_error(UNKNOWN_ERROR_MESSAGE)
            return None
        finally:
            self.is_loading = False

        self.current_analysis = SavedAnalysis(
            soil_data=soil_data,
            image_ref=image_ref or (image.name if image else ""),
            result=result,
        )
        self.view = AppView.ANALYSIS_RESULT
        return self.current_analysis

    def save_current(self) -> SavedAnalysis | None:
        """Prepend the current analysis to the report and show the report."""
        analysis = self.current_analysis
        if analysis is None:
            return None
        with self._lock:
            if all(saved.id != analysis.id for saved in self._saved):
                self._saved.insert(0, analysis)
        self.view = AppView.COMPANY_REPORT
        return analysis

    def back_to_form(self) -> None:
        self.view = AppView.ANALYSIS_FORM

    def report_error(self, message: str) -> None:
        """Show `message` on the form."""
        self.error = message
        self.view = AppView.ANALYSIS_FORM

    def dismiss_error(self) -> None:
        self.error = None


SPEAKER_LABELS = {
    Speaker.USER: "You",
    Speaker.MODEL: "Assistant",
    Speaker.SYSTEM: "System",
}


def format_transcript(entries: list[TranscriptionEntry]) -> str:
    """Render the live transcript one entry per line."""
    return "\n".join(f"[{SPEAKER_LABELS[e.speaker]}] {e.text}" for e in entries)


def format_submitted_data(soil_data: SoilData) -> list[list[str]]:
    return [
        ["Crop", soil_data.crop],
        ["Soil type", soil_data.soil_type],
        ["pH level", f"{soil_data.ph:g}"],
        ["Nitrogen", f"{soil_data.nitrogen:g} ppm"],
        ["Phosphorus", f"{soil_data.phosphorus:g} ppm"],
        ["Potassium", f"{soil_data.potassium:g} ppm"],
        ["History", soil_data.history],
        ["Climate", soil_data.climate],
    ]


def summarize(text: str, limit: int = REASONING_SUMMARY_CHARS) -> str:
    """Collapse whitespace and cut to `limit` characters."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def format_report_rows(analyses: list[SavedAnalysis]) -> list[list[str]]:
    """
    Rows for the company report table: date, crop, pH/N/P/K, soil type,
    product, confidence and a one-line reasoning summary.
    """
    rows = []
    for analysis in analyses:
        soil = analysis.soil_data
        rows.append(
            [
                analysis.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
                soil.crop,
                f"{soil.ph:g} / {soil.nitrogen:g} / {soil.phosphorus:g} / {soil.potassium:g}",
                soil.soil_type,
                analysis.result.product_recommendation,
                f"{round(analysis.result.confidence * 100)}%",
                summarize(analysis.result.reasoning),
            ]
        )
    return rows
