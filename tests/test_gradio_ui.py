"""
Tests for the UI-facing application object (no browser involved).
"""

import unittest
from unittest.mock import MagicMock

from soil_advisor.app.gradio_ui import REPORT_HEADERS, SoilAdvisorApp
from soil_advisor.app.state import AppView
from soil_advisor.core.live_session import SessionState
from soil_advisor.core.models import AnalysisResult, SoilData
from soil_advisor.core.recommendation import ImagePayload

FORM = ("Soybean", "Clay", 6.5, 20, 15, 30, "", "")


class TestSoilAdvisorApp(unittest.TestCase):
    def setUp(self):
        self.recommender = MagicMock()
        self.recommender.recommend.return_value = AnalysisResult("Mineral", "ok", 0.8)
        live = MagicMock()
        live.state.return_value = SessionState.IDLE
        self.app = SoilAdvisorApp(self.recommender, live)

    def save_one(self):
        self.app.state.submit_analysis(
            SoilData(*FORM[:6]),
            ImagePayload(data=b"\xff\xd8fake", mime_type="image/jpeg"),
        )
        self.app.state.save_current()

    def test_invalid_form_after_saving_shows_form(self):
        self.save_one()
        self.app.select_view(AppView.ANALYSIS_FORM)
        self.assertIsNone(self.app.analyze("", *FORM[1:], None))
        self.assertIs(self.app.state.view, AppView.ANALYSIS_FORM)
        self.assertEqual(self.app.get_error(), "**Error:** Crop is required.")
        self.recommender.recommend.assert_called_once()

    def test_missing_image_stays_on_form(self):
        self.app.select_view(AppView.COMPANY_REPORT)
        self.assertIsNone(self.app.analyze(*FORM, None))
        self.assertIs(self.app.state.view, AppView.ANALYSIS_FORM)
        self.assertIn("upload an image", self.app.get_error())

    def test_tab_selection_updates_view(self):
        self.app.select_view(AppView.LIVE_ASSISTANT)
        self.assertIs(self.app.state.view, AppView.LIVE_ASSISTANT)
        # the result tab has nothing to show before the first analysis
        self.app.select_view(AppView.ANALYSIS_RESULT)
        self.assertIs(self.app.state.view, AppView.ANALYSIS_FORM)

    def test_dismiss_clears_banner(self):
        self.app.analyze("", *FORM[1:], None)
        self.app.dismiss_error()
        self.assertEqual(self.app.get_error(), "")

    def test_report_matches_headers(self):
        self.save_one()
        rows = self.app.get_report()
        self.assertEqual(len(rows), 1)
        self.assertEqual(len(rows[0]), len(REPORT_HEADERS))


if __name__ == "__main__":
    unittest.main()
