"""
Gradio UI for soil analysis and the live assistant.
"""

import logging

import gradio as gr

from ..core.errors import SoilAdvisorError
from ..core.live_session import LiveSession, SessionState
from ..core.models import SoilData
from ..core.recommendation import ImagePayload, Recommender
from ..core.settings import Settings, get_settings
from ..interfaces.gemini import GeminiLiveTransport, GeminiRecommender, create_client
from ..interfaces.microphone import MicrophoneInput
from ..interfaces.speaker import SpeakerOutput
from .live_runner import LiveRunner
from .state import (
    AppState,
    AppView,
    format_report_rows,
    format_submitted_data,
    format_transcript,
)

logger = logging.getLogger(__name__)

REPORT_HEADERS = [
    "Date",
    "Crop",
    "Soil data (pH/N/P/K)",
    "Soil type",
    "Product",
    "Confidence",
    "Reasoning summary",
]

STATUS_LABELS = {
    SessionState.IDLE: "⚪ Idle",
    SessionState.CONNECTING: "🟡 Connecting...",
    SessionState.OPEN: "🔴 Live",
    SessionState.CLOSING: "⏳ Closing...",
}


class SoilAdvisorApp:
    """
    Application shell: analysis form, result, report and live assistant.

    A single instance serves every browser connected to the process, so the
    saved report and the live session are shared, like the microphone they
    drive.
    """

    def __init__(self, recommender: Recommender, live_runner: LiveRunner):
        self.state = AppState(recommender)
        self.live = live_runner

    # ---------------- analysis ----------------

    def analyze(
        self,
        crop,
        soil_type,
        ph,
        nitrogen,
        phosphorus,
        potassium,
        history,
        climate,
        image_path,
    ) -> SoilData | None:
        """Validate the form and run the analysis; errors land in state.error."""
        try:
            soil_data = SoilData.from_form(
                crop, soil_type, ph, nitrogen, phosphorus, potassium, history, climate
            )
            image = ImagePayload.from_path(image_path)
        except SoilAdvisorError as e:
            self.state.report_error(str(e))
            return None
        self.state.submit_analysis(soil_data, image, image_ref=image_path)
        return soil_data

    def get_error(self) -> str:
        if not self.state.error:
            return ""
        return f"**Error:** {self.state.error}"

    def dismiss_error(self) -> None:
        self.state.dismiss_error()

    def select_view(self, view: AppView) -> None:
        """Record a tab the user picked by hand."""
        self.state.navigate(view)

    def get_result_markdown(self) -> str:
        analysis = self.state.current_analysis
        if analysis is None:
            return "No analysis yet."
        result = analysis.result
        return (
            "#### Recommended product\n"
            f"## {result.product_recommendation}\n"
            f"**Confidence:** {round(result.confidence * 100)}%\n\n"
            "#### AI agronomist reasoning\n"
            f"{result.reasoning}"
        )

    def get_result_image(self) -> str | None:
        analysis = self.state.current_analysis
        return analysis.image_ref if analysis else None

    def get_result_data(self) -> list[list[str]]:
        analysis = self.state.current_analysis
        if analysis is None:
            return []
        return format_submitted_data(analysis.soil_data)

    def get_report(self) -> list[list[str]]:
        return format_report_rows(self.state.saved_analyses)

    # ---------------- live assistant ----------------

    def start_live(self) -> None:
        if self.live.state() is SessionState.IDLE:
            self.live.start()

    def stop_live(self) -> None:
        self.live.stop()

    def get_transcript(self) -> str:
        return format_transcript(self.live.entries())

    def get_status(self) -> str:
        return STATUS_LABELS[self.live.state()]


def build_app(settings: Settings | None = None) -> SoilAdvisorApp:
    """Wire the Gemini adapters and audio devices into the app."""
    settings = settings or get_settings()
    client = create_client(settings)
    recommender = GeminiRecommender(client=client, settings=settings)
    transport = GeminiLiveTransport(client=client, settings=settings)

    def session_factory() -> LiveSession:
        return LiveSession(
            transport=transport,
            microphone=MicrophoneInput(),
            speaker=SpeakerOutput(),
        )

    return SoilAdvisorApp(recommender, LiveRunner(session_factory))


def create_ui(app: SoilAdvisorApp) -> gr.Blocks:
    """Create the Gradio UI."""
    with gr.Blocks(title="ON FERT AI Analyst") as demo:
        gr.Markdown("# 🌱 ON FERT AI Analyst")

        with gr.Row():
            error_box = gr.Markdown(value="", visible=False)
            dismiss_btn = gr.Button("✖ Close", size="sm", scale=0, visible=False)

        with gr.Tabs(selected=AppView.ANALYSIS_FORM.value) as tabs:
            with gr.Tab("Soil Analysis", id=AppView.ANALYSIS_FORM.value) as form_tab:
                gr.Markdown(
                    "Enter the soil data and upload a photo for an AI-powered "
                    "analysis and product recommendation."
                )
                with gr.Row():
                    with gr.Column(scale=1):
                        crop = gr.Textbox(label="Crop", value="Soybean")
                        soil_type = gr.Textbox(label="Soil type", value="Clay")
                        with gr.Row():
                            ph = gr.Number(label="pH level", value=6.5, step=0.1)
                            nitrogen = gr.Number(label="Nitrogen (ppm)", value=20)
                        with gr.Row():
                            phosphorus = gr.Number(label="Phosphorus (ppm)", value=15)
                            potassium = gr.Number(label="Potassium (ppm)", value=30)
                        history = gr.Textbox(
                            label="Field history",
                            value="Previous corn crop, no-till system.",
                            lines=2,
                        )
                        climate = gr.Textbox(
                            label="Climate",
                            value="Temperate, average rainfall.",
                            lines=2,
                        )
                    with gr.Column(scale=1):
                        image = gr.Image(
                            label="Crop / soil photo (JPEG or PNG, max 4 MB)",
                            type="filepath",
                        )
                analyze_btn = gr.Button("🔬 Analyze", variant="primary", size="lg")

            with gr.Tab("Result", id=AppView.ANALYSIS_RESULT.value) as result_tab:
                with gr.Row():
                    with gr.Column(scale=3):
                        result_md = gr.Markdown("No analysis yet.")
                    with gr.Column(scale=2):
                        result_image = gr.Image(label="Submitted photo", interactive=False)
                        result_data = gr.Dataframe(
                            headers=["Field", "Value"], interactive=False
                        )
                with gr.Row():
                    back_btn = gr.Button("⬅️ New analysis")
                    save_btn = gr.Button("💾 Save to report", variant="primary")

            with gr.Tab("Live Assistant", id=AppView.LIVE_ASSISTANT.value) as live_tab:
                gr.Markdown(
                    "Have a real-time conversation with our AI assistant. Ask about "
                    "soil types, crop problems or our products."
                )
                status_text = gr.Textbox(
                    label="Status", value=app.get_status(), interactive=False, lines=1
                )
                transcript_box = gr.Textbox(
                    label="Conversation",
                    lines=14,
                    max_lines=20,
                    interactive=False,
                    autoscroll=True,
                )
                with gr.Row():
                    start_btn = gr.Button("🎙️ Start Conversation", variant="primary")
                    stop_btn = gr.Button("⏹️ End Conversation", variant="stop")

            with gr.Tab("Company Report", id=AppView.COMPANY_REPORT.value) as report_tab:
                report_table = gr.Dataframe(headers=REPORT_HEADERS, interactive=False)

        def error_update():
            text = app.get_error()
            return (
                gr.Markdown(value=text, visible=bool(text)),
                gr.Button(visible=bool(text)),
            )

        def on_analyze(*values):
            app.analyze(*values)
            return (
                *error_update(),
                gr.Tabs(selected=app.state.view.value),
                app.get_result_markdown(),
                app.get_result_image(),
                app.get_result_data(),
            )

        def on_save():
            app.state.save_current()
            return gr.Tabs(selected=app.state.view.value), app.get_report()

        def on_dismiss():
            app.dismiss_error()
            return error_update()

        def on_back():
            app.state.back_to_form()
            return gr.Tabs(selected=app.state.view.value)

        def on_start():
            app.start_live()
            return app.get_transcript(), app.get_status()

        def on_stop():
            app.stop_live()
            return app.get_transcript(), app.get_status()

        analyze_btn.click(
            fn=on_analyze,
            inputs=[
                crop,
                soil_type,
                ph,
                nitrogen,
                phosphorus,
                potassium,
                history,
                climate,
                image,
            ],
            outputs=[error_box, dismiss_btn, tabs, result_md, result_image, result_data],
        )
        save_btn.click(fn=on_save, outputs=[tabs, report_table])
        back_btn.click(fn=on_back, outputs=[tabs])
        dismiss_btn.click(fn=on_dismiss, outputs=[error_box, dismiss_btn])

        for tab, view in (
            (form_tab, AppView.ANALYSIS_FORM),
            (result_tab, AppView.ANALYSIS_RESULT),
            (live_tab, AppView.LIVE_ASSISTANT),
            (report_tab, AppView.COMPANY_REPORT),
        ):
            tab.select(fn=lambda view=view: app.select_view(view))

        start_btn.click(fn=on_start, outputs=[transcript_box, status_text])
        stop_btn.click(fn=on_stop, outputs=[transcript_box, status_text])

        def refresh_live():
            return app.get_transcript(), app.get_status()

        timer = gr.Timer(value=0.3, active=True)
        timer.tick(fn=refresh_live, outputs=[transcript_box, status_text])

    return demo


def launch(settings: Settings | None = None) -> None:
    """Launch the Gradio UI."""
    settings = settings or get_settings()
    app = build_app(settings)
    demo = create_ui(app)
    try:
        demo.launch(server_name=settings.host, server_port=settings.port, share=False)
    finally:
        app.live.shutdown()
