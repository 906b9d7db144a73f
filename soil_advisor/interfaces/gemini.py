"""
Gemini adapters for the recommendation call and the live voice endpoint.
SDK types stay inside this module; the core only sees its own records.
"""

import logging
from contextlib import AsyncExitStack
from typing import AsyncIterator

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..core import config
from ..core.audio import AudioBlob, decode_base64, encode_base64
from ..core.errors import ConnectionError
from ..core.live_session import ServerEvent
from ..core.models import AnalysisResult, SoilData
from ..core.recommendation import (
    ANALYSIS_SCHEMA,
    ImagePayload,
    build_prompt,
    parse_analysis,
)
from ..core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_client(settings: Settings | None = None) -> genai.Client:
    """Create an SDK client; refuses to do so without a credential."""
    settings = settings or get_settings()
    return genai.Client(api_key=settings.require_api_key())


class GeminiRecommender:
    """Recommender backed by a multimodal generate_content call."""

    def __init__(
        self,
        client: genai.Client | None = None,
        model: str | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.client = client or create_client(settings)
        self.model = model or settings.analysis_model

    def recommend(self, soil_data: SoilData, image: ImagePayload) -> AnalysisResult:
        contents = [
            types.Part.from_text(text=build_prompt(soil_data)),
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
        ]
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=ANALYSIS_SCHEMA,
                ),
            )
        except genai_errors.APIError as e:
            logger.error("Analysis request failed: %s", e)
            raise ConnectionError(f"The analysis service request failed: {e}") from e
        return parse_analysis(response.text or "")


def live_connect_config(
    system_instruction: str = config.LIVE_SYSTEM_INSTRUCTION,
) -> types.LiveConnectConfig:
    """Audio replies, transcription in both directions, fixed persona."""
    return types.LiveConnectConfig(
        response_modalities=[types.Modality.AUDIO],
        input_audio_transcription=types.AudioTranscriptionConfig(),
        output_audio_transcription=types.AudioTranscriptionConfig(),
        system_instruction=system_instruction,
    )


def to_server_event(message: types.LiveServerMessage) -> ServerEvent | None:
    """Map an SDK message to a ServerEvent; None for non-content messages."""
    content = message.server_content
    if content is None:
        return None

    audio = None
    if content.model_turn and content.model_turn.parts:
        inline = content.model_turn.parts[0].inline_data
        if inline is not None and inline.data:
            audio = encode_base64(inline.data)

    input_text = ""
    if content.input_transcription and content.input_transcription.text:
        input_text = content.input_transcription.text
    output_text = ""
    if content.output_transcription and content.output_transcription.text:
        output_text = content.output_transcription.text

    return ServerEvent(
        input_text=input_text,
        output_text=output_text,
        audio=audio,
        turn_complete=bool(content.turn_complete),
        interrupted=bool(content.interrupted),
    )


class GeminiLiveConnection:
    """An open live session."""

    def __init__(self, session, stack: AsyncExitStack):
        self._session = session
        self._stack = stack

    async def send_audio(self, blob: AudioBlob) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=decode_base64(blob.data), mime_type=blob.mime_type)
        )

    async def receive(self) -> AsyncIterator[ServerEvent]:
        # session.receive() ends after every completed turn; an empty pass
        # means the socket is gone.
        try:
            while True:
                received = False
                async for message in self._session.receive():
                    received = True
                    event = to_server_event(message)
                    if event is not None:
                        yield event
                if not received:
                    return
        except genai_errors.APIError as e:
            raise ConnectionError(str(e)) from e

    async def close(self) -> None:
        await self._stack.aclose()


class GeminiLiveTransport:
    """Opens live sessions against the native-audio model."""

    def __init__(
        self,
        client: genai.Client | None = None,
        model: str | None = None,
        settings: Settings | None = None,
        system_instruction: str = config.LIVE_SYSTEM_INSTRUCTION,
    ):
        settings = settings or get_settings()
        self.client = client or create_client(settings)
        self.model = model or settings.live_model
        self.system_instruction = system_instruction

    async def connect(self) -> GeminiLiveConnection:
        stack = AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                self.client.aio.live.connect(
                    model=self.model,
                    config=live_connect_config(self.system_instruction),
                )
            )
        except Exception as e:
            await stack.aclose()
            raise ConnectionError(f"Could not connect to the live assistant: {e}") from e
        logger.info("Live session opened with %s", self.model)
        return GeminiLiveConnection(session, stack)
