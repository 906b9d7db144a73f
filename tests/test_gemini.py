"""
Tests for the Gemini adapters, with a mocked SDK client.
"""

import base64
import json
import unittest
from contextlib import AsyncExitStack
from unittest.mock import AsyncMock, MagicMock

from google.genai import types

from soil_advisor.core.audio import AudioBlob
from soil_advisor.core.errors import ConfigurationError, ResponseFormatError
from soil_advisor.core.models import SoilData
from soil_advisor.core.recommendation import ImagePayload
from soil_advisor.core.settings import Settings
from soil_advisor.interfaces.gemini import (
    GeminiLiveConnection,
    GeminiRecommender,
    create_client,
    live_connect_config,
    to_server_event,
)

SETTINGS = Settings(api_key="test-key")


def soil() -> SoilData:
    return SoilData("Soybean", "Clay", 6.5, 20, 15, 30)


class TestClient(unittest.TestCase):
    def test_missing_key_fails_before_any_request(self):
        with self.assertRaises(ConfigurationError):
            create_client(Settings(api_key=""))

    def test_recommender_requires_key(self):
        with self.assertRaises(ConfigurationError):
            GeminiRecommender(settings=Settings(api_key=""))


class TestGeminiRecommender(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.recommender = GeminiRecommender(client=self.client, settings=SETTINGS)
        self.image = ImagePayload(data=b"\x89PNG...", mime_type="image/png")

    def test_request_shape(self):
        self.client.models.generate_content.return_value = MagicMock(
            text=json.dumps(
                {"productRecommendation": "Mineral", "reasoning": "ok", "confidence": 0.6}
            )
        )
        result = self.recommender.recommend(soil(), self.image)
        self.assertEqual(result.product_recommendation, "Mineral")

        kwargs = self.client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], SETTINGS.analysis_model)
        self.assertEqual(kwargs["config"].response_mime_type, "application/json")
        text_part, image_part = kwargs["contents"]
        self.assertIn("Soybean", text_part.text)
        self.assertEqual(image_part.inline_data.mime_type, "image/png")
        self.assertEqual(image_part.inline_data.data, b"\x89PNG...")

    def test_unparseable_output(self):
        self.client.models.generate_content.return_value = MagicMock(text="oops")
        with self.assertRaises(ResponseFormatError):
            self.recommender.recommend(soil(), self.image)

    def test_empty_output(self):
        self.client.models.generate_content.return_value = MagicMock(text=None)
        with self.assertRaises(ResponseFormatError):
            self.recommender.recommend(soil(), self.image)


class TestServerEvents(unittest.TestCase):
    def test_audio_and_transcription(self):
        message = types.LiveServerMessage(
            server_content=types.LiveServerContent(
                model_turn=types.Content(
                    role="model",
                    parts=[
                        types.Part(
                            inline_data=types.Blob(
                                data=b"\x01\x00\x02\x00", mime_type="audio/pcm;rate=24000"
                            )
                        )
                    ],
                ),
                output_transcription=types.Transcription(text="Hello"),
            )
        )
        event = to_server_event(message)
        self.assertEqual(base64.b64decode(event.audio), b"\x01\x00\x02\x00")
        self.assertEqual(event.output_text, "Hello")
        self.assertEqual(event.input_text, "")
        self.assertFalse(event.turn_complete)

    def test_flags(self):
        message = types.LiveServerMessage(
            server_content=types.LiveServerContent(
                turn_complete=True,
                interrupted=True,
                input_transcription=types.Transcription(text="wait"),
            )
        )
        event = to_server_event(message)
        self.assertTrue(event.turn_complete)
        self.assertTrue(event.interrupted)
        self.assertEqual(event.input_text, "wait")
        self.assertIsNone(event.audio)

    def test_non_content_message(self):
        self.assertIsNone(to_server_event(types.LiveServerMessage()))

    def test_connect_config(self):
        cfg = live_connect_config("Be brief.")
        self.assertEqual(cfg.response_modalities, [types.Modality.AUDIO])
        self.assertIsNotNone(cfg.input_audio_transcription)
        self.assertIsNotNone(cfg.output_audio_transcription)


class FakeSdkSession:
    def __init__(self, turns):
        self._turns = list(turns)
        self.send_realtime_input = AsyncMock()

    async def receive(self):
        if not self._turns:
            return
        for message in self._turns.pop(0):
            yield message


class TestGeminiLiveConnection(unittest.IsolatedAsyncioTestCase):
    async def test_receive_spans_turns_until_socket_closes(self):
        turn = [
            types.LiveServerMessage(
                server_content=types.LiveServerContent(
                    output_transcription=types.Transcription(text="Hi")
                )
            ),
            types.LiveServerMessage(
                server_content=types.LiveServerContent(turn_complete=True)
            ),
        ]
        connection = GeminiLiveConnection(FakeSdkSession([turn, turn]), AsyncExitStack())
        events = [event async for event in connection.receive()]
        self.assertEqual(len(events), 4)
        self.assertEqual(sum(e.turn_complete for e in events), 2)

    async def test_send_audio_decodes_base64(self):
        session = FakeSdkSession([])
        connection = GeminiLiveConnection(session, AsyncExitStack())
        data = base64.b64encode(b"\x00\x01").decode()
        await connection.send_audio(AudioBlob(data=data))
        blob = session.send_realtime_input.call_args.kwargs["audio"]
        self.assertEqual(blob.data, b"\x00\x01")
        self.assertEqual(blob.mime_type, "audio/pcm;rate=16000")

    async def test_close_exits_context(self):
        stack = AsyncExitStack()
        closed = []
        stack.push_async_callback(AsyncMock(side_effect=lambda: closed.append(True)))
        connection = GeminiLiveConnection(FakeSdkSession([]), stack)
        await connection.close()
        self.assertEqual(closed, [True])


if __name__ == "__main__":
    unittest.main()
