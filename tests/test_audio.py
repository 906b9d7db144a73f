"""
Tests for PCM / base64 conversions.
"""

import base64
import unittest

import numpy as np

from soil_advisor.core.audio import (
    create_blob,
    decode_audio_chunk,
    duration_seconds,
    float_to_pcm16,
    pcm16_to_float,
)


class TestFloatToPcm16(unittest.TestCase):
    def test_known_values(self):
        pcm = float_to_pcm16(np.array([0.0, 0.5, -0.5, -1.0], dtype=np.float32))
        self.assertEqual(
            np.frombuffer(pcm, dtype="<i2").tolist(), [0, 16384, -16384, -32768]
        )

    def test_full_scale_positive_is_clamped(self):
        pcm = float_to_pcm16(np.array([1.0], dtype=np.float32))
        self.assertEqual(np.frombuffer(pcm, dtype="<i2")[0], 32767)

    def test_out_of_range_is_clamped(self):
        pcm = float_to_pcm16(np.array([3.0, -3.0], dtype=np.float32))
        self.assertEqual(np.frombuffer(pcm, dtype="<i2").tolist(), [32767, -32768])

    def test_two_bytes_per_sample(self):
        self.assertEqual(len(float_to_pcm16(np.zeros(4096, dtype=np.float32))), 8192)


class TestPcm16ToFloat(unittest.TestCase):
    def test_normalization(self):
        pcm = np.array([-32768, 0, 16384], dtype="<i2").tobytes()
        samples = pcm16_to_float(pcm)
        self.assertEqual(samples.dtype, np.float32)
        np.testing.assert_allclose(samples, [-1.0, 0.0, 0.5])

    def test_trailing_odd_byte_ignored(self):
        pcm = np.array([100, 200], dtype="<i2").tobytes() + b"\x01"
        self.assertEqual(len(pcm16_to_float(pcm)), 2)

    def test_empty(self):
        self.assertEqual(len(pcm16_to_float(b"")), 0)

    def test_stereo_deinterleave(self):
        pcm = np.array([1, 2, 3, 4], dtype="<i2").tobytes()
        self.assertEqual(pcm16_to_float(pcm, channels=2).shape, (2, 2))

    def test_samples_survive_conversion(self):
        original = np.array([-1.0, -0.25, 0.0, 0.125, 0.75], dtype=np.float32)
        restored = pcm16_to_float(float_to_pcm16(original))
        np.testing.assert_allclose(restored, original, atol=1.0 / 32768)


class TestBlobs(unittest.TestCase):
    def test_create_blob(self):
        blob = create_blob(np.zeros(8, dtype=np.float32))
        self.assertEqual(blob.mime_type, "audio/pcm;rate=16000")
        self.assertEqual(base64.b64decode(blob.data), b"\x00" * 16)

    def test_decode_audio_chunk(self):
        data = base64.b64encode(np.array([16384], dtype="<i2").tobytes()).decode()
        np.testing.assert_allclose(decode_audio_chunk(data), [0.5])

    def test_duration(self):
        self.assertAlmostEqual(duration_seconds(24000, 24000), 1.0)
        self.assertEqual(duration_seconds(0, 24000), 0.0)


if __name__ == "__main__":
    unittest.main()
