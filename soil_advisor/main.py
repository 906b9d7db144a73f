#!/usr/bin/env python3
"""
Soil analysis and live voice assistant with Gradio UI.

- analysis form -> Gemini multimodal request -> structured recommendation
- pyaudio capture -> live session send queue -> Gemini Live endpoint
- Gemini Live audio -> playback scheduler -> pyaudio output
- Gradio UI -> form, result, company report and live transcript
"""

import logging
import sys

from .app.gradio_ui import launch
from .core.errors import ConfigurationError
from .core.settings import get_settings


def main():
    """Main entry point for the soil advisor application."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    try:
        settings.require_api_key()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    launch(settings)


if __name__ == "__main__":
    main()
