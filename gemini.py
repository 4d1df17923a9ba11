"""
Gemini inference: file ingestion, processing-state poll and model fallback.
"""
import os
import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

import google.generativeai as genai
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
if GEMINI_API_KEY:
    genai.configure(api_key=GEMINI_API_KEY)
else:
    logger.warning("GEMINI_API_KEY not set; analysis requests will fail.")

# Tried in order: best reasoning first, then faster fallbacks
DEFAULT_MODELS = ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.0-flash"]
MODEL_FALLBACK_LIST = [
    m.strip() for m in os.getenv("GEMINI_MODELS", ",".join(DEFAULT_MODELS)).split(",") if m.strip()
]
POLL_INTERVAL = float(os.getenv("GEMINI_POLL_INTERVAL", "2"))

GENERATION_CONFIG = {"temperature": 0.0, "top_p": 0.95, "top_k": 40}


class ModelFallbackError(RuntimeError):
    """Every model in the fallback list failed."""


class FileProcessingError(RuntimeError):
    """Gemini could not ingest an uploaded file."""


def upload_file(path: str, mime_type: str):
    return genai.upload_file(path=path, mime_type=mime_type, display_name="Video")


async def wait_for_file(name: str, poll_interval: Optional[float] = None):
    """Poll an uploaded file until it leaves the PROCESSING state."""
    interval = POLL_INTERVAL if poll_interval is None else poll_interval
    file = await asyncio.to_thread(genai.get_file, name)
    while file.state.name == "PROCESSING":
        await asyncio.sleep(interval)
        file = await asyncio.to_thread(genai.get_file, name)
    if file.state.name == "FAILED":
        raise FileProcessingError("Video processing failed at Google.")
    return file


def _build_model(model_name: str, generation_config: dict):
    return genai.GenerativeModel(model_name, generation_config=generation_config)


def generate_with_fallback(
    parts: Sequence[Any],
    json_output: bool = True,
    models: Optional[List[str]] = None,
    model_factory: Callable[[str, dict], Any] = _build_model,
):
    """Run `parts` through each model in turn, returning the first response.

    Each model gets exactly one attempt. If all of them fail the raised
    ModelFallbackError carries the last failure's message.
    """
    generation_config = dict(GENERATION_CONFIG)
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    last_error = None
    for model_name in MODEL_FALLBACK_LIST if models is None else models:
        try:
            logger.info("Analyzing with %s...", model_name)
            model = model_factory(model_name, generation_config)
            return model.generate_content(list(parts))
        except Exception as exc:
            logger.warning("%s failed (%s). Switching...", model_name, exc)
            last_error = exc
    message = str(last_error) if last_error is not None else "no models configured"
    raise ModelFallbackError(f"Analysis failed. Last error: {message}")
