import base64
import json
import logging
import re

from gym_posture.config import settings
from gym_posture.models.posture import PostureImage
from gym_posture.schemas.posture import PostureAnalysis
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.utils.exceptions import StorageError

logger = logging.getLogger(__name__)

COMPARISON_PROMPT = """\
You are assisting a personal trainer who tracks a client's posture over time.

The first image was taken BEFORE, the second AFTER. Both show the client from the
"{position}" side.

Reply ONLY with a JSON object (no extra text):
{{
  "summary": "one or two sentences on how the posture changed",
  "observations": ["short observation", "..."]
}}

Focus on shoulder level, head position, pelvic tilt and spinal alignment. Do not
give medical diagnoses.
"""


def _encode_image_base64(storage: ObjectStorageGateway, storage_key: str) -> str | None:
    try:
        return base64.b64encode(storage.read(storage_key)).decode("utf-8")
    except StorageError as e:
        logger.warning("Posture photo not readable: %s (%s)", storage_key, e)
        return None


def _build_api_kwargs(model: str, content: list[dict]) -> dict:
    """Build OpenAI API kwargs based on model type."""
    api_kwargs: dict = {
        "model": model,
        "messages": [{"role": "user", "content": content}],
    }

    if model.startswith("o"):
        # reasoning models: no temperature, max_completion_tokens instead of max_tokens
        api_kwargs["max_completion_tokens"] = 2048
    else:
        api_kwargs["max_tokens"] = 600
        api_kwargs["temperature"] = 0.2

    return api_kwargs


def _parse_json_reply(raw_text: str) -> dict:
    json_text = raw_text.strip()
    if json_text.startswith("```"):
        lines = [line for line in json_text.split("\n") if not line.strip().startswith("```")]
        json_text = "\n".join(lines)
    return json.loads(json_text)


def _call_openai(before_b64: str, after_b64: str, position: str) -> PostureAnalysis:
    from openai import OpenAI

    model = settings.openai_model
    logger.info("Calling OpenAI model=%s for posture comparison (%s)", model, position)

    client = OpenAI(api_key=settings.openai_api_key)
    content: list[dict] = [{"type": "text", "text": COMPARISON_PROMPT.format(position=position)}]
    for b64 in (before_b64, after_b64):
        content.append({
            "type": "image_url",
            "image_url": {"url": f"data:image/jpeg;base64,{b64}", "detail": "low"},
        })

    response = client.chat.completions.create(**_build_api_kwargs(model, content))
    raw_text = response.choices[0].message.content or ""
    logger.info("OpenAI raw response (%d chars): %s", len(raw_text), raw_text[:300])

    parsed = _parse_json_reply(raw_text)
    observations = [str(o) for o in parsed.get("observations", []) if o]
    return PostureAnalysis(status="completed", summary=parsed.get("summary"), observations=observations)


def compare_postures(storage: ObjectStorageGateway, before: PostureImage, after: PostureImage) -> PostureAnalysis:
    """Describe the change between two posture photographs.

    Without an API key the analysis is reported as skipped; failures are
    reported as errors rather than replaced by a canned answer.
    """
    if not settings.openai_api_key:
        logger.info("No OpenAI API key, skipping posture comparison analysis")
        return PostureAnalysis(status="skipped", summary="Analysis disabled (no API key)")

    before_b64 = _encode_image_base64(storage, before.storage_key)
    after_b64 = _encode_image_base64(storage, after.storage_key)
    if before_b64 is None or after_b64 is None:
        return PostureAnalysis(status="error", summary="Posture photo not available in storage")

    try:
        return _call_openai(before_b64, after_b64, after.position)
    except Exception as e:
        logger.exception("Posture comparison FAILED for %s vs %s: %s", before.id, after.id, e)
        error_msg = re.sub(r"sk-[A-Za-z0-9_-]+", "sk-***", str(e))
        return PostureAnalysis(status="error", summary=error_msg)
