"""Try-on image generation via the Replicate HTTP API."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from tailorhub.config import settings
from tailorhub.errors import GenerationFailure
from tailorhub.orders.measurements import FIELDS_BY_NAME

logger = logging.getLogger(__name__)

API_BASE = "https://api.replicate.com/v1"

# Measurements that actually change how a garment drapes in the preview
PROMPT_MEASUREMENTS = ("chest_bust", "waist", "hip", "shoulder_width", "full_length_top")

# Replicate models that take a prompt only, no input images
TEXT_ONLY_MODELS = ("flux-schnell", "flux-dev", "flux-pro")


@dataclass
class GeneratedImage:
    source_url: str
    data: bytes
    content_type: str = "image/webp"


class ImageGenerator(Protocol):
    async def generate(
        self,
        customer_photo_url: str,
        style_photo_url: str,
        measurements: Optional[Dict[str, Any]] = None,
    ) -> GeneratedImage:
        """Raises GenerationFailure when no image could be produced."""
        ...


def build_prompt(measurements: Optional[Dict[str, Any]] = None) -> str:
    prompt = (
        "A person wearing the exact clothing style from the reference. "
        "The clothing should look natural and realistic on the person. "
        "Fashion try-on preview, high quality, realistic lighting."
    )
    if not measurements:
        return prompt

    parts = []
    for name in PROMPT_MEASUREMENTS:
        value = measurements.get(name)
        if value:
            parts.append(f"{FIELDS_BY_NAME[name].label.lower()} {float(value):g} in")
    if parts:
        prompt += " Tailored to body measurements: " + ", ".join(parts) + "."
    if measurements.get("gender"):
        prompt += f" Cut for {measurements['gender']} wear."
    return prompt


class ReplicateGenerator:
    """Runs a Replicate model and downloads the first output image.

    Usage:
        generator = ReplicateGenerator(api_token="r8_...")
        image = await generator.generate(customer_url, style_url, measurements)
    """

    TERMINAL = ("succeeded", "failed", "canceled")

    def __init__(
        self,
        api_token: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        poll_interval: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_token = api_token or settings.replicate_api_token
        self.model = model or settings.replicate_model
        self.timeout = timeout if timeout is not None else settings.replicate_timeout_seconds
        self.poll_interval = poll_interval
        self._client = client

        if not self.api_token:
            logger.warning("No Replicate API token configured; try-on previews will fall back.")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait=60",
        }

    def _model_input(
        self,
        customer_photo_url: str,
        style_photo_url: str,
        measurements: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        prompt = build_prompt(measurements)
        if "idm-vton" in self.model:
            return {
                "human_img": customer_photo_url,
                "garm_img": style_photo_url,
                "garment_des": prompt,
                "category": settings.tryon_garment_category,
            }
        if any(name in self.model for name in TEXT_ONLY_MODELS):
            # Text-to-image: the photos can only shape the preview through the prompt
            return {
                "prompt": prompt,
                "go_fast": True,
                "megapixels": "1",
                "num_outputs": 1,
                "aspect_ratio": "3:4",
                "output_format": "webp",
                "output_quality": 80,
                "num_inference_steps": 4,
            }
        return {
            "image": customer_photo_url,
            "garment": style_photo_url,
            "prompt": prompt,
        }

    def _prediction_request(self, model_input: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Pinned `owner/name:version` models go through /predictions."""
        if ":" in self.model:
            version = self.model.split(":", 1)[1]
            return f"{API_BASE}/predictions", {"version": version, "input": model_input}
        return f"{API_BASE}/models/{self.model}/predictions", {"input": model_input}

    async def generate(
        self,
        customer_photo_url: str,
        style_photo_url: str,
        measurements: Optional[Dict[str, Any]] = None,
    ) -> GeneratedImage:
        if not self.api_token:
            raise GenerationFailure("AI service not configured")

        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            prediction = await self._run_prediction(
                client, self._model_input(customer_photo_url, style_photo_url, measurements)
            )
            output = prediction.get("output")
            if isinstance(output, list):
                output = output[0] if output else None
            if not output:
                raise GenerationFailure("AI model returned no image")

            response = await client.get(output)
            response.raise_for_status()
            content_type = response.headers.get("content-type", "image/webp").split(";")[0]
            return GeneratedImage(source_url=output, data=response.content, content_type=content_type)
        except httpx.HTTPError as e:
            logger.warning("Replicate request failed: %s", e)
            raise GenerationFailure("AI generation failed") from e
        finally:
            if self._client is None:
                await client.aclose()

    async def _run_prediction(self, client: httpx.AsyncClient, model_input: Dict[str, Any]) -> Dict[str, Any]:
        url, body = self._prediction_request(model_input)
        response = await client.post(
            url,
            json=body,
            headers=self._headers(),
        )
        response.raise_for_status()
        prediction = response.json()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        while prediction.get("status") not in self.TERMINAL:
            if loop.time() > deadline:
                raise GenerationFailure("AI generation timed out")
            await asyncio.sleep(self.poll_interval)
            response = await client.get(prediction["urls"]["get"], headers=self._headers())
            response.raise_for_status()
            prediction = response.json()

        if prediction["status"] != "succeeded":
            logger.warning("Replicate prediction %s ended %s: %s",
                           prediction.get("id"), prediction["status"], prediction.get("error"))
            raise GenerationFailure("AI generation failed")
        return prediction
