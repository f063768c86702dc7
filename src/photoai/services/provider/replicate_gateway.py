"""Replicate gateway for model training and image generation with error classification."""

import asyncio
import re
from typing import Any, Callable, Optional

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

from photoai.core.config import Settings
from photoai.services.exceptions import ProviderError, ProviderRejected, ProviderUnavailable
from photoai.services.provider.gateway import (
    Failed,
    JobHandle,
    JobKind,
    ModelAttributes,
    ProviderOutcome,
    Succeeded,
)

logger = structlog.get_logger(__name__)

DEFAULT_TRIGGER_WORD = "TOK"


def classify_error(exception: Exception) -> ProviderError:
    """Classify exception into provider error category.

    Args:
        exception: Original exception from Replicate SDK or network layer

    Returns:
        ProviderUnavailable or ProviderRejected instance

    Classification rules:
        - Timeout errors → ProviderUnavailable
        - 429 (rate limit) → ProviderUnavailable
        - 5xx / service unavailable → ProviderUnavailable
        - Connection errors → ProviderUnavailable
        - 401/403 (authentication) → ProviderRejected
        - Content policy violations → ProviderRejected
        - Other errors → ProviderRejected
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()
    status = getattr(exception, "status", None)

    if isinstance(exception, (TimeoutError, httpx.TimeoutException)):
        return ProviderUnavailable(f"Network timeout: {error_message}")

    if "timeout" in error_message_lower or "timed out" in error_message_lower:
        return ProviderUnavailable(f"Network timeout: {error_message}")

    if status == 429 or "429" in error_message or "rate limit" in error_message_lower:
        return ProviderUnavailable(f"Rate limit exceeded: {error_message}")

    if (isinstance(status, int) and status >= 500) or (
        "503" in error_message or "service unavailable" in error_message_lower
    ):
        return ProviderUnavailable(f"Service unavailable: {error_message}")

    if isinstance(exception, (ConnectionError, httpx.TransportError)):
        return ProviderUnavailable(f"Connection error: {error_message}")

    if (
        status in (401, 403)
        or "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return ProviderRejected(f"Authentication failed: {error_message}")

    if (
        "content policy" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
    ):
        return ProviderRejected(f"Content policy violation: {error_message}")

    return ProviderRejected(f"Permanent error: {error_message}")


def trigger_word_for(model_name: str) -> str:
    """Derive the LoRA trigger word from the model name (alphanumerics, upper case)."""
    word = re.sub(r"[^A-Za-z0-9]", "", model_name).upper()[:32]
    return word or DEFAULT_TRIGGER_WORD


def caption_prefix(trigger_word: str, attributes: ModelAttributes) -> str:
    """Build the autocaption prefix describing the subject from its attributes.

    Example:
        >>> caption_prefix("ALEX", attrs)
        'a photo of ALEX, a 30 year old south east asian man with brown eyes, bald'
    """
    ethnicity = attributes.ethnicity.value.replace("_", " ")
    prefix = (
        f"a photo of {trigger_word}, a {attributes.age} year old {ethnicity} "
        f"{attributes.type.value} with {attributes.eye_color.value} eyes"
    )
    if attributes.bald:
        prefix += ", bald"
    return prefix


def _result_url(output: Any, kind: JobKind) -> Optional[str]:
    # Image models return a list of URLs (or one URL); trainers return {"weights": ...}
    if kind == JobKind.TRAINING and isinstance(output, dict):
        weights = output.get("weights")
        return str(weights) if weights else None
    if isinstance(output, list) and len(output) > 0:
        return str(output[0])
    if isinstance(output, str) and output:
        return output
    return None


def outcome_from_payload(payload: dict, kind: JobKind) -> Optional[ProviderOutcome]:
    """Turn a Replicate prediction/training document into an outcome.

    Args:
        payload: Prediction or training JSON (webhook body or API response)
        kind: Which kind of job the payload describes

    Returns:
        Succeeded/Failed for terminal statuses, None while the job is still running
    """
    status = payload.get("status")

    if status == "succeeded":
        url = _result_url(payload.get("output"), kind)
        if not url:
            return Failed("Provider returned no output")
        return Succeeded(url)

    if status in ("failed", "canceled"):
        return Failed(str(payload.get("error") or status))

    return None


class ReplicateGateway:
    """ProviderGateway backed by Replicate predictions and trainings.

    Submissions register webhooks filtered to the "completed" event; the SDK is
    synchronous, so every call runs in the default thread pool with a timeout.
    """

    def __init__(
        self,
        api_token: str,
        image_model: str,
        trainer_version: str,
        training_destination: str,
        image_webhook_url: str,
        training_webhook_url: str,
        timeout_seconds: float = 30.0,
        client: Optional[replicate.Client] = None,
    ):
        # Bounds the SDK's own HTTP requests, which keep running in their worker
        # thread after wait_for gives up on them
        self._client = client or replicate.Client(
            api_token=api_token, timeout=httpx.Timeout(timeout_seconds)
        )
        self._image_model = image_model
        self._trainer_version = trainer_version
        self._training_destination = training_destination
        self._image_webhook_url = image_webhook_url
        self._training_webhook_url = training_webhook_url
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReplicateGateway":
        return cls(
            api_token=settings.replicate_api_token,
            image_model=settings.replicate_image_model,
            trainer_version=settings.replicate_trainer_version,
            training_destination=settings.replicate_training_destination,
            image_webhook_url=settings.image_webhook_url,
            training_webhook_url=settings.training_webhook_url,
            timeout_seconds=settings.provider_timeout_seconds,
        )

    async def submit_training(
        self, asset_url: str, model_name: str, attributes: ModelAttributes
    ) -> JobHandle:
        """Start a LoRA training run on the uploaded image archive.

        Args:
            asset_url: URL of the zip archive with training images
            model_name: Human-readable model name (trigger word source)
            attributes: Subject description used for auto-captioning

        Returns:
            Handle of the accepted training

        Raises:
            ProviderUnavailable: Timeout, network or transient provider failure
            ProviderRejected: Provider refused the submission
        """
        trigger_word = trigger_word_for(model_name)
        training = await self._call(
            lambda: self._client.trainings.create(
                version=self._trainer_version,
                input={
                    "input_images": asset_url,
                    "trigger_word": trigger_word,
                    "autocaption": True,
                    "autocaption_prefix": caption_prefix(trigger_word, attributes),
                },
                destination=self._training_destination,
                webhook=self._training_webhook_url,
                webhook_events_filter=["completed"],
            ),
            operation="training.create",
        )
        handle = self._handle(training)
        logger.info("provider.training_submitted", request_id=handle.request_id)
        return handle

    async def submit_image_generation(self, prompt: str, model_artifact_path: str) -> JobHandle:
        """Enqueue one image prediction using the trained LoRA weights.

        Args:
            prompt: Text prompt for image generation
            model_artifact_path: URL of the trained weights

        Returns:
            Handle of the accepted prediction
        """
        prediction = await self._call(
            lambda: self._client.predictions.create(
                model=self._image_model,
                input={"prompt": prompt, "lora_weights": model_artifact_path},
                webhook=self._image_webhook_url,
                webhook_events_filter=["completed"],
            ),
            operation="prediction.create",
        )
        handle = self._handle(prediction)
        logger.debug("provider.image_submitted", request_id=handle.request_id)
        return handle

    async def cancel(self, request_id: str, kind: JobKind) -> None:
        resource = self._client.trainings if kind == JobKind.TRAINING else self._client.predictions
        await self._call(lambda: resource.cancel(request_id), operation=f"{kind.value}.cancel")

    async def fetch_outcome(self, request_id: str, kind: JobKind) -> Optional[ProviderOutcome]:
        resource = self._client.trainings if kind == JobKind.TRAINING else self._client.predictions
        job = await self._call(lambda: resource.get(request_id), operation=f"{kind.value}.get")
        return outcome_from_payload(
            {"status": job.status, "output": job.output, "error": job.error}, kind
        )

    async def _call(self, func: Callable[[], Any], operation: str) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func), timeout=self._timeout_seconds)

        except asyncio.TimeoutError as e:
            logger.warning(
                "provider.timeout", operation=operation, timeout_seconds=self._timeout_seconds
            )
            raise ProviderUnavailable(
                f"{operation} did not complete within {self._timeout_seconds}s"
            ) from e

        except (ReplicateAPIError, httpx.HTTPError, ConnectionError, OSError) as e:
            classified = classify_error(e)
            logger.warning(
                "provider.call_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                classified_as=type(classified).__name__,
            )
            raise classified from e

        except Exception as e:
            # Unexpected SDK errors are not retried by callers
            raise ProviderRejected(f"Unexpected error: {e}") from e

    @staticmethod
    def _handle(job: Any) -> JobHandle:
        urls = getattr(job, "urls", None) or {}
        return JobHandle(request_id=getattr(job, "id", "") or "", status_url=urls.get("get"))
