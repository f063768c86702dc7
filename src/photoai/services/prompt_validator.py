"""Prompt validation for image generation.

Validates text prompts before any credit is taken or the provider is called.
"""

from photoai.services.exceptions import ValidationError

MAX_PROMPT_LENGTH = 1000


def validate_prompt(prompt: str) -> str:
    """Validate prompt text for image generation.

    Args:
        prompt: Text prompt from the caller

    Returns:
        Prompt with surrounding whitespace removed

    Raises:
        ValidationError: If prompt is empty, not a string, or exceeds 1000 characters
    """
    if not isinstance(prompt, str):
        raise ValidationError(f"Prompt must be a string, got {type(prompt).__name__}")

    prompt = prompt.strip()
    if not prompt:
        raise ValidationError("Prompt cannot be empty")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt
