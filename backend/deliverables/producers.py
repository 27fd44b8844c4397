from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Awaitable, Protocol

from deliverables.config import Settings
from deliverables.models import CleanInput
from deliverables.sanitize import normalize_text

logger = logging.getLogger("deliverables.producers")

RESPONSE_VERBS = ("explained", "analysed", "applied", "evaluated", "synthesised")
SUMMARY_MAX_CHARS = 180

RESPONSE_SYSTEM_PROMPT = (
    "You write the student's answer to one assignment item only. "
    "Do not include due dates, submission rules, plagiarism text, course site links, or raw HTML. "
    "Do not mention the rubric by name. Satisfy it implicitly. "
    "Do not output placeholders like [SOURCE NEEDED]. Return plain prose without a label."
)

SECTIONS_SYSTEM_PROMPT = (
    "You write the student's deliverable only. "
    "Do not include due dates, submission rules, plagiarism text, course site links, or raw HTML. "
    "Do not mention the rubric by name. Satisfy it implicitly. "
    'Output only JSON that matches {"title": "string", "sections": [{"heading": "string", "body": "string"}], '
    '"references": ["string"]}. Omit "references" if no sources are used. '
    "Do not output placeholders like [SOURCE NEEDED]."
)


class TextProducerError(RuntimeError):
    """Raised when the text producer fails or returns unusable output."""


class TextProducer(Protocol):
    def __call__(self, prompt: str, index: int) -> str | Awaitable[str]:
        ...


class SectionProducer(Protocol):
    def __call__(self, clean: CleanInput) -> dict[str, object] | Awaitable[dict[str, object]]:
        ...


def craft_student_response(prompt: str, index: int) -> str:
    cleaned = normalize_text(prompt)
    if not cleaned:
        return "I completed the task by applying the course concepts to deliver a polished response."
    summary = f"{cleaned[:SUMMARY_MAX_CHARS]}…" if len(cleaned) > SUMMARY_MAX_CHARS else cleaned
    verb = RESPONSE_VERBS[index % len(RESPONSE_VERBS)]
    return f"I {verb} the prompt on {summary.lower()} and provided evidence-based reasoning with clear conclusions."


class TemplateTextProducer:
    """Deterministic producer used by default and wherever a model is not configured."""

    def __call__(self, prompt: str, index: int) -> str:
        return craft_student_response(prompt, index)


class TemplateSectionProducer:
    def __call__(self, clean: CleanInput) -> dict[str, object]:
        prompts = list(clean.prompts)
        heading = prompts[0] if prompts else "Student Submission"
        if len(heading) > 80:
            heading = f"{heading[:77]}…"
        body = "\n".join(f"{index}. {line}" for index, line in enumerate(prompts[:3], start=1))
        payload: dict[str, object] = {
            "title": clean.title or heading,
            "sections": [{"heading": heading, "body": body or "Student response based on provided materials."}],
        }
        if clean.rubric:
            payload["references"] = list(clean.rubric[:3])
        return payload


class BedrockTextProducer:
    """Text producer backed by the Bedrock ``converse`` API."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client or self._create_bedrock_client()

    async def __call__(self, prompt: str, index: int) -> str:
        return await asyncio.to_thread(self.generate, prompt, index)

    def generate(self, prompt: str, index: int) -> str:
        user_prompt = f"Assignment item {index + 1}:\n{prompt}"
        return self._invoke_text_model(RESPONSE_SYSTEM_PROMPT, user_prompt)

    async def generate_sections(self, clean: CleanInput) -> dict[str, object]:
        user_prompt = json.dumps(
            {"task": list(clean.prompts[:10]), "rubric": list(clean.rubric[:15])},
            ensure_ascii=True,
        )
        text = await asyncio.to_thread(self._invoke_text_model, SECTIONS_SYSTEM_PROMPT, user_prompt)
        payload = parse_json_object(text)
        if not isinstance(payload, dict):
            raise TextProducerError("Model response must be a JSON object.")
        return payload

    def _create_bedrock_client(self) -> Any:
        try:
            import boto3  # type: ignore
        except ImportError as exc:
            raise TextProducerError("boto3 is required for the Bedrock text producer.") from exc

        return boto3.client("bedrock-runtime", region_name=self._settings.aws_region)

    def _invoke_text_model(self, system_prompt: str, user_prompt: str) -> str:
        model_id = self._settings.bedrock_model_id
        if not model_id:
            raise TextProducerError("Bedrock model ID is not configured.")

        started = time.perf_counter()
        try:
            response = self._client.converse(
                modelId=model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig={
                    "temperature": self._settings.agent_temperature,
                    "maxTokens": self._settings.agent_max_tokens,
                },
            )
        except Exception as exc:  # pragma: no cover - exercised via runtime integration
            logger.warning(
                "producer_invoke_failed",
                extra={
                    "event": "producer_invoke_failed",
                    "model_id": model_id,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error": str(exc),
                },
            )
            raise TextProducerError(f"Bedrock invocation failed for model '{model_id}': {exc}") from exc

        text = self._extract_text(response)
        logger.info(
            "producer_invoke_completed",
            extra={
                "event": "producer_invoke_completed",
                "model_id": model_id,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "user_prompt_chars": len(user_prompt),
                "response_chars": len(text),
            },
        )
        return text

    @staticmethod
    def _extract_text(response: Any) -> str:
        outputs = response.get("output", {}).get("message", {}).get("content", [])
        parts: list[str] = []
        for item in outputs:
            text = item.get("text")
            if isinstance(text, str) and text.strip():
                parts.append(text)
        if not parts:
            raise TextProducerError("Model response did not include textual output.")
        return "\n".join(parts).strip()


def parse_json_object(raw: str) -> Any:
    candidate = raw.strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", candidate, flags=re.IGNORECASE | re.DOTALL)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except json.JSONDecodeError:
            pass

    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            return json.loads(candidate[start : end + 1])
        except json.JSONDecodeError as exc:
            raise TextProducerError("Model response contained malformed JSON content.") from exc

    raise TextProducerError("Model response was not valid JSON.")


def build_text_producer(settings: Settings) -> TextProducer:
    name = (settings.text_producer or "").strip().lower()
    if name in {"", "template"}:
        return TemplateTextProducer()
    if name == "bedrock":
        return BedrockTextProducer(settings)
    raise TextProducerError(f"Unsupported TEXT_PRODUCER '{settings.text_producer}'. Use 'template' or 'bedrock'.")
