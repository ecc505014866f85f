from typing import Any, Dict, List

from llm_gateway.errors import VendorError
from llm_gateway.providers.base import VendorAdapter, VendorCall, new_completion_id
from llm_gateway.schemas import ChatChoice, ChatMessage, ChatResponse, ChatUsage

# Most permissive threshold for every category, so nothing is filtered
# without the caller seeing why
SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
}


def to_gemini_contents(messages: List[ChatMessage]) -> Dict[str, Any]:
    """Split off system text and build strictly alternating user/model turns"""
    system_parts = [m.content for m in messages if m.role == "system"]
    contents: List[Dict[str, Any]] = []
    for m in messages:
        if m.role == "system":
            continue
        role = "model" if m.role == "assistant" else "user"
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].append({"text": m.content})
        else:
            contents.append({"role": role, "parts": [{"text": m.content}]})
    payload: Dict[str, Any] = {"contents": contents}
    if system_parts:
        payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
    return payload


class GeminiAdapter(VendorAdapter):
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def auth_headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.provider.api_key or ""}

    async def send(self, call: VendorCall) -> Any:
        body = to_gemini_contents(call.messages)
        body["generationConfig"] = dict(call.params)
        body["safetySettings"] = SAFETY_SETTINGS
        return await self.request_json("POST", f"/models/{call.model}:generateContent", json_body=body)

    def translate(self, raw: Any, call: VendorCall) -> ChatResponse:
        candidates = raw.get("candidates") or []
        if not candidates:
            reason = (raw.get("promptFeedback") or {}).get("blockReason", "no candidates returned")
            raise VendorError(f"Gemini returned no content: {reason}", provider=self.provider.slug)
        choices = []
        for index, candidate in enumerate(candidates):
            parts = (candidate.get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts)
            finish = candidate.get("finishReason")
            choices.append(
                ChatChoice(
                    index=candidate.get("index", index),
                    message=ChatMessage(role="assistant", content=text),
                    finish_reason=FINISH_REASONS.get(finish, finish.lower() if finish else None),
                )
            )
        meta = raw.get("usageMetadata") or {}
        prompt_tokens = meta.get("promptTokenCount", 0)
        completion_tokens = meta.get("candidatesTokenCount", 0)
        return ChatResponse(
            id=raw.get("responseId") or new_completion_id("gemini"),
            created=self.now(),
            model=raw.get("modelVersion") or call.model,
            provider=self.provider.slug,
            choices=choices,
            usage=ChatUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=meta.get("totalTokenCount", prompt_tokens + completion_tokens),
            ),
        )

    async def fetch_models(self) -> Any:
        return await self.request_json("GET", "/models", timeout_ms=self.provider.connect_timeout)

    def translate_models(self, raw: Any) -> List[Dict[str, Any]]:
        return [
            {"id": m["name"].removeprefix("models/"), "name": m.get("displayName")}
            for m in raw.get("models", [])
        ]
