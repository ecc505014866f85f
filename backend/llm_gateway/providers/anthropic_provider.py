from typing import Any, Dict, List

from llm_gateway.core.config import settings
from llm_gateway.providers.base import VendorAdapter, VendorCall, new_completion_id
from llm_gateway.schemas import ChatChoice, ChatMessage, ChatResponse, ChatUsage

STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}

# The Messages API refuses a request without max_tokens
FALLBACK_MAX_TOKENS = 4096


class AnthropicAdapter(VendorAdapter):
    default_base_url = "https://api.anthropic.com/v1"

    def auth_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.provider.api_key or "",
            "anthropic-version": self.provider.api_version or settings.ANTHROPIC_VERSION,
        }

    def build_payload(self, call: VendorCall) -> Dict[str, Any]:
        # System text is a top-level field, never a turn
        system = "\n\n".join(m.content for m in call.messages if m.role == "system")
        payload: Dict[str, Any] = {
            "model": call.model,
            "messages": [
                {"role": m.role, "content": m.content} for m in call.messages if m.role != "system"
            ],
            **call.params,
        }
        payload.setdefault("max_tokens", self.provider.default_max_tokens or FALLBACK_MAX_TOKENS)
        if system:
            payload["system"] = system
        return payload

    async def send(self, call: VendorCall) -> Any:
        return await self.request_json("POST", "/messages", json_body=self.build_payload(call))

    def translate(self, raw: Any, call: VendorCall) -> ChatResponse:
        blocks = raw["content"]
        text = "".join(block.get("text", "") for block in blocks if block.get("type", "text") == "text")
        usage = raw.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        stop_reason = raw.get("stop_reason")
        return ChatResponse(
            id=raw.get("id") or new_completion_id("anthropic"),
            created=self.now(),
            model=raw.get("model") or call.model,
            provider=self.provider.slug,
            choices=[
                ChatChoice(
                    index=0,
                    message=ChatMessage(role="assistant", content=text),
                    finish_reason=STOP_REASONS.get(stop_reason, stop_reason),
                )
            ],
            usage=ChatUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    async def fetch_models(self) -> Any:
        return await self.request_json("GET", "/models", timeout_ms=self.provider.connect_timeout)

    def translate_models(self, raw: Any) -> List[Dict[str, Any]]:
        return [{"id": m["id"], "name": m.get("display_name")} for m in raw.get("data", [])]
