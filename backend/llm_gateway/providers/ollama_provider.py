from typing import Any, Dict, List

from llm_gateway.core.config import settings
from llm_gateway.providers.base import VendorAdapter, VendorCall, new_completion_id
from llm_gateway.schemas import ChatChoice, ChatMessage, ChatResponse, ChatUsage


class OllamaAdapter(VendorAdapter):
    """Self-hosted Ollama server. No credential; generation options are
    nested under ``options``."""

    default_base_url = settings.LLM_LOCAL_BASE_URL_OLLAMA

    async def send(self, call: VendorCall) -> Any:
        body = {
            "model": call.model,
            "messages": [{"role": m.role, "content": m.content} for m in call.messages],
            "stream": False,
            "options": dict(call.params),
        }
        return await self.request_json("POST", "/api/chat", json_body=body)

    def translate(self, raw: Any, call: VendorCall) -> ChatResponse:
        content = raw["message"]["content"]
        prompt_tokens = raw.get("prompt_eval_count") or 0
        completion_tokens = raw.get("eval_count") or 0
        finish_reason = raw.get("done_reason") or ("stop" if raw.get("done") else None)
        return ChatResponse(
            id=new_completion_id("ollama"),
            created=self.now(),
            model=raw.get("model") or call.model,
            provider=self.provider.slug,
            choices=[
                ChatChoice(
                    index=0,
                    message=ChatMessage(role="assistant", content=content or ""),
                    finish_reason=finish_reason,
                )
            ],
            usage=ChatUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def fetch_models(self) -> Any:
        return await self.request_json("GET", "/api/tags", timeout_ms=self.provider.connect_timeout)

    def translate_models(self, raw: Any) -> List[Dict[str, Any]]:
        return [
            {"id": m["name"], "size": m.get("size"), "modified_at": m.get("modified_at")}
            for m in raw.get("models", [])
        ]

    async def probe(self) -> str:
        models = await self.list_models()
        count = len(models)
        return f"Connected. {count} model{'s' if count != 1 else ''} available."

    async def pull_model(self, model_name: str) -> Dict[str, Any]:
        return await self.request_json("POST", "/api/pull", json_body={"model": model_name, "stream": False})
