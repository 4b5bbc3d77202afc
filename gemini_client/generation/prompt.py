"""Fluent, immutable prompt builder bound to a client."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from .payload import Prompt, text_content
from .responses import GenerateResponse

if TYPE_CHECKING:  # pragma: no cover
    from ..client import GeminiClient
    from ..streaming.call import StreamingCall
    from ..streaming.consumer import ChunkCallback
    from ..streaming.emitter import EmissionConfig, EventSink
    from ..streaming.reconnect import ReconnectPolicy


@dataclass(frozen=True)
class PromptBuilder:
    """Collect generation options, then send or stream the prompt.

    Every setter returns a new builder; a builder can be reused as a base for
    several variations.
    """

    client: "GeminiClient"
    prompt: Prompt
    options: Mapping[str, Any] = field(default_factory=dict)
    model_name: str | None = None

    def _with_option(self, key: str, value: Any) -> "PromptBuilder":
        options = dict(self.options)
        options[key] = value
        return replace(self, options=options)

    def _with_generation(self, key: str, value: Any) -> "PromptBuilder":
        generation = dict(self.options.get("generationConfig") or {})
        generation[key] = value
        return self._with_option("generationConfig", generation)

    def model(self, model: str) -> "PromptBuilder":
        return replace(self, model_name=model)

    def config(self, config: Mapping[str, Any]) -> "PromptBuilder":
        return self._with_option("generationConfig", dict(config))

    def safety(self, settings: list[Mapping[str, Any]]) -> "PromptBuilder":
        return self._with_option("safetySettings", list(settings))

    def system(self, instruction: str | Mapping[str, Any]) -> "PromptBuilder":
        value = text_content(instruction) if isinstance(instruction, str) else dict(instruction)
        return self._with_option("systemInstruction", value)

    def tools(self, tools: list[Mapping[str, Any]]) -> "PromptBuilder":
        return self._with_option("tools", list(tools))

    def temperature(self, temperature: float) -> "PromptBuilder":
        return self._with_generation("temperature", temperature)

    def max_tokens(self, max_tokens: int) -> "PromptBuilder":
        return self._with_generation("maxOutputTokens", max_tokens)

    def top_p(self, top_p: float) -> "PromptBuilder":
        return self._with_generation("topP", top_p)

    def top_k(self, top_k: int) -> "PromptBuilder":
        return self._with_generation("topK", top_k)

    def creative(self) -> "PromptBuilder":
        return self.temperature(0.9).top_p(0.95)

    def precise(self) -> "PromptBuilder":
        return self.temperature(0.2).top_p(0.8)

    def balanced(self) -> "PromptBuilder":
        return self.temperature(0.7).top_p(0.9)

    def code(self) -> "PromptBuilder":
        return self.temperature(0.3).top_k(40)

    def with_options(self, **options: Any) -> "PromptBuilder":
        """Apply several setters at once, e.g. ``with_options(temperature=0.1)``.

        Names that are not setters of this builder are ignored.
        """

        builder = self
        for name, value in options.items():
            setter = getattr(builder, name, None)
            if name.startswith("_") or name in _NOT_SETTERS or not callable(setter):
                continue
            builder = setter(value)
        return builder

    async def send(self) -> GenerateResponse:
        return await self.client.generate_content(self.prompt, self.options, self.model_name)

    def stream(
        self,
        on_chunk: "ChunkCallback",
        reconnect_policy: "ReconnectPolicy | None" = None,
    ) -> "StreamingCall":
        return self.client.stream_generate_content(
            self.prompt,
            on_chunk,
            self.options,
            self.model_name,
            reconnect_policy=reconnect_policy,
        )

    def stream_sse(
        self,
        sink: "EventSink | None" = None,
        config: "EmissionConfig | Mapping[str, Any] | None" = None,
        reconnect_policy: "ReconnectPolicy | None" = None,
    ) -> "StreamingCall":
        return self.client.stream_sse(
            self.prompt,
            sink,
            config,
            self.options,
            self.model_name,
            reconnect_policy=reconnect_policy,
        )

    def stream_with_events(
        self,
        sink: "EventSink | None" = None,
        message_event: str = "message",
        done_event: str | None = "done",
        include_metadata: bool = True,
    ) -> "StreamingCall":
        return self.stream_sse(
            sink,
            {"message_event": message_event, "done_event": done_event, "include_metadata": include_metadata},
        )

    def stream_with_progress(
        self,
        sink: "EventSink | None" = None,
        progress_event: str = "progress",
        message_event: str = "message",
        done_event: str | None = "done",
    ) -> "StreamingCall":
        return self.stream_sse(
            sink,
            {"message_event": message_event, "done_event": done_event, "progress_event": progress_event},
        )

    def stream_with_metadata(
        self,
        metadata: Mapping[str, Any],
        sink: "EventSink | None" = None,
        message_event: str = "message",
        done_event: str | None = "done",
    ) -> "StreamingCall":
        return self.stream_sse(
            sink,
            {"message_event": message_event, "done_event": done_event, "custom_metadata": dict(metadata)},
        )


_NOT_SETTERS = frozenset(
    {
        "send",
        "stream",
        "stream_sse",
        "stream_with_events",
        "stream_with_progress",
        "stream_with_metadata",
        "with_options",
        "creative",
        "precise",
        "balanced",
        "code",
    }
)


__all__ = ["PromptBuilder"]
