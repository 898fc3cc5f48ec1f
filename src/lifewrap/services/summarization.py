"""Summarization engine built on top of Pydantic AI and LangGraph."""

from __future__ import annotations

import asyncio
import json
import math
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Type, TypedDict, TypeVar, TYPE_CHECKING, Union
from uuid import UUID

from langgraph.graph import END, START, StateGraph
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from rich.console import Console

from lifewrap.config.settings import Settings, get_settings
from lifewrap.models import PeriodType, Summary, SummaryOutput, TranscriptSegment, YearWrapOutput
from lifewrap.services import ChunkText
from lifewrap.utils.hashing import compute_input_hash
from lifewrap.utils.rate_limit import RateLimiter, create_limiter

try:  # pragma: no cover - optional anthropic provider
    from pydantic_ai.models.anthropic import AnthropicModel
    from pydantic_ai.providers.anthropic import AnthropicProvider
except ImportError:  # pragma: no cover - optional anthropic provider
    AnthropicModel = None  # type: ignore[assignment]

try:  # pragma: no cover - optional instrumentation dependency
    from langfuse import Langfuse
except ImportError:  # pragma: no cover - optional instrumentation dependency
    Langfuse = None  # type: ignore[assignment]

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from langfuse import Langfuse as LangfuseClient
else:  # pragma: no cover - runtime fallback
    LangfuseClient = object  # type: ignore[misc, assignment]

from lifewrap import __version__ as lifewrap_version

EXTERNAL_ENGINE_TIER = "external"
MAX_TRANSCRIPT_CHARS = 20_000
MAX_BACKOFF_SECONDS = 10.0
BASE_BACKOFF_SECONDS = 2.0

SESSION_KIND = "session"
CHUNK_KIND = "chunk"
YEAR_WRAP_KIND = "year_wrap"

EngineOutput = Union[SummaryOutput, YearWrapOutput]
OutputT = TypeVar("OutputT", SummaryOutput, YearWrapOutput)


class SummarizationError(RuntimeError):
    """Raised when the summarization pipeline fails after retries."""


class SummarizationState(TypedDict, total=False):
    """Workflow state propagated through the LangGraph pipeline."""

    kind: str
    prompt: str
    attempt: int
    output: Optional[EngineOutput]
    error: Optional[str]
    metadata: Dict[str, str]


class SummarizationService:
    """Generate session summaries and year wraps with retry and tracing support.

    Agents are built lazily from whichever credentials are configured (or from an injected
    Pydantic AI model) and released by :meth:`unload_model`. Long multi-chunk sessions are
    summarised chunk by chunk first; those chunk summaries are cached by the hash of the
    chunk's transcript so a regeneration only revisits chunks whose text changed.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        model: Optional[Model] = None,
        model_name: Optional[str] = None,
        engine_tier: str = EXTERNAL_ENGINE_TIER,
        max_attempts: int = 3,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._model = model
        self._model_name = model_name or self._settings.summary_model
        self._engine_tier = engine_tier
        self._max_attempts = max(1, max_attempts)
        self._agents: Dict[str, Agent] = {}
        self._chunk_hashes: Dict[UUID, str] = {}
        self._chunk_summaries: Dict[UUID, str] = {}
        self._rate_limiter: Optional[RateLimiter] = create_limiter("summarization", self._settings.rate_limits)
        self._langfuse: Optional[LangfuseClient] = self._create_langfuse()
        self._workflow = self._build_workflow()

    @property
    def engine_tier(self) -> str:
        return self._engine_tier

    @property
    def model_name(self) -> str:
        """Return the configured model identifier."""

        return self._model_name

    @property
    def is_loaded(self) -> bool:
        return bool(self._agents)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def generate_session_summary(
        self,
        session_id: UUID,
        segments: Sequence[TranscriptSegment],
        *,
        context: Optional[str] = None,
    ) -> Summary:
        """Summarise one recording session.

        Parameters
        ----------
        session_id:
            Identifier of the session being summarised.
        segments:
            Transcript segments of every chunk in the session, in spoken order.
        context:
            Optional category tag and user notes shown to the model ahead of the transcript.

        Returns
        -------
        Summary
            Session summary with topics and entities serialised as JSON arrays.

        Raises
        ------
        SummarizationError
            If there is no transcript text or summarisation fails after exhausting retries.
        """

        transcript_text = " ".join(segment.text for segment in segments).strip()
        if not transcript_text:
            raise SummarizationError("Transcript is empty; nothing to summarize.")

        body = await self._condense_long_transcript(segments, transcript_text)
        prompt = self._build_session_prompt(body, context=context)
        output = await self._invoke(SESSION_KIND, prompt, {"session_id": str(session_id)})
        output = self._expect_output(output, SummaryOutput, SESSION_KIND)

        period_start = min(segment.created_at for segment in segments)
        period_end = max(segment.created_at for segment in segments)
        return Summary(
            period_type=PeriodType.SESSION,
            period_start=period_start,
            period_end=period_end,
            text=output.summary_text,
            session_id=session_id,
            topics_json=json.dumps(output.topics),
            entities_json=json.dumps(output.entities),
            engine_tier=self._engine_tier,
        )

    async def generate_year_wrap_summary(
        self,
        start_of_year: datetime,
        end_of_year: datetime,
        source_summaries: Sequence[Summary],
        *,
        category_context: Optional[str] = None,
    ) -> Summary:
        """Produce the annual recap from the year's monthly (or weekly) rollups."""

        if not source_summaries:
            raise SummarizationError("No source summaries supplied for the year wrap.")

        prompt = self._build_year_wrap_prompt(start_of_year, source_summaries, category_context=category_context)
        output = await self._invoke(YEAR_WRAP_KIND, prompt, {"year": str(start_of_year.year)})
        output = self._expect_output(output, YearWrapOutput, YEAR_WRAP_KIND)

        insights = {
            "major_arcs": output.major_arcs,
            "biggest_wins": output.biggest_wins,
            "biggest_losses": output.biggest_losses,
            "key_people": output.key_people,
            "places": output.places,
        }
        return Summary(
            period_type=PeriodType.YEAR_WRAP,
            period_start=start_of_year,
            period_end=end_of_year,
            text=output.summary_text,
            topics_json=json.dumps(output.topics),
            entities_json=json.dumps(insights),
            engine_tier=self._engine_tier,
        )

    def clear_changed_chunk_summaries(self, chunk_texts: Sequence[ChunkText]) -> list[UUID]:
        """Drop cached chunk summaries whose transcript text changed.

        Returns the ids of chunks that must be summarised again: those whose text hash differs
        from the cached one and those never seen before.
        """

        stale: List[UUID] = []
        for chunk_id, text in chunk_texts:
            fresh_hash = compute_input_hash([text])
            if self._chunk_hashes.get(chunk_id) == fresh_hash and chunk_id in self._chunk_summaries:
                continue
            self._chunk_hashes[chunk_id] = fresh_hash
            self._chunk_summaries.pop(chunk_id, None)
            stale.append(chunk_id)
        return stale

    def unload_model(self) -> None:
        """Release agent resources; they are rebuilt on the next request."""

        if self._agents:
            self._console.log("Releasing summarization agents")
        self._agents.clear()

    # ------------------------------------------------------------------ #
    # Chunk-level condensation                                           #
    # ------------------------------------------------------------------ #
    async def _condense_long_transcript(
        self,
        segments: Sequence[TranscriptSegment],
        transcript_text: str,
    ) -> str:
        """Replace over-long transcripts with per-chunk summaries, reusing cached ones."""

        if len(transcript_text) <= MAX_TRANSCRIPT_CHARS:
            return transcript_text

        chunk_order: List[UUID] = []
        chunk_texts: Dict[UUID, List[str]] = {}
        for segment in segments:
            if segment.audio_chunk_id not in chunk_texts:
                chunk_order.append(segment.audio_chunk_id)
                chunk_texts[segment.audio_chunk_id] = []
            chunk_texts[segment.audio_chunk_id].append(segment.text)

        if len(chunk_order) < 2:
            return transcript_text

        parts: List[str] = []
        for index, chunk_id in enumerate(chunk_order, start=1):
            text = " ".join(chunk_texts[chunk_id])
            text_hash = compute_input_hash([text])
            cached = self._chunk_summaries.get(chunk_id)
            if cached is None or self._chunk_hashes.get(chunk_id) != text_hash:
                output = await self._invoke(
                    CHUNK_KIND,
                    self._build_session_prompt(text, context=None),
                    {"chunk_id": str(chunk_id)},
                )
                output = self._expect_output(output, SummaryOutput, CHUNK_KIND)
                cached = output.summary_text
                self._chunk_hashes[chunk_id] = text_hash
                self._chunk_summaries[chunk_id] = cached
            parts.append(f"Part {index}: {cached}")

        self._console.log(f"Condensed {len(chunk_order)} chunks into part summaries before session summary")
        return "\n".join(parts)

    # ------------------------------------------------------------------ #
    # Workflow                                                           #
    # ------------------------------------------------------------------ #
    async def _invoke(self, kind: str, prompt: str, metadata: Dict[str, str]) -> EngineOutput:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

        state: SummarizationState = {
            "kind": kind,
            "prompt": prompt,
            "attempt": 0,
            "output": None,
            "error": None,
            "metadata": metadata,
        }
        final_state = await self._workflow.ainvoke(state)

        output = final_state.get("output")
        if output is None:
            error_message = final_state.get("error") or "Summarization failed"
            raise SummarizationError(error_message)
        return output

    @staticmethod
    def _expect_output(output: EngineOutput, expected: Type[OutputT], kind: str) -> OutputT:
        if not isinstance(output, expected):
            raise SummarizationError(f"{kind} agent returned {type(output).__name__}, expected {expected.__name__}")
        return output

    def _build_workflow(self) -> object:
        """Construct the LangGraph workflow that orchestrates summarisation retries."""

        graph = StateGraph(SummarizationState)
        graph.add_node("summarize", self._summarize_node)
        graph.add_node("backoff", self._backoff_node)
        graph.add_edge(START, "summarize")
        graph.add_conditional_edges(
            "summarize",
            self._route_post_summary,
            {
                "complete": END,
                "retry": "backoff",
                "fail": END,
            },
        )
        graph.add_edge("backoff", "summarize")
        return graph.compile()

    async def _summarize_node(self, state: SummarizationState) -> SummarizationState:
        """Invoke the LLM agent and capture success or failure outcomes."""

        attempt = state.get("attempt", 0) + 1
        kind = state["kind"]
        prompt = state["prompt"]

        trace = self._start_trace(kind, attempt, prompt, state.get("metadata", {}))
        start_time = time.perf_counter()
        try:
            agent = self._agent_for(kind)
            result = await agent.run(prompt)
            output = result.output
            duration_seconds = time.perf_counter() - start_time
            self._record_trace_success(trace, output, duration_seconds)
            self._console.log(
                f"{kind} summarization succeeded "
                f"(duration={duration_seconds:.2f}s, words={len(output.summary_text.split())})"
            )
            return {"attempt": attempt, "output": output, "error": None}
        except SummarizationError as exc:
            return {"attempt": self._max_attempts, "output": None, "error": str(exc)}
        except Exception as exc:
            duration_seconds = time.perf_counter() - start_time
            error_message = str(exc)
            self._record_trace_failure(trace, error_message, duration_seconds)
            self._console.log(
                f"[yellow]{kind} summarization attempt {attempt}/{self._max_attempts} failed[/yellow] "
                f"(duration={duration_seconds:.2f}s, error='{error_message}')"
            )
            return {"attempt": attempt, "output": None, "error": error_message}

    async def _backoff_node(self, state: SummarizationState) -> SummarizationState:
        """Sleep for an exponentially increasing duration before retrying."""

        attempt = state.get("attempt", 1)
        delay = min(BASE_BACKOFF_SECONDS * math.pow(2, attempt - 1), MAX_BACKOFF_SECONDS)
        self._console.log(f"Retrying summarization in {delay:.1f}s")
        await asyncio.sleep(delay)
        return {}

    def _route_post_summary(self, state: SummarizationState) -> str:
        """Determine the next workflow edge based on summarisation outcome."""

        if state.get("output") is not None:
            return "complete"
        if state.get("attempt", 0) >= self._max_attempts:
            return "fail"
        return "retry"

    # ------------------------------------------------------------------ #
    # Agents                                                             #
    # ------------------------------------------------------------------ #
    def _agent_for(self, kind: str) -> Agent:
        agent = self._agents.get(kind)
        if agent is None:
            output_type = YearWrapOutput if kind == YEAR_WRAP_KIND else SummaryOutput
            agent = Agent(
                model=self._resolve_model(),
                output_type=output_type,
                system_prompt=self._system_prompt(kind),
            )
            self._agents[kind] = agent
        return agent

    def _resolve_model(self) -> Model:
        """Return the injected model or build one from available provider credentials."""

        if self._model is not None:
            return self._model

        openai_key = (
            self._settings.openai_api_key.get_secret_value()
            if self._settings.openai_api_key is not None
            else None
        )
        anthropic_key = (
            self._settings.anthropic_api_key.get_secret_value()
            if self._settings.anthropic_api_key is not None
            else None
        )

        if openai_key:
            return OpenAIChatModel(self._model_name, provider=OpenAIProvider(api_key=openai_key))
        if anthropic_key:
            if AnthropicModel is None:
                raise SummarizationError(
                    "Anthropic support is unavailable. Install anthropic extras or provide an OpenAI API key."
                )
            return AnthropicModel(self._model_name, provider=AnthropicProvider(api_key=anthropic_key))
        raise SummarizationError("No language model credentials configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")

    def _create_langfuse(self) -> Optional[LangfuseClient]:
        """Initialise Langfuse tracing if the dependency and credentials are available."""

        if Langfuse is None:
            return None
        if self._settings.langfuse_public_key is None or self._settings.langfuse_secret_key is None:
            return None

        kwargs: Dict[str, str] = {
            "public_key": self._settings.langfuse_public_key.get_secret_value(),
            "secret_key": self._settings.langfuse_secret_key.get_secret_value(),
        }
        if self._settings.langfuse_host is not None:
            kwargs["host"] = str(self._settings.langfuse_host)

        try:
            return Langfuse(**kwargs)  # type: ignore[call-arg]
        except Exception as exc:  # pragma: no cover - instrumentation failures are non-fatal
            self._console.log(f"LangFuse initialization failed: {exc}")
            return None

    # ------------------------------------------------------------------ #
    # Prompts                                                            #
    # ------------------------------------------------------------------ #
    def _system_prompt(self, kind: str) -> str:
        if kind == YEAR_WRAP_KIND:
            return (
                "You are LifeWrap's year-in-review writer. Read a year of journal rollups and produce a warm, "
                "specific recap of the year's arcs, wins, losses, people and places. Never invent events."
            )
        return (
            "You are LifeWrap's journal summarizer. Summarize spoken personal journal entries in the second "
            "person, keeping concrete details, decisions and feelings. Never invent events."
        )

    def _build_session_prompt(self, transcript_text: str, *, context: Optional[str]) -> str:
        """Compose the prompt for a session (or single chunk) summary."""

        max_words = int(self._settings.max_summary_words)
        header_lines = [
            "Summarize this voice journal recording.",
            "Follow the output schema exactly.",
            f"Limit the summary_text field to at most {max_words} words.",
        ]
        if context:
            header_lines.append("Context provided by the user:")
            header_lines.append(context)

        truncated = transcript_text[:MAX_TRANSCRIPT_CHARS]
        if len(transcript_text) > MAX_TRANSCRIPT_CHARS:
            truncated += "\n...[truncated]"

        return (
            "\n".join(header_lines)
            + "\n\nReturn JSON that matches the SummaryOutput model with fields:\n"
            "- summary_text (string)\n"
            "- topics (list of short topic strings)\n"
            "- entities (people, places and organisations mentioned)\n"
            "- key_moments (list of concise bullet strings)\n\n"
            "Transcript:\n"
            f"{truncated}"
        )

    def _build_year_wrap_prompt(
        self,
        start_of_year: datetime,
        source_summaries: Sequence[Summary],
        *,
        category_context: Optional[str],
    ) -> str:
        lines = [f"Write the Year Wrap for {start_of_year.year}."]
        if category_context:
            lines.append(category_context)
        lines.append("")
        lines.append("Period summaries, oldest first:")
        for summary in source_summaries:
            label = f"{summary.period_type.display_name} of {summary.period_start.date().isoformat()}"
            lines.append(f"[{label}]\n{summary.text}")
        lines.append("")
        lines.append(
            "Return JSON matching the YearWrapOutput model: summary_text, major_arcs, biggest_wins, "
            "biggest_losses, key_people, places, topics."
        )
        prompt = "\n".join(lines)
        if len(prompt) > MAX_TRANSCRIPT_CHARS * 2:
            prompt = prompt[: MAX_TRANSCRIPT_CHARS * 2] + "\n...[truncated]"
        return prompt

    # ------------------------------------------------------------------ #
    # Tracing                                                            #
    # ------------------------------------------------------------------ #
    def _start_trace(self, kind: str, attempt: int, prompt: str, metadata: Dict[str, str]) -> Optional[object]:
        """Open a Langfuse trace span for the current summarisation attempt, if supported."""

        if self._langfuse is None:
            return None
        trace_callable = getattr(self._langfuse, "trace", None)
        if not callable(trace_callable):
            return None

        trace_metadata = dict(metadata)
        trace_metadata.update(
            {
                "attempt": str(attempt),
                "model": self._model_name,
                "version": lifewrap_version,
            }
        )

        try:
            return trace_callable(name=f"{kind}-summarization", input={"prompt": prompt}, metadata=trace_metadata)
        except Exception as exc:  # pragma: no cover - instrumentation failures are non-fatal
            self._console.log(f"LangFuse trace creation failed: {exc}")
            return None

    def _record_trace_success(self, trace: Optional[object], output: EngineOutput, duration_seconds: float) -> None:
        if trace is None:
            return
        end_callable = getattr(trace, "end", None)
        if not callable(end_callable):
            return

        metadata = {
            "duration_seconds": duration_seconds,
            "word_count": len(output.summary_text.split()),
            "model": self._model_name,
        }
        try:
            end_callable(output=output.model_dump(mode="json"), status="success", metadata=metadata)
        except Exception as exc:  # pragma: no cover - instrumentation failures are non-fatal
            self._console.log(f"LangFuse trace completion failed: {exc}")

    def _record_trace_failure(self, trace: Optional[object], error_message: str, duration_seconds: float) -> None:
        if trace is None:
            return
        end_callable = getattr(trace, "end", None)
        if not callable(end_callable):
            return

        metadata = {"duration_seconds": duration_seconds, "model": self._model_name}
        try:
            end_callable(output={"error": error_message}, status="error", metadata=metadata)
        except Exception as exc:  # pragma: no cover - instrumentation failures are non-fatal
            self._console.log(f"LangFuse trace completion failed: {exc}")


__all__ = ["EXTERNAL_ENGINE_TIER", "SummarizationError", "SummarizationService"]
