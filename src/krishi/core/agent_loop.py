"""Bounded Thought/Action/Observation loop with deterministic stop conditions."""

from __future__ import annotations

import json
import logging
from time import monotonic
from typing import Any, Callable

from .agent_types import AgentAction, AgentFinish, AgentStep
from .errors import ExternalServiceError, ReasoningLimitExceeded, StageTimeoutError, ToolInputError, TurnTimeoutError
from .llm_client import call_llm
from .react_format import (
    HUMANIZE_TEMPLATE,
    INTENT_LABELS,
    INTENT_TEMPLATE,
    OBSERVATION_STOP,
    SYSTEM_INSTRUCTIONS,
    limit_sentences,
    normalize_intent,
    parse_react_output,
    parse_tool_input,
    render_react_prompt,
    truncate_at_observation,
)
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

LLMCaller = Callable[..., dict[str, Any]]
Clock = Callable[[], float]

DEFAULT_MAX_ITERATIONS = 6


class ReasoningLoop:
    """Drive the oracle through tool calls until it produces a final answer.

    Every THINKING step costs one iteration. Unknown tools and malformed tool
    input become observations; parse failures, oracle transport failures and
    exhausted budgets raise.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        llm_caller: LLMCaller | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        timeout_sec: float = 20.0,
        model: str | None = None,
        temperature: float | None = 0.0,
        max_sentences: int = 2,
        llm_timeout_sec: float | None = None,
        clock: Clock = monotonic,
    ) -> None:
        if max_iterations <= 0:
            raise ValueError("max_iterations must be > 0")
        self._registry = registry
        self._llm = llm_caller or call_llm
        self._max_iterations = int(max_iterations)
        self._timeout_sec = float(timeout_sec)
        self._model = model
        self._temperature = temperature
        self._max_sentences = int(max_sentences)
        self._llm_timeout_sec = llm_timeout_sec
        self._clock = clock

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _call_oracle(self, messages: list[dict[str, Any]], *, stop: list[str] | None = None) -> str:
        response = self._llm(
            messages=messages,
            model=self._model,
            stop=stop,
            temperature=self._temperature,
            timeout_sec=self._llm_timeout_sec,
        )
        if not response.get("ok"):
            error = str(response.get("error") or "LLM call failed.")
            if response.get("timed_out"):
                raise StageTimeoutError(error, service="llm")
            raise ExternalServiceError(error, service="llm")
        return str(response.get("text") or "")

    def _act(self, action: AgentAction) -> tuple[str, dict[str, Any]]:
        if not self._registry.has(action.tool):
            result = self._registry.invoke(action.tool)
            logger.info("unknown tool requested", extra={"tool_name": action.tool})
            return json.dumps(result), result

        try:
            arguments = parse_tool_input(action.tool_input, tool_name=action.tool)
        except ToolInputError as exc:
            result = {"ok": False, "tool_name": action.tool, "error": str(exc), "error_kind": exc.kind}
            return json.dumps(result), result

        result = self._registry.invoke(action.tool, **arguments)
        return json.dumps(result, default=str), result

    def run(self, user_text: str, *, history: str = "", user_id: str = "") -> dict[str, Any]:
        """Run THINKING/ACTING/OBSERVING until FINISHED or a budget is spent."""
        started = self._clock()
        steps: list[AgentStep] = []

        for iteration in range(1, self._max_iterations + 1):
            if self._clock() - started > self._timeout_sec:
                raise TurnTimeoutError(
                    f"Reasoning loop exceeded {self._timeout_sec:g}s after {iteration - 1} iterations.",
                    stage="reasoning",
                )

            prompt = render_react_prompt(
                tool_catalog=self._registry.render_catalog(),
                tool_names=self._registry.names(),
                chat_history=history,
                user_input=user_text,
                user_id=user_id,
                steps=steps,
            )
            messages = [
                {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                {"role": "user", "content": prompt},
            ]
            text = truncate_at_observation(self._call_oracle(messages, stop=[OBSERVATION_STOP]))
            decision = parse_react_output(text)

            if isinstance(decision, AgentFinish):
                return self._finished(decision.output, steps, iteration, "final_answer")

            observation, result = self._act(decision)
            steps.append(AgentStep(action=decision, observation=observation))
            logger.debug(
                "tool observed",
                extra={"tool_name": decision.tool, "iteration": iteration, "ok": bool(result.get("ok"))},
            )

            if self._registry.has(decision.tool) and self._registry.get(decision.tool).return_direct:
                message = result.get("message")
                if result.get("ok") and isinstance(message, str) and message:
                    return self._finished(message, steps, iteration, "return_direct")

        logger.warning("reasoning loop hit iteration bound", extra={"max_iterations": self._max_iterations})
        raise ReasoningLimitExceeded(
            f"Reasoning loop did not finish within {self._max_iterations} iterations.",
            iterations=self._max_iterations,
        )

    @staticmethod
    def _finished(output: str, steps: list[AgentStep], iterations: int, stop_reason: str) -> dict[str, Any]:
        return {
            "output": output,
            "steps": [step.to_dict() for step in steps],
            "iterations": iterations,
            "stop_reason": stop_reason,
        }

    def humanize(self, technical_answer: str) -> str:
        """Single tool-free pass turning the technical answer into spoken text."""
        prompt = HUMANIZE_TEMPLATE.format(max_sentences=self._max_sentences, text=technical_answer)
        spoken = self._call_oracle([{"role": "user", "content": prompt}]).strip()
        if not spoken:
            spoken = technical_answer
        return limit_sentences(spoken, self._max_sentences)

    def respond(self, user_text: str, *, history: str = "", user_id: str = "") -> dict[str, Any]:
        trace = self.run(user_text, history=history, user_id=user_id)
        text = self.humanize(trace["output"])
        return {"text": text, "trace": trace}

    def classify_intent(self, text: str) -> str:
        prompt = INTENT_TEMPLATE.format(labels=", ".join(INTENT_LABELS), text=text)
        try:
            raw = self._call_oracle([{"role": "user", "content": prompt}])
        except ExternalServiceError as exc:
            logger.warning("intent classification failed", extra={"error": str(exc)})
            return "GENERAL"
        return normalize_intent(raw)
