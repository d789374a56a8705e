"""Prompt rendering and output grammar for the Thought/Action/Observation loop."""

from __future__ import annotations

import json
import re
from typing import Any

from .agent_types import AgentAction, AgentFinish, AgentStep
from .errors import ReasoningParseError, ToolInputError

FINAL_ANSWER_MARKER = "Final Answer:"
OBSERVATION_STOP = "\nObservation"

_ACTION_RE = re.compile(r"Action\s*\d*\s*:[\s]*(.*?)[\s]*Action\s*\d*\s*Input\s*\d*\s*:[\s]*(.*)", re.DOTALL)
_ACTION_ONLY_RE = re.compile(r"Action\s*\d*\s*:[\s]*(.*?)", re.DOTALL)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?।])\s+")
# Tokens ending in a period that do not close a sentence.
_ABBREVIATIONS = frozenset({"rs.", "no.", "dr.", "mr.", "mrs.", "smt.", "shri.", "approx.", "e.g.", "i.e.", "vs."})

SYSTEM_INSTRUCTIONS = """You are Krishi-Mitra, an agricultural finance assistant for Indian farmers.
You speak in a simple, direct and encouraging manner.
Your goal is to help a farmer apply for a loan."""

REACT_TEMPLATE = """You have access to the following tools:
{tools}

To use a tool, use exactly this format, with the Action Input as a JSON object:
```
Thought: Do I need to use a tool? Yes
Action: the action to take, should be one of [{tool_names}]
Action Input: the input to the action
```

When you have a response to say to the Human, or if you do not need to use a tool, you MUST use the format:
```
Thought: Do I need to use a tool? No
Final Answer: [your response here]
```

Begin!

Applicant user id: {user_id}

Conversation History:
{chat_history}

User Input: {input}
Agent Scratchpad:
{agent_scratchpad}"""

HUMANIZE_TEMPLATE = """Convert the technical response below into a warm, natural spoken response for an Indian farmer (in English/Hinglish).
Keep it short (at most {max_sentences} sentences).
Technical Response: {text}"""

INTENT_LABELS = ("LOAN_REQUEST", "KYC_PROVIDE", "AGRI_DETAILS", "STATUS_CHECK", "GENERAL")

INTENT_TEMPLATE = """Classify the following text into one of: {labels}.
Answer with the label only.
Text: {text}
Classification:"""


def format_scratchpad(steps: list[AgentStep]) -> str:
    parts: list[str] = []
    for step in steps:
        parts.append(f"{step.action.log}\nObservation: {step.observation}\nThought: ")
    return "".join(parts)


def render_react_prompt(
    *,
    tool_catalog: str,
    tool_names: list[str],
    chat_history: str,
    user_input: str,
    user_id: str,
    steps: list[AgentStep],
) -> str:
    return REACT_TEMPLATE.format(
        tools=tool_catalog,
        tool_names=", ".join(tool_names),
        user_id=user_id,
        chat_history=chat_history,
        input=user_input,
        agent_scratchpad=format_scratchpad(steps),
    )


def truncate_at_observation(text: str) -> str:
    """Drop anything the model wrote past the stop sequence."""
    return text.split(OBSERVATION_STOP, 1)[0]


def _clean_action_input(raw: str) -> str:
    cleaned = raw.strip()
    cleaned = re.sub(r"\s*```\s*$", "", cleaned)
    return cleaned.strip(" ").strip('"')


def parse_react_output(text: str) -> AgentAction | AgentFinish:
    """Parse one oracle turn into an action or a final answer."""
    includes_answer = FINAL_ANSWER_MARKER in text
    action_match = _ACTION_RE.search(text)
    if action_match:
        if includes_answer:
            raise ReasoningParseError(
                "Parsing LLM output produced both a final answer and a parse-able action.",
                llm_output=text,
            )
        tool = action_match.group(1).strip().strip("`")
        return AgentAction(tool=tool, tool_input=_clean_action_input(action_match.group(2)), log=text)
    if includes_answer:
        output = text.split(FINAL_ANSWER_MARKER)[-1].strip()
        output = re.sub(r"\s*```\s*$", "", output)
        return AgentFinish(output=output, log=text)

    if not _ACTION_ONLY_RE.search(text):
        raise ReasoningParseError("Invalid Format: Missing 'Action:' after 'Thought:'.", llm_output=text)
    raise ReasoningParseError("Invalid Format: Missing 'Action Input:' after 'Action:'.", llm_output=text)


def parse_tool_input(raw: str, *, tool_name: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolInputError(f"Action Input for `{tool_name}` is not valid JSON: {exc.msg}.", tool_name=tool_name) from exc
    if not isinstance(parsed, dict):
        raise ToolInputError(f"Action Input for `{tool_name}` must be a JSON object.", tool_name=tool_name)
    return parsed


def split_sentences(text: str) -> list[str]:
    sentences: list[str] = []
    for part in _SENTENCE_SPLIT_RE.split(text.strip()):
        if not part:
            continue
        if sentences and sentences[-1].rsplit(None, 1)[-1].lower() in _ABBREVIATIONS:
            sentences[-1] = f"{sentences[-1]} {part}"
        else:
            sentences.append(part)
    return sentences


def limit_sentences(text: str, max_sentences: int = 2) -> str:
    sentences = split_sentences(text)
    return " ".join(sentences[: max(1, max_sentences)])


def normalize_intent(raw: str | None) -> str:
    token = (raw or "").strip().upper()
    for label in INTENT_LABELS:
        if label in token:
            return label
    return "GENERAL"
