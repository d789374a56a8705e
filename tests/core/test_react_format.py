import pytest

from src.krishi.core.agent_types import AgentAction, AgentFinish, AgentStep
from src.krishi.core.errors import ReasoningParseError, ToolInputError
from src.krishi.core.react_format import (
    format_scratchpad,
    limit_sentences,
    normalize_intent,
    parse_react_output,
    parse_tool_input,
    render_react_prompt,
    truncate_at_observation,
)


def test_parse_action_with_json_input():
    text = 'Thought: Do I need to use a tool? Yes\nAction: credit_scoring\nAction Input: {"acres": 2.5}'
    decision = parse_react_output(text)
    assert isinstance(decision, AgentAction)
    assert decision.tool == "credit_scoring"
    assert decision.tool_input == '{"acres": 2.5}'
    assert decision.log == text


def test_parse_action_strips_quotes_and_code_fence():
    decision = parse_react_output('Action: agri_stack_lookup\nAction Input: "{}"\n```')
    assert isinstance(decision, AgentAction)
    assert decision.tool_input == "{}"


def test_parse_final_answer():
    decision = parse_react_output("Thought: Do I need to use a tool? No\nFinal Answer: Please share your plot number.")
    assert isinstance(decision, AgentFinish)
    assert decision.output == "Please share your plot number."


def test_parse_rejects_action_and_final_answer_together():
    with pytest.raises(ReasoningParseError, match="both a final answer"):
        parse_react_output("Action: credit_scoring\nAction Input: {}\nFinal Answer: done")


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("I think the farmer is eligible.", "Missing 'Action:'"),
        ("Thought: yes\nAction: credit_scoring", "Missing 'Action Input:'"),
    ],
)
def test_parse_rejects_text_outside_grammar(text, message):
    with pytest.raises(ReasoningParseError, match=message) as exc_info:
        parse_react_output(text)
    assert exc_info.value.llm_output == text


def test_truncate_drops_hallucinated_observation():
    text = "Action: credit_scoring\nAction Input: {}\nObservation: 95\nThought: done"
    assert truncate_at_observation(text) == "Action: credit_scoring\nAction Input: {}"


def test_parse_tool_input_requires_json_object():
    assert parse_tool_input('{"plotNumber": "12"}', tool_name="agri_stack_lookup") == {"plotNumber": "12"}
    with pytest.raises(ToolInputError, match="not valid JSON"):
        parse_tool_input("plot 12", tool_name="agri_stack_lookup")
    with pytest.raises(ToolInputError, match="JSON object"):
        parse_tool_input("[1, 2]", tool_name="agri_stack_lookup")


def test_scratchpad_and_prompt_rendering():
    step = AgentStep(
        action=AgentAction(tool="credit_scoring", tool_input="{}", log="Action: credit_scoring\nAction Input: {}"),
        observation='{"ok": true, "score": 95}',
    )
    scratchpad = format_scratchpad([step])
    assert scratchpad == 'Action: credit_scoring\nAction Input: {}\nObservation: {"ok": true, "score": 95}\nThought: '

    prompt = render_react_prompt(
        tool_catalog="credit_scoring() - Score.",
        tool_names=["credit_scoring", "underwriting_decision"],
        chat_history="\nUser: hi\nAgent: hello",
        user_input="loan please",
        user_id="u-7",
        steps=[step],
    )
    assert "[credit_scoring, underwriting_decision]" in prompt
    assert "Applicant user id: u-7" in prompt
    assert "User Input: loan please" in prompt
    assert prompt.endswith(scratchpad)


def test_limit_sentences_keeps_first_two():
    text = "Badhai ho! Your loan is approved at 8.5% interest. Funds arrive soon. Thank you."
    assert limit_sentences(text, 2) == "Badhai ho! Your loan is approved at 8.5% interest."
    assert limit_sentences("One sentence only", 2) == "One sentence only"


def test_limit_sentences_does_not_break_on_abbreviations():
    text = "Aapko Rs. 50000 ka loan mila hai. Dr. Sharma will call you tomorrow. Dhanyavaad."
    assert limit_sentences(text, 2) == "Aapko Rs. 50000 ka loan mila hai. Dr. Sharma will call you tomorrow."


def test_normalize_intent_defaults_to_general():
    assert normalize_intent(" loan_request\n") == "LOAN_REQUEST"
    assert normalize_intent("Classification: STATUS_CHECK") == "STATUS_CHECK"
    assert normalize_intent("something else") == "GENERAL"
    assert normalize_intent(None) == "GENERAL"
