"""
Scoring task prompts
signal_engine/services/prompts.py

System instructions per task for the chat-completions client. Each prompt
names the exact JSON shape the task parser in pipelines/tasks.py reads.
"""

from typing import Any, Dict

_BASE = (
    "You are a sales conversation analyst scoring a live call between a closer "
    "and a prospect. Focus on what the PROSPECT says unless told otherwise. "
    "Return ONLY valid JSON, no prose."
)

_PILLAR = (
    "Score each indicator below from 1 to 10 based on clear evidence in the "
    "transcript. Omit indicators you cannot judge; never guess a midpoint.\n"
    "Indicators: {rubric_slice}\n"
    'Return: {{"indicators": {{"<id>": <score>, ...}}}}'
)

_HOT_BUTTONS = (
    "Find emotional triggers (hot buttons) from the prospect. Only these "
    "indicators can be hot buttons: {rubric_slice}\n"
    "Copy the EXACT verbatim quote (10-30 words), write a custom follow-up "
    "question and rate intensity 1-10.\n"
    'Return: {{"hot_buttons": [{{"id": <indicator>, "quote": "...", '
    '"prompt": "...", "score": <1-10>}}]}}'
)

_OBJECTIONS = (
    "Detect objections, hesitations and concerns the prospect raised "
    "(price, trust, timing, authority, value, fear). Use the prospect's words "
    "for the objection text and give a probability between 0 and 1.\n"
    'Return: {{"objections": [{{"objection_text": "...", "probability": 0.8}}]}}'
)

_QUESTIONS = (
    "Detect which of these diagnostic questions the CLOSER has asked, "
    "matching meaning rather than exact wording:\n{rubric_slice}\n"
    'Return: {{"asked": [<0-based index>, ...]}}'
)

_TRUTH_INDEX = (
    "Analyze the prospect's statements for coherence.\n"
    "T1 High Pain + Low Urgency; T2 High Desire + Low Decisiveness; "
    "T3 High Money + High Price Sensitivity; T4 Claims Authority + Needs "
    "Approval (e.g. 'I decide' then 'I need to ask my wife'); "
    "T5 High Desire + Low Responsibility.\n"
    "Report only rules with clear evidence, with a confidence between 0 and 1.\n"
    'Return: {{"hints": [{{"rule_id": "T4", "evidence": "...", "confidence": 0.8}}], '
    '"coherence_signals": ["..."], "overall_coherence": "high|medium|low"}}'
)

_INSIGHTS = (
    "You are a sales coach. Summarize the prospect's situation (1-2 sentences), "
    "list 2-3 key motivators and 2-3 concerns, recommend the closer's next step "
    "(1 sentence) and rate closing readiness.\n"
    'Return: {{"summary": "...", "key_motivators": ["..."], "concerns": ["..."], '
    '"recommendation": "...", "closing_readiness": "ready|almost|not_ready"}}'
)

_DEPENDENT = {
    "objection_fear": (
        "For each objection, name the underlying emotional fear driving it "
        "(one short sentence).\n{rubric_slice}\n"
        'Return: {{"items": [{{"index": <n>, "fear": "..."}}]}}'
    ),
    "objection_reframe": (
        "For each objection, write a one-sentence 'whisper': what the prospect "
        "really needs to hear.\n{rubric_slice}\n"
        'Return: {{"items": [{{"index": <n>, "whisper": "..."}}]}}'
    ),
    "objection_rebuttal": (
        "For each objection, write a 2-3 sentence rebuttal script the closer "
        "can say word for word.{custom}\n{rubric_slice}\n"
        'Return: {{"items": [{{"index": <n>, "rebuttal_script": "..."}}]}}'
    ),
}

_TASK_PROMPTS = {
    "hot_buttons": _HOT_BUTTONS,
    "objections": _OBJECTIONS,
    "diagnostic_questions": _QUESTIONS,
    "truth_index": _TRUTH_INDEX,
    "insights": _INSIGHTS,
}


def system_prompt(task: str, rubric_slice: str, context: Dict[str, Any]) -> str:
    """Instruction text for one task."""
    if task.startswith("pillar_"):
        template = _PILLAR
    elif task in _DEPENDENT:
        template = _DEPENDENT[task]
    else:
        template = _TASK_PROMPTS.get(task, "Analyze the transcript.\n{rubric_slice}")

    custom = context.get("custom_script_prompt")
    body = template.format(
        rubric_slice=rubric_slice,
        custom=f" Follow this house style: {custom}" if custom else "",
    )
    prospect_type = context.get("prospect_type")
    if prospect_type:
        body = f"Prospect type: {prospect_type}.\n{body}"
    return f"{_BASE}\n\n{body}"


def user_prompt(text: str) -> str:
    return f'Transcript:\n"{text}"'
