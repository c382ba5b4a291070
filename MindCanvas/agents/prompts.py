"""
Prompt templates for the MindCanvas model client.

Each operation sends a system message carrying the output contract and a
user message carrying the typed inputs:
- Intention analysis: utterance (+ context) -> interpretation and 1-5 tasks
- Task update: task + new context -> revised description and status
- Task suggestions: intention title + existing titles -> new, non-duplicate tasks
- Task result: task + intention -> free-form result text
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..llm_backends.base import ChatMessage


INTENTION_ANALYSIS_SYSTEM = """You are an AI assistant that helps users fulfill their intentions by breaking them down into actionable tasks.

Analyze the user's spoken intention and:
1. Provide a clear interpretation of what they want to achieve
2. Generate 3-5 specific, actionable tasks that would help fulfill this intention
3. Estimate overall progress (0-100) that can be made immediately
4. For each task, provide reasoning for why it's important

Return your response as valid JSON in this exact format:
{
  "intentionAnalysis": "Clear interpretation of the user's goal",
  "suggestedTasks": [
    {
      "title": "Task title (max 50 characters)",
      "description": "Detailed task description (max 200 characters)",
      "reasoning": "Why this task is important for the intention (max 150 characters)"
    }
  ],
  "progressEstimate": 25
}

Keep descriptions concise and actionable. Focus on immediate next steps the user can take."""


TASK_UPDATE_SYSTEM = """You are helping update a task based on new context or information.

Analyze the current task and new context, then provide:
1. An updated task description that incorporates the new information
2. An appropriate status for the task: "spawning", "executing", or "completed"

Return your response as valid JSON:
{
  "updatedDescription": "Updated task description",
  "status": "executing"
}"""


TASK_SUGGESTIONS_SYSTEM = """Generate additional helpful tasks for an intention, avoiding duplication with existing tasks.

Return 2-3 new tasks as valid JSON:
{
  "newTasks": [
    {
      "title": "Task title",
      "description": "Task description",
      "reasoning": "Why this task helps"
    }
  ]
}"""


TASK_RESULT_SYSTEM = """You are an AI assistant carrying out one task on behalf of the user.

Work the task through and reply with the result itself: findings, a draft, a
checklist or concrete recommendations, whichever the task calls for.
Keep it practical and under 300 words. Do not describe what you would do;
do it. Plain text or simple Markdown only."""


def _messages(system: str, user: str) -> list[ChatMessage]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def intention_analysis_messages(
    text: str,
    context: Optional[Sequence[str]] = None,
) -> list[ChatMessage]:
    user = f'User\'s intention: "{text}"'
    if context:
        user += f"\nAdditional context: {', '.join(context)}"
    return _messages(INTENTION_ANALYSIS_SYSTEM, user)


def task_update_messages(
    title: str,
    description: str,
    status: str,
    new_context: str,
) -> list[ChatMessage]:
    user = (
        f'Current task: "{title}" - {description}\n'
        f"Current status: {status}\n"
        f"New context: {new_context}"
    )
    return _messages(TASK_UPDATE_SYSTEM, user)


def task_suggestions_messages(
    intention_title: str,
    existing_titles: Iterable[str],
) -> list[ChatMessage]:
    user = f"Intention: {intention_title}\nExisting tasks: {', '.join(existing_titles)}"
    return _messages(TASK_SUGGESTIONS_SYSTEM, user)


def task_result_messages(
    title: str,
    description: str,
    reasoning: str = "",
    intention: str = "",
    user_context: Optional[Sequence[str]] = None,
) -> list[ChatMessage]:
    lines = []
    if intention:
        lines.append(f"Intention: {intention}")
    lines.append(f"Task: {title}")
    if description:
        lines.append(f"Details: {description}")
    if reasoning:
        lines.append(f"Why it matters: {reasoning}")
    if user_context:
        lines.append(f"User notes: {'; '.join(user_context)}")
    return _messages(TASK_RESULT_SYSTEM, "\n".join(lines))
