# menucard/assistant/prompt.py
from __future__ import annotations

SYSTEM_INTRO = (
    "You are a helpful restaurant finder assistant. Based on the user's query, "
    "help them find restaurants and menu items that match their preferences."
)

RESULTS_HEADER = "Here are the most relevant restaurants and menu items I found:"

INSTRUCTIONS = """Please provide a helpful response that:
1. Answers the user's question about restaurants or food
2. Recommends specific restaurants from the search results when relevant
3. Includes practical information like addresses, phone numbers, and menu links
4. Is conversational and friendly
5. If no good matches were found, suggest they try a different search or browse all restaurants
6. Formats the response using Markdown (e.g., use **bold** for names, lists for items, and links for menus)
"""

ALLOWED_ROLES = ("user", "assistant")


def make_system_prompt(context: str, question: str, *, has_results: bool) -> str:
    parts = [SYSTEM_INTRO, ""]
    if has_results:
        parts += [RESULTS_HEADER, ""]
    parts += [context, "", f"User's question: {question}", "", INSTRUCTIONS]
    return "\n".join(parts)


def make_messages(
    system: str, question: str, history: list[dict[str, str]] | None = None
) -> list[dict[str, str]]:
    """System prompt, prior turns (user/assistant only), then the new question."""
    msgs = [{"role": "system", "content": system}]
    for turn in history or []:
        role, content = turn.get("role"), turn.get("content")
        if role in ALLOWED_ROLES and content:
            msgs.append({"role": role, "content": content})
    msgs.append({"role": "user", "content": question})
    return msgs
