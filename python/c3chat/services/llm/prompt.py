"""Provider-agnostic prompt assembly.

Produces lists of Turn objects; each adapter converts them to its own
wire format.

- Search enrichment: one synthetic system turn placed FIRST, followed by the
  conversation unchanged.
- Explain: fixed system turn, the chat context as prior turns, then the
  highlighted text as the final user turn.
"""

from collections.abc import Sequence

from c3chat.services.llm.types import Turn

# Extracted page bodies shorter than this are treated as noise.
MIN_EXTRACTED_CHARS = 100
MAX_PROMPT_RESULTS = 3

SEARCH_INSTRUCTIONS = """INSTRUCTIONS:
1. ANSWER REQUIREMENTS:
   - Provide a direct, comprehensive answer to the user's question
   - Use ONLY information found in the provided web search results
   - If the search results don't contain enough information to answer the question,
     clearly state this limitation
   - Synthesize information from multiple sources when relevant

2. CITATION REQUIREMENTS:
   - Always cite your sources using [ Source: URL or Title ] format
   - Include citations immediately after each claim or piece of information
   - If multiple sources support the same point, cite all relevant sources
   - Never make claims without proper citations to the search results

3. HANDLING CONFLICTING INFORMATION:
   - If sources contradict each other, explicitly mention the contradiction
   - Present different viewpoints with their respective sources
   - Do not choose sides unless there's overwhelming evidence from more authoritative sources

4. QUALITY GUIDELINES:
   - Structure your answer logically with clear sections if the topic is complex
   - Use specific details, numbers, dates, and examples from the sources
   - Avoid generic statements - be specific and factual
   - If information is outdated, mention the publication date

5. LIMITATIONS:
   - If the search results are insufficient or off-topic, say: "The provided search results
     do not contain enough relevant information to fully answer your question about [topic]."
   - Don't speculate or add information not found in the search results
   - If you need more recent information, suggest the user perform a new search

Please provide your answer now, following all the above guidelines."""

EXPLAIN_SYSTEM_PROMPT = (
    "You are an AI assistant. Explain the highlighted text in the context of the chat below. "
    "Be concise, clear, and reference the chat context if relevant. "
    "Keep your response short and to the point."
)


def _format_result(index: int, title: str, url: str, snippet: str, content: str | None) -> str:
    lines = [
        f"{index}. **{title}**",
        f"   URL: {url}",
        f"   Summary: {snippet}",
    ]
    if content and len(content) > MIN_EXTRACTED_CHARS:
        lines += ["", "   Full Content:", f"   {content}"]
    lines += ["", "   ---"]
    return "\n".join(lines)


def render_search_system_prompt(question: str, results: Sequence) -> str | None:
    """Render the search-grounding system prompt, or None without results.

    `results` are SearchResult-like objects (title, url, snippet, content);
    only the first three are used.
    """
    blocks = [
        _format_result(i, r.title, r.url, r.snippet, r.content)
        for i, r in enumerate(results[:MAX_PROMPT_RESULTS], start=1)
    ]
    if not blocks:
        return None

    return (
        "You are an AI assistant tasked with answering the user's question "
        "using information from web search results.\n\n"
        f'USER QUESTION: "{question}"\n\n'
        "WEB SEARCH RESULTS:\n"
        + "\n\n".join(blocks)
        + "\n\n"
        + SEARCH_INSTRUCTIONS
    )


def with_search_context(turns: list[Turn], system_prompt: str | None) -> list[Turn]:
    """Put the search system turn first; the conversation follows unchanged."""
    if not system_prompt:
        return list(turns)
    return [Turn(role="system", content=system_prompt), *turns]


def render_explain_prompt(selected_text: str, chat_context: Sequence[Turn]) -> list[Turn]:
    return [
        Turn(role="system", content=EXPLAIN_SYSTEM_PROMPT),
        *[t for t in chat_context if t.role in ("user", "assistant")],
        Turn(role="user", content=f'Explain the following highlighted text: "{selected_text}"'),
    ]
