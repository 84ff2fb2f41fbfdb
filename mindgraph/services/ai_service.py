"""
MindGraph — AI Service
=======================
Asks the configured AI providers (Groq, Gemini) for a raw mind map and hands
the parsed result to the graph builder.

  • Provider chain: "hybrid" mode falls over from one provider to the next
  • Model output is recovered from fences, chatter, trailing commas and truncation
  • Unparseable output is retried; provider outages are not
  • A progress generator feeds the SSE endpoint
"""

import asyncio
import json
import logging
import re
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import google.generativeai as genai
from groq import AsyncGroq

from mindgraph.core.config import settings
from mindgraph.graph.builder import build_mind_map_graph
from mindgraph.schemas.mindmap import CanonicalGraph

logger = logging.getLogger(__name__)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PROVIDER SETUP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

logger.info(f"[AI‑SERVICE] Provider mode: {settings.AI_PROVIDER}")

groq_client: Optional[AsyncGroq] = (
    AsyncGroq(api_key=settings.GROQ_API_KEY) if settings.GROQ_API_KEY else None
)
logger.info(f"[AI‑SERVICE] Groq: {'ready' if groq_client else 'no API key'}")

if settings.GOOGLE_API_KEY:
    genai.configure(api_key=settings.GOOGLE_API_KEY, transport="rest")
logger.info(f"[AI‑SERVICE] Gemini: {'ready' if settings.GOOGLE_API_KEY else 'no API key'}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SYSTEM PROMPT (STRICT JSON, UNLIMITED DEPTH)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

MINDMAP_SYSTEM_PROMPT = (
    "You are an expert educational mind map creator with deep expertise in "
    "academic curriculum design.\n"
    "Create a comprehensive, university-level mind map covering the complete "
    "breadth and depth of the requested subject.\n\n"
    "Structure requirements:\n"
    "- Central node: the subject name with an academic overview.\n"
    "- Module nodes: 6-12 major topic areas covering the whole subject.\n"
    "- Subtopics: 4-8 per module, each with educational content.\n"
    "- Deeper nesting: add sub_subtopics, sub_sub_subtopics, ... as the subject requires.\n\n"
    "Output MUST be valid JSON matching this EXACT schema:\n"
    "{\n"
    '  "mind_map": {\n'
    '    "central_node": {"title": "Subject Name", "content": "Overview"},\n'
    '    "module_nodes": [\n'
    "      {\n"
    '        "title": "Major Topic Area",\n'
    '        "content": "Description of the topic area",\n'
    '        "subtopics": [\n'
    "          {\n"
    '            "title": "Subtopic",\n'
    '            "content": "Explanation",\n'
    '            "sub_subtopics": [\n'
    '              {"title": "Specific Concept", "content": "Details", "sub_sub_subtopics": []}\n'
    "            ]\n"
    "          }\n"
    "        ]\n"
    "      }\n"
    "    ]\n"
    "  }\n"
    "}\n\n"
    "Output ONLY valid JSON. No markdown fences, no commentary.\n"
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JSON RECOVERY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)
# A string literal, possibly cut off before its closing quote.
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"?', re.DOTALL)

_BARE_KEYS = (
    "title", "content", "description", "subtopics", "id", "label",
    "mind_map", "central_node", "module_nodes", "subtopic_nodes",
)


def _close_unbalanced(text: str) -> str:
    """Append the closers for every bracket/brace still open at the end of `text`."""
    stack: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    if in_string:
        text += '"'
    text = text.rstrip().rstrip(",")
    return text + "".join(reversed(stack))


def repair_json(text: str) -> str:
    """
    Best-effort fixes for the mistakes models make most often:
    missing commas between objects, trailing commas, unquoted well-known keys
    and output truncated before the closing brackets.
    """
    fixed = _outside_strings(text, lambda chunk: re.sub(r"```(?:json)?", "", chunk)).strip()
    fixed = _outside_strings(fixed, _quote_keys_and_split_objects)
    fixed = _close_unbalanced(fixed)
    return _outside_strings(fixed, lambda chunk: re.sub(r",(\s*[}\]])", r"\1", chunk))


def _outside_strings(text: str, rewrite: Callable[[str], str]) -> str:
    """Apply `rewrite` to the JSON structure only, leaving string literals intact."""
    parts: List[str] = []
    pos = 0
    for literal in _STRING_LITERAL.finditer(text):
        parts.append(rewrite(text[pos:literal.start()]))
        parts.append(literal.group(0))
        pos = literal.end()
    parts.append(rewrite(text[pos:]))
    return "".join(parts)


def _quote_keys_and_split_objects(chunk: str) -> str:
    for key in _BARE_KEYS:
        chunk = re.sub(rf"([{{,]\s*)({key})\s*:", r'\1"\2":', chunk)
    return re.sub(r"}(\s*){", r"},\1{", chunk)


def _extract_candidate(text: str) -> str:
    """Narrow model output down to the part that should be the JSON object."""
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    if text.startswith("{"):
        return text
    span = _OBJECT_SPAN.search(text)
    if span:
        return span.group(0)
    # Truncated output has an opening brace but no closing one.
    return text[text.index("{"):] if "{" in text else text


_PARSE_ATTEMPTS: List[Tuple[str, Callable[[str], str]]] = [
    ("as-is", lambda text: text),
    ("repaired", repair_json),
]


def clean_and_parse_json(raw_text: str) -> Dict[str, Any]:
    """
    Parse the JSON object out of a model response.

    The candidate is cut out of fences and surrounding chatter, parsed as-is,
    then parsed again after `repair_json`. Raises ValueError when the response
    is empty, unrecoverable, or a JSON value other than an object.
    """
    if not raw_text or not raw_text.strip():
        raise ValueError("Empty AI response received")

    candidate = _extract_candidate(raw_text.strip())

    error: Optional[json.JSONDecodeError] = None
    for name, prepare in _PARSE_ATTEMPTS:
        try:
            parsed = json.loads(prepare(candidate))
            break
        except json.JSONDecodeError as e:
            error = e
            logger.warning(f"[AI‑SERVICE] JSON parse ({name}) failed: {e}")
    else:
        logger.error(f"[AI‑SERVICE] Unrecoverable output (first 500 chars): {raw_text[:500]}")
        raise ValueError(f"AI returned invalid JSON: {error}")

    if not isinstance(parsed, dict):
        raise ValueError(f"AI returned JSON {type(parsed).__name__}, expected an object")
    return parsed


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PROVIDERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _call_groq(system_prompt: str, user_prompt: str) -> str:
    if groq_client is None:
        raise ValueError("Groq API Key missing")

    logger.info(f"[AI‑SERVICE] → Groq ({settings.GROQ_MODEL})")
    completion = await groq_client.chat.completions.create(
        model=settings.GROQ_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        response_format={"type": "json_object"},
        temperature=settings.MINDMAP_TEMPERATURE,
        max_tokens=settings.MINDMAP_MAX_TOKENS,
    )
    return completion.choices[0].message.content


async def _call_gemini(system_prompt: str, user_prompt: str) -> str:
    """The Gemini SDK is synchronous; the request runs in a worker thread."""
    if not settings.GOOGLE_API_KEY:
        raise ValueError("Google API Key missing")

    logger.info(f"[AI‑SERVICE] → Gemini ({settings.GEMINI_MODEL})")
    model = genai.GenerativeModel(
        model_name=settings.GEMINI_MODEL,
        system_instruction=system_prompt,
        generation_config={
            "response_mime_type": "application/json",
            "temperature": settings.MINDMAP_TEMPERATURE,
            "max_output_tokens": settings.MINDMAP_MAX_TOKENS,
        },
    )
    response = await asyncio.to_thread(model.generate_content, user_prompt)
    return response.text


ProviderCall = Callable[[str, str], Awaitable[str]]

PROVIDER_NAMES = {"groq": "Groq", "gemini": "Gemini"}


def _provider_order(primary: str) -> List[str]:
    """Providers to try, in order, for the configured AI_PROVIDER mode."""
    if settings.AI_PROVIDER != "hybrid":
        return [settings.AI_PROVIDER]
    return sorted(PROVIDER_NAMES, key=lambda key: key != primary)


def _provider_call(key: str) -> ProviderCall:
    # Looked up at call time so tests can patch the module attributes.
    return {"groq": _call_groq, "gemini": _call_gemini}[key]


async def _hybrid_call(
    system_prompt: str,
    user_prompt: str,
    primary: str = "groq",
) -> str:
    """
    Ask each provider in turn and return the first response.
    Raises RuntimeError once every provider in the chain has failed.
    """
    failure: Optional[Exception] = None
    for key in _provider_order(primary):
        try:
            text = await _provider_call(key)(system_prompt, user_prompt)
            logger.info(f"[AI‑SERVICE] ✓ {PROVIDER_NAMES[key]} responded")
            return text
        except Exception as e:
            failure = e
            logger.warning(f"[AI‑SERVICE] ✗ {PROVIDER_NAMES[key]} failed: {str(e)[:200]}")

    raise RuntimeError(f"All AI providers failed. Last error: {failure}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GENERATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_user_prompt(subject_name: str, prompt: str = "") -> str:
    lines = [f'Create a comprehensive, university-level mind map for: "{subject_name}"']
    if prompt.strip():
        lines.append(f"Additional requirements: {prompt.strip()}")
    lines.append("")
    lines.append(
        "Generate a complete academic mind map covering all major areas, "
        "theories, methods, and applications of this subject."
    )
    return "\n".join(lines)


async def generate_mindmap(subject_name: str, prompt: str = "") -> Union[CanonicalGraph, Dict[str, Any]]:
    """
    Generate a mind map for a subject and normalise it into a CanonicalGraph.

    Only unparseable output is retried (up to AI_MAX_RETRIES attempts);
    a RuntimeError from the provider chain propagates straight away.
    Parsed JSON that is not mind-map shaped is returned unchanged.
    """
    logger.info(f"[MINDMAP] Generating for '{subject_name}'")
    user_prompt = build_user_prompt(subject_name, prompt)
    attempts = settings.AI_MAX_RETRIES

    parse_error: Optional[ValueError] = None
    for attempt in range(1, attempts + 1):
        raw = await _hybrid_call(MINDMAP_SYSTEM_PROMPT, user_prompt, primary="groq")
        try:
            parsed = clean_and_parse_json(raw)
        except ValueError as e:
            parse_error = e
            logger.warning(f"[MINDMAP] Attempt {attempt}/{attempts}: {e}")
            continue
        logger.info(f"[MINDMAP] ✓ Parsed model output on attempt {attempt}")
        return build_mind_map_graph(parsed, subject_name)

    raise ValueError(f"Mind map generation failed after {attempts} attempts: {parse_error}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SSE PROGRESS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

STREAM_STAGES = [
    "Analysing subject scope...",
    "Drafting topic hierarchy...",
    "Expanding subtopics...",
    "Normalising mind map graph...",
]
STREAM_STAGE_DELAY = 0.5


def _event(kind: str, **fields: Any) -> str:
    return json.dumps({"type": kind, **fields})


def _graph_payload(result: Union[CanonicalGraph, Any]) -> Any:
    if isinstance(result, CanonicalGraph):
        return result.model_dump(by_alias=True)
    return result


async def generate_mindmap_stream(subject_name: str, prompt: str = "") -> AsyncGenerator[str, None]:
    """Yield JSON progress events, then a single result or error event."""
    for i, stage in enumerate(STREAM_STAGES, start=1):
        yield _event("status", message=stage, progress=int(i / len(STREAM_STAGES) * 70))
        await asyncio.sleep(STREAM_STAGE_DELAY)

    try:
        result = await asyncio.wait_for(
            generate_mindmap(subject_name, prompt),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(f"[MINDMAP] Stream timed out after {settings.AI_TIMEOUT_SECONDS}s")
        yield _event("error", message=f"AI processing timed out after {settings.AI_TIMEOUT_SECONDS}s.")
        return
    except Exception as e:
        logger.error(f"[MINDMAP] Stream failed: {e}")
        yield _event("error", message=str(e))
        return

    yield _event("status", message="Done ✓", progress=100)
    yield _event("result", data=_graph_payload(result))
