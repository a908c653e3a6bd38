# WORKFLOW: AI summary pipeline for calculation results with strict output guardrails.
# Used by: Tariff service calculate(include_summary=True) and generate_summary()
# Functions:
# 1. build_prompt() - Bounded prompt embedding exactly the computed values
# 2. normalize_summary() - Markdown bold -> <b>, blank-line paragraphs -> <p>
# 3. sanitize_html() - Allow-list of <p> and <b>, no attributes, scripts removed
# 4. SummaryPipeline.summarize() - Prompt -> one timed LLM call -> normalize -> sanitize
#
# Summary flow: CalculationResult -> Prompt -> Text generator -> Normalize -> Sanitize -> HTML
# Failure flow: Any generator error -> logged -> FALLBACK_SUMMARY
# Generated text is never returned unsanitized; the numbers in the prompt come
# from the deterministic result only.

import re
from typing import Optional
import logging

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from core.config import settings
from schemas.response import CalculationResult

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "AI summary unavailable."

ALLOWED_TAGS = {"p", "b"}
# Removed together with everything inside them
DROP_WITH_CONTENT = {
    "script", "style", "iframe", "frame", "frameset", "object", "embed", "applet",
    "noscript", "template", "head", "title", "svg", "math", "textarea", "select", "button",
}

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__", re.DOTALL)
_P_TAG_RE = re.compile(r"<p[\s>/]", re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\n\s*\n")

PROMPT_TEMPLATE = """
Write a short explanation of this import tariff calculation for a business user.

- Origin country: {origin}
- Destination country: {destination}
- Product category: {category}
- Effective date: {effective_date}
- Declared value: {declared_value}
- Base rate: {base_rate_percent}% ({base_rate})
- Tariff amount: {tariff_amount}
- Additional fee: {additional_fee}
- Total landed cost: {total_cost}
"""

# Appended after the values and never truncated
PROMPT_RULES = """
RULES:
- Only use the values listed above. Do not invent or change any numbers, rates or facts.
- Respond in HTML using only <p> and <b> tags, with no attributes.
- Use fewer than {max_words} words.
"""


def build_prompt(result: CalculationResult, max_words: Optional[int] = None,
                 max_chars: Optional[int] = None) -> str:
    """
    Build the summary prompt for ``result``.

    When the prompt would exceed ``max_chars`` the value section is shortened;
    the RULES block is always kept whole.
    """
    max_words = max_words or settings.summary_max_words
    max_chars = max_chars or settings.summary_prompt_max_chars

    values = PROMPT_TEMPLATE.format(
        origin=result.origin_code,
        destination=result.destination_code,
        category=result.category_code,
        effective_date=result.effective_date.isoformat(),
        declared_value=result.declared_value,
        base_rate=result.base_rate,
        base_rate_percent=format((result.base_rate * 100).normalize(), "f"),
        tariff_amount=result.tariff_amount,
        additional_fee=result.additional_fee,
        total_cost=result.total_cost
    ).strip()
    rules = PROMPT_RULES.format(max_words=max_words).strip()

    budget = max_chars - len(rules) - 2
    if budget <= 0:
        return rules
    return f"{values[:budget].rstrip()}\n\n{rules}"


def normalize_summary(raw: str) -> str:
    """Convert Markdown bold to <b> and wrap plain paragraphs in <p>."""
    text = (raw or "").strip()
    text = _BOLD_RE.sub(lambda m: f"<b>{m.group(1) if m.group(1) is not None else m.group(2)}</b>", text)

    if not _P_TAG_RE.search(text):
        paragraphs = [" ".join(p.split()) for p in _BLANK_LINE_RE.split(text)]
        text = "".join(f"<p>{p}</p>" for p in paragraphs if p)

    return text


def _strip_edges(tag: Tag) -> None:
    """Trim whitespace from the first and last text nodes of ``tag``."""
    if tag.contents and isinstance(tag.contents[0], NavigableString):
        tag.contents[0].replace_with(tag.contents[0].lstrip())
    if tag.contents and isinstance(tag.contents[-1], NavigableString):
        tag.contents[-1].replace_with(tag.contents[-1].rstrip())


def sanitize_html(html: str) -> str:
    """
    Reduce ``html`` to plain text inside <p>/<b> pairs.

    Script-like containers are removed with their content, every other
    disallowed tag is unwrapped, attributes and comments are dropped, nested
    paragraphs are flattened, and loose top-level text is wrapped in <p>.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    # Comments, CDATA, doctypes, processing instructions
    for node in soup.find_all(string=lambda s: isinstance(s, PreformattedString)):
        node.extract()

    for tag in soup.find_all(list(DROP_WITH_CONTENT)):
        if not tag.decomposed:
            tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            tag.attrs = {}

    for tag in soup.find_all("p"):
        if tag.find_parent(["p", "b"]) is not None:
            tag.unwrap()
    for tag in soup.find_all("b"):
        if tag.find_parent("b") is not None:
            tag.unwrap()

    parts = []
    pending = []

    def flush():
        if not pending:
            return
        wrapper = soup.new_tag("p")
        for node in pending:
            wrapper.append(node.extract())
        _strip_edges(wrapper)
        if wrapper.get_text(strip=True):
            parts.append(str(wrapper))
        pending.clear()

    for node in list(soup.contents):
        if isinstance(node, Tag) and node.name == "p":
            flush()
            if node.get_text(strip=True):
                parts.append(str(node))
        elif isinstance(node, (Tag, NavigableString)):
            pending.append(node)
    flush()

    return "".join(parts)


class SummaryPipeline:
    """Turns a calculation result into a sanitized HTML summary; never raises."""

    def __init__(self, generator, timeout: Optional[float] = None):
        self.generator = generator
        self.timeout = timeout or settings.summary_timeout_seconds

    def summarize(self, result: CalculationResult) -> str:
        """
        Generate a sanitized HTML summary for ``result``.

        Returns:
            HTML restricted to <p>/<b> (possibly empty), or FALLBACK_SUMMARY on failure
        """
        try:
            prompt = build_prompt(result)
            raw = self.generator.generate(prompt, self.timeout)
            if not isinstance(raw, str):
                raise TypeError(f"generator returned {type(raw).__name__}, expected str")
            return sanitize_html(normalize_summary(raw))
        except Exception as e:
            logger.error(f"Failed to generate summary: {type(e).__name__}: {e}")
            return FALLBACK_SUMMARY


# Factory function
def create_summary_pipeline(generator=None) -> SummaryPipeline:
    """Create summary pipeline instance, defaulting to the Ollama generator."""
    if generator is None:
        from services.text_generator import create_text_generator
        generator = create_text_generator()
    return SummaryPipeline(generator)
