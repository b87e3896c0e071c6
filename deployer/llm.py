import logging
import re
from typing import Optional, Sequence

from openai import OpenAI

from .errors import GenerationFailure, ProviderFailure
from .settings import Settings

logger = logging.getLogger(__name__)

DOCTYPE_MARKER = "<!doctype html"

# ---------- client ----------
class OpenAITextClient:
    """Single-shot completions against any OpenAI-compatible endpoint (AI Pipe, OpenRouter...)."""

    def __init__(self, cfg: Settings):
        self.api_key = cfg.OPENAI_API_KEY
        self.base_url = cfg.OPENAI_BASE_URL
        self.model = cfg.OPENAI_MODEL
        self.timeout = cfg.OPENAI_TIMEOUT_SECONDS

    def _client(self) -> OpenAI:
        if not self.api_key:
            raise ProviderFailure("OPENAI_API_KEY not set")
        return OpenAI(api_key=self.api_key, base_url=self.base_url or None, timeout=self.timeout)

    def complete(self, prompt: str) -> str:
        client = self._client()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You output one complete HTML document and nothing else."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.15,
            )
        except Exception as e:
            raise ProviderFailure(f"text generation failed: {e}") from e
        return resp.choices[0].message.content or ""

# ---------- prompts ----------
def build_prompt(brief: str, prior_content: Optional[str] = None, checks: Sequence[str] = ()) -> str:
    checks_text = "\n".join(f"- {c}" for c in checks) or "- (none given)"
    if prior_content is None:
        head = "Build a single-page static website as one self-contained index.html file."
        prior = ""
    else:
        head = (
            "Revise the existing index.html below. Keep everything it already does "
            "and apply the new brief on top of it."
        )
        prior = f"\nCurrent index.html:\n{prior_content}\n"
    return f"""{head}

Rules:
- Inline all CSS and JavaScript; external libraries only via CDN links.
- The page must work when served from GitHub Pages.
- Return ONLY the final document, starting with <!DOCTYPE html>.
- No explanations, no markdown, no code fences.

Brief:
{brief}

Checks the page will be evaluated against:
{checks_text}
{prior}"""

# ---------- generation ----------
_FENCE_RE = re.compile(r"^\s*```[\w-]*\s*\n([\s\S]*?)\n?```\s*$")

def _strip_fences(text: str) -> str:
    m = _FENCE_RE.match(text)
    return m.group(1) if m else text

def validate_document(text: str) -> str:
    doc = _strip_fences(text or "").strip()
    if not doc:
        raise GenerationFailure("model returned an empty document")
    if not doc.lower().startswith(DOCTYPE_MARKER):
        raise GenerationFailure(f"model output is not an HTML document: {doc[:60]!r}")
    return doc + "\n"


class ContentGenerator:
    def __init__(self, text_client):
        self.text_client = text_client

    def generate(self, brief: str, prior_content: Optional[str] = None, checks: Sequence[str] = ()) -> str:
        prompt = build_prompt(brief, prior_content=prior_content, checks=checks)
        mode = "revise" if prior_content is not None else "create"
        logger.info("generating page (%s, prompt %d chars)", mode, len(prompt))
        return validate_document(self.text_client.complete(prompt))
