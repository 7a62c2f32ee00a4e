import json
import random
import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .errors import FetchError
from .text_utils import strip_code_fences

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

ERROR_TOKEN = "__ERROR__"


def _build_associations_prompt(word: str) -> dict:
    system = (
        "You are powering a word association puzzle. "
        "Always return STRICT JSON only (no markdown, no code fences, no prose)."
    )
    user = (
        f'Give me 5-10 common word associations for "{word}" that most people would naturally think of.\n\n'
        "Return a JSON array with EXACTLY this format:\n"
        "[\n"
        '  {"word": "association1", "hint": "brief explanation"},\n'
        '  {"word": "association2", "hint": "brief explanation"}\n'
        "]\n\n"
        "Important formatting rules:\n"
        "1. Use double quotes for all strings\n"
        "2. No trailing commas\n"
        "3. No comments or explanation text\n"
        '4. ALWAYS use singular forms for words (e.g., "balloon" instead of "balloons")\n'
        "5. Single words only, no phrases\n\n"
        f'If you cannot come up with at least 3 good word associations, include "{ERROR_TOKEN}" as one of the words.\n\n'
        "Ensure associations are intuitive and would be recognized by most adults."
    )
    return {
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "temperature": 0.7,
        "max_tokens": 400,
    }


def _build_theme_prompt(start_word: str, target_word: str) -> dict:
    user = (
        f'I\'m creating a word association puzzle starting with "{start_word}" and ending with "{target_word}".\n\n'
        "Create an interesting theme that connects these words and provides context for the puzzle.\n\n"
        "Return ONLY a JSON object with this format:\n"
        "{\n"
        '  "theme": "Short theme name, 2-4 words maximum",\n'
        '  "description": "Brief description of the theme (10-15 words max)",\n'
        '  "difficulty": "medium|hard|expert"\n'
        "}\n\n"
        "Themes should be conceptual frameworks that give players a hint about the connection between "
        f'"{start_word}" and "{target_word}".'
    )
    return {
        "messages": [
            {"role": "system", "content": "Respond with STRICT JSON only. No markdown, no prose."},
            {"role": "user", "content": user},
        ],
        "temperature": 0.7,
        "max_tokens": 150,
    }


def _build_hint_prompt(context) -> dict:
    lines = [
        f'In a word association puzzle, the player is trying to go from "{context.start_word}" '
        f'to "{context.target_word}".',
        f"Their current path is: {' -> '.join(context.progress)}.",
        "",
        f"The puzzle theme is: {context.theme}",
        f"The difficulty is: {context.difficulty}",
        f"The minimum expected steps is: {context.min_expected_steps}",
    ]
    if context.next_step:
        lines.append(f'One possible next step from here could be "{context.next_step}", '
                     "but don't reveal this directly.")
    if context.starting_out:
        lines.append("The player is just starting, so help them understand the multi-step nature of the puzzle.")
    if context.close:
        lines.append("The player seems close to the target word. Give them an encouraging hint "
                     "without giving away the final connection.")
    lines += [
        "",
        "Without giving away the direct solution, provide a subtle hint that helps them move forward.",
        "The hint should:",
        "1. Be enigmatic but helpful",
        "2. Not reveal the exact next word",
        "3. Suggest a thinking direction or pattern",
        f"4. Encourage multi-step thinking (this puzzle requires at least {context.min_expected_steps} steps)",
        "5. Be 1-2 short sentences maximum",
        "",
        "Return ONLY the hint with no additional explanation or formatting.",
    ]
    return {
        "messages": [{"role": "user", "content": "\n".join(lines)}],
        "temperature": 0.7,
        "max_tokens": 150,
    }


class OpenRouterOracle:
    """Asks an OpenRouter-hosted model for associations, theme labels and hints.

    Returns decoded JSON (hints are plain text); validation belongs to the adapter.
    Transport errors, non-2xx replies after retries and undecodable content
    are raised as FetchError.
    """

    def __init__(self, api_key: Optional[str], primary_model: str, fallback_model: Optional[str] = None,
                 referer: str = "https://example.com", title: str = "WordLink Puzzle Generator",
                 timeout_s: float = 30.0, max_retries: int = 3, base_delay: float = 1.0,
                 max_delay: float = 10.0, cooldown_429: float = 8.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.cooldown_429 = cooldown_429
        self.headers = {
            "Authorization": f"Bearer {api_key}" if api_key else "",
            "HTTP-Referer": referer,
            "X-Title": title,
            "Content-Type": "application/json",
        }
        self._client = client
        self._owns_client = client is None
        self._timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings) -> "OpenRouterOracle":
        return cls(
            api_key=settings.openrouter_api_key,
            primary_model=settings.primary_model,
            fallback_model=settings.fallback_model,
            referer=settings.openrouter_referer,
            title=settings.openrouter_title,
            timeout_s=settings.request_timeout_s,
            max_retries=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_s,
            max_delay=settings.retry_max_delay_s,
            cooldown_429=settings.cooldown_429_s,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post(self, model: str, body: dict) -> httpx.Response:
        payload = dict(body, model=model)
        response = await self.client.post(OPENROUTER_URL, headers=self.headers, json=payload)
        if response.status_code == 429:
            logger.warning(f"OpenRouter rate limited model {model}; cooling down {self.cooldown_429:.1f}s")
            await asyncio.sleep(self.cooldown_429)
        response.raise_for_status()
        return response

    async def _complete(self, body: dict, word: str) -> str:
        """Chat completion with retries, exponential backoff and jitter, then the fallback model."""
        if not self.api_key:
            raise FetchError(word, "OPENROUTER_API_KEY not set")
        models = [self.primary_model]
        if self.fallback_model and self.fallback_model != self.primary_model:
            models.append(self.fallback_model)
        last_error: Optional[Exception] = None
        for label, model in zip(("primary", "fallback"), models):
            for attempt in range(self.max_retries):
                try:
                    response = await self._post(model, body)
                    data = response.json()
                    return data["choices"][0]["message"]["content"]
                except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                    last_error = e
                    if attempt + 1 >= self.max_retries:
                        logger.warning(f"API request failed ({label}, attempt {attempt+1}/{self.max_retries}): {e}")
                        break
                    wait = min(self.max_delay, self.base_delay * (2 ** attempt) + random.uniform(0, self.base_delay))
                    logger.warning(
                        f"API request failed ({label}, attempt {attempt+1}/{self.max_retries}): {e}. "
                        f"Retrying in {wait:.1f}s..."
                    )
                    await asyncio.sleep(wait)
        raise FetchError(word, f"API request failed after multiple retries: {last_error}")

    @staticmethod
    def _decode(content: str, word: str):
        try:
            return json.loads(strip_code_fences(content))
        except (TypeError, ValueError) as e:
            logger.error(f"Could not parse oracle response for '{word}': {content!r}")
            raise FetchError(word, f"Oracle returned invalid JSON for \"{word}\": {e}") from e

    async def generate_associations(self, word: str) -> List[Dict]:
        content = await self._complete(_build_associations_prompt(word), word)
        return self._decode(content, word)

    async def generate_theme_label(self, start_word: str, target_word: str) -> Dict:
        label = f"{start_word}->{target_word}"
        content = await self._complete(_build_theme_prompt(start_word, target_word), label)
        return self._decode(content, label)

    async def generate_hint(self, context) -> str:
        content = await self._complete(_build_hint_prompt(context), f"hint:{context.current_word}")
        return (content or "").strip()
