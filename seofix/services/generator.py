from functools import lru_cache
from typing import Optional, Sequence

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from seofix import config

# Alt text longer than this is cut by most screen readers
MAX_ALT_TEXT_CHARS = 125


@lru_cache(maxsize=1)
def get_llm() -> ChatOpenAI:
    if not config.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY is required for AI generation")

    return ChatOpenAI(
        model=config.OPENAI_MODEL,
        temperature=0.4,
        api_key=config.OPENAI_API_KEY,
    )


# -------------------------
# Prompts
# -------------------------
ALT_TEXT_PROMPT = ChatPromptTemplate.from_messages([
    (
        "system",
        "You write image alt text for e-commerce product pages. "
        "Describe what the image most likely shows in one short sentence, "
        "mention the product name, and never start with 'Image of'."
    ),
    (
        "user",
        "PRODUCT: {name}\n"
        "IMAGE POSITION: {position}\n"
        "IMAGE URL: {url}\n"
        "PRODUCT DESCRIPTION:\n{description}\n\n"
        "Return ONLY the alt text."
    ),
])

DESCRIPTION_PROMPT = ChatPromptTemplate.from_messages([
    (
        "system",
        "You are an e-commerce copywriter. Write SEO-friendly, factual "
        "descriptions in Markdown with a short intro, a '## Key features' "
        "bullet list and a closing paragraph. Do not invent specifications."
    ),
    (
        "user",
        "NAME: {name}\n"
        "CATEGORY: {category}\n"
        "PRICE: {price}\n"
        "CURRENT DESCRIPTION:\n{description}\n\n"
        "Write a description of about 150 words."
    ),
])


def _complete(prompt: ChatPromptTemplate, **values) -> str:
    return get_llm().invoke(prompt.format_messages(**values)).content.strip()


# -------------------------
# Generators
# -------------------------
def generate_alt_text(
    *,
    name: str,
    position: int,
    url: Optional[str] = None,
    description: str = "",
) -> str:
    text = _complete(
        ALT_TEXT_PROMPT,
        name=name,
        position=str(position),
        url=url or "unknown",
        description=description[:2_000] or "(none)",
    )
    # Models sometimes wrap the answer in quotes
    return text.strip('"\' ')[:MAX_ALT_TEXT_CHARS]


def generate_description(
    *,
    name: str,
    description: str = "",
    price=None,
    categories: Sequence[str] = (),
) -> str:
    return _complete(
        DESCRIPTION_PROMPT,
        name=name,
        category=", ".join(categories) or "(none)",
        price=str(price) if price not in (None, "") else "(not listed)",
        description=description[:4_000] or "(none)",
    )
