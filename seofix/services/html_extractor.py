from bs4 import BeautifulSoup
import re

MARKDOWN_HEADING = re.compile(r"^\s{0,3}#{1,6}\s", re.MULTILINE)


def extract_text(html: str) -> str:
    """Plain text of an HTML (or plain) description."""
    if not html or not html.strip():
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "noscript", "iframe", "svg"]):
        tag.decompose()

    return clean_text(soup.get_text(" ", strip=True))


def has_headings(body: str) -> bool:
    """True when the body already carries Markdown or HTML section headings."""
    if not body:
        return False

    if MARKDOWN_HEADING.search(body):
        return True

    soup = BeautifulSoup(body, "html.parser")
    return soup.find(["h2", "h3", "h4"]) is not None


def clean_text(text: str) -> str:
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()
