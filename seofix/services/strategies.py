"""
Item resolution strategies, one per issue category.

A strategy takes one affected item and returns an ItemOutcome. resolve()
never raises: anything thrown while fixing an item becomes a failure
outcome so the worker can carry on with the batch.
"""

import logging
import re
from typing import Dict, Optional, Type

from seofix import config
from seofix.errors import ContentStoreUnavailable
from seofix.repos.firestore_repo import FirestoreRepo
from seofix.schemas.job import AffectedItem, IssueCategory, ItemOutcome
from seofix.services import generator
from seofix.services.html_extractor import extract_text, has_headings

logger = logging.getLogger(__name__)

META_MIN_CHARS = 50
META_MAX_CHARS = 160
MIN_DESCRIPTION_CHARS = 300


# -------------------------
# Helpers
# -------------------------
def _category_name(category) -> str:
    if isinstance(category, dict):
        return str(category.get("name") or "").strip()
    return str(category or "").strip()


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def build_meta_description(name: str, description: str = "", categories=()) -> str:
    meta = f"Discover {name}"

    category = _category_name(categories[0]) if categories else ""
    if category:
        meta += f" - {category}"

    text = extract_text(description)
    if len(text) > META_MIN_CHARS:
        meta += f". {text[:80].rstrip()}..."

    meta += " Fast delivery and satisfaction guaranteed."
    return meta[:META_MAX_CHARS]


def add_structure(description: str, name: str) -> str:
    paragraphs = [p.strip() for p in description.split("\n") if p.strip()]

    if len(paragraphs) <= 1:
        return (
            f"## {name}\n\n{description.strip()}\n\n"
            "### Highlights\n"
            "- Premium quality\n"
            "- Satisfaction guaranteed\n"
            "- Dedicated customer support\n"
        )

    lines = [f"## {name}", "", paragraphs[0], "", "### Details"]
    lines.extend(f"- {p}" for p in paragraphs[1:])
    return "\n".join(lines) + "\n"


def collection_link(category_name: str) -> str:
    return f"/collections/{slugify(category_name)}"


def add_internal_links(description: str, category_name: str) -> str:
    slug = slugify(category_name)
    return (
        f"{description.rstrip()}\n\n"
        "### See also\n"
        f"Browse our [{category_name} collection]({collection_link(category_name)}) "
        "for similar products.\n"
        f"For usage tips, read our [buying guide](/guides/{slug}).\n"
    )


# -------------------------
# Strategies
# -------------------------
class ResolutionStrategy:
    category: IssueCategory
    supported_types = frozenset({"product"})

    # Pause the worker inserts between two items; non-zero for
    # strategies that call a rate-limited API
    item_delay_seconds = 0.0

    def __init__(self, shopId: str, store: FirestoreRepo):
        self.shopId = shopId
        self.store = store

    def resolve(self, item: AffectedItem) -> ItemOutcome:
        if item.type not in self.supported_types:
            return ItemOutcome.skipped(
                f"{item.type} items are not supported for {self.category.value}"
            )

        try:
            doc = self.store.get_item(self.shopId, item.type, item.id)
            if doc is None:
                return ItemOutcome.skipped("Item no longer exists")
            return self._apply(item, doc)
        except Exception as e:
            logger.warning("Resolving %s %s failed: %s", item.type, item.id, e)
            return ItemOutcome.failure(str(e) or e.__class__.__name__)

    def _apply(self, item: AffectedItem, doc: Dict) -> ItemOutcome:
        raise NotImplementedError

    def _update(self, item: AffectedItem, fields: Dict):
        self.store.update_item(self.shopId, item.type, item.id, fields)

    @staticmethod
    def _name(item: AffectedItem, doc: Dict) -> str:
        return doc.get("name") or doc.get("title") or item.label

    @staticmethod
    def _body_field(item: AffectedItem) -> str:
        return "content" if item.type == "blog" else "description"


class ImagesStrategy(ResolutionStrategy):
    category = IssueCategory.images
    item_delay_seconds = config.AI_ITEM_DELAY_SECONDS

    def _apply(self, item, doc):
        images = [dict(img) for img in doc.get("images") or []]
        if not images:
            return ItemOutcome.skipped("No images")

        missing = [i for i, img in enumerate(images) if not str(img.get("alt") or "").strip()]
        if not missing:
            return ItemOutcome.skipped("All images already have alt text")

        name = self._name(item, doc)
        context = extract_text(doc.get("description") or "")

        for index in missing:
            alt = generator.generate_alt_text(
                name=name,
                position=index + 1,
                url=images[index].get("src") or images[index].get("url"),
                description=context,
            )
            if not alt:
                return ItemOutcome.failure(f"No alt text generated for image {index + 1}")
            images[index]["alt"] = alt

        self._update(item, {"images": images})
        return ItemOutcome.success()


class ContentStrategy(ResolutionStrategy):
    category = IssueCategory.content
    supported_types = frozenset({"product", "collection"})
    item_delay_seconds = config.AI_ITEM_DELAY_SECONDS

    def _apply(self, item, doc):
        current = doc.get("description") or ""
        if len(extract_text(current)) >= MIN_DESCRIPTION_CHARS:
            return ItemOutcome.skipped("Description is already long enough")

        categories = [_category_name(c) for c in doc.get("categories") or []]
        text = generator.generate_description(
            name=self._name(item, doc),
            description=extract_text(current),
            price=doc.get("price"),
            categories=[c for c in categories if c],
        )
        if not text:
            return ItemOutcome.failure("No content generated")

        self._update(item, {"description": text})
        return ItemOutcome.success()


class SeoMetadataStrategy(ResolutionStrategy):
    category = IssueCategory.seo
    supported_types = frozenset({"product", "collection", "blog"})

    def _apply(self, item, doc):
        current = str(doc.get("meta_description") or "").strip()
        if META_MIN_CHARS <= len(current) <= META_MAX_CHARS:
            return ItemOutcome.skipped("Meta description already set")

        meta = build_meta_description(
            self._name(item, doc),
            doc.get(self._body_field(item)) or "",
            doc.get("categories") or [],
        )
        self._update(item, {"meta_description": meta})
        return ItemOutcome.success()


class StructureStrategy(ResolutionStrategy):
    category = IssueCategory.structure
    supported_types = frozenset({"product", "collection", "blog"})

    def _apply(self, item, doc):
        field = self._body_field(item)
        body = doc.get(field) or ""
        if not body.strip():
            return ItemOutcome.skipped(f"No {field} to structure")
        if has_headings(body):
            return ItemOutcome.skipped(f"{field.capitalize()} already has headings")

        self._update(item, {field: add_structure(body, self._name(item, doc))})
        return ItemOutcome.success()


class InternalLinkingStrategy(ResolutionStrategy):
    category = IssueCategory.internal_linking

    def _apply(self, item, doc):
        description = doc.get("description") or ""
        if not description.strip():
            return ItemOutcome.skipped("No description to add links to")

        categories = doc.get("categories") or []
        category = _category_name(categories[0]) if categories else ""
        if not category:
            return ItemOutcome.skipped("No category to link to")

        if collection_link(category) in description:
            return ItemOutcome.skipped("Internal links already present")

        self._update(item, {"description": add_internal_links(description, category)})
        return ItemOutcome.success()


STRATEGIES: Dict[IssueCategory, Type[ResolutionStrategy]] = {
    strategy.category: strategy
    for strategy in (
        ImagesStrategy,
        ContentStrategy,
        SeoMetadataStrategy,
        StructureStrategy,
        InternalLinkingStrategy,
    )
}


def build_strategy(
    category: IssueCategory,
    shopId: str,
    store: Optional[FirestoreRepo] = None,
) -> ResolutionStrategy:
    if store is None:
        store = FirestoreRepo()

    if not store.enabled():
        raise ContentStoreUnavailable("Content store is not configured (FIRESTORE_PROJECT)")

    return STRATEGIES[IssueCategory.parse(category)](shopId, store)
