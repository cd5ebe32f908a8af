import logging
from typing import Dict, Iterable

from seofix.repos.firestore_repo import FirestoreRepo
from seofix.schemas.job import IssueCategory, OwnerKey

logger = logging.getLogger(__name__)

SEVERITY_COUNTERS = {
    "error": "errors_count",
    "warning": "warnings_count",
    "info": "info_count",
}


def _matches(issue: Dict, category: IssueCategory) -> bool:
    try:
        return IssueCategory.parse(issue.get("category")) is category
    except ValueError:
        return False


def prune_resolved_items(
    diagnostic: Dict,
    category: IssueCategory,
    resolved_ids: Iterable[str],
) -> Dict:
    """
    Removes resolved items from the issues of one category, drops
    issues left without affected items and recounts severities.

    Returns only the fields to write back.
    """
    resolved = set(resolved_ids)
    issues = []

    for issue in diagnostic.get("issues") or []:
        affected = issue.get("affected_items")

        if affected is not None and _matches(issue, category):
            affected = [i for i in affected if i.get("id") not in resolved]
            issue = {**issue, "affected_items": affected}

        if affected is not None and not affected:
            continue
        issues.append(issue)

    counts = {field: 0 for field in SEVERITY_COUNTERS.values()}
    for issue in issues:
        field = SEVERITY_COUNTERS.get(issue.get("type"))
        if field:
            counts[field] += len(issue.get("affected_items") or [])

    return {
        "issues": issues,
        **counts,
        "total_issues": sum(counts.values()),
    }


def remove_resolved_items(store: FirestoreRepo, owner: OwnerKey, resolved_ids) -> bool:
    """Writes the pruned issue list back. False when there is nothing to update."""
    if not store.enabled():
        return False

    diagnostic = store.get_diagnostic(owner.shopId, owner.diagnosticId)
    if not diagnostic or not isinstance(diagnostic.get("issues"), list):
        return False

    resolved_ids = list(resolved_ids)
    store.save_diagnostic(
        owner.shopId,
        owner.diagnosticId,
        prune_resolved_items(diagnostic, owner.issueType, resolved_ids),
    )
    logger.info(
        "Updated diagnostic %s: removed %d items from %s",
        owner.diagnosticId, len(resolved_ids), owner.issueType.value,
    )
    return True
