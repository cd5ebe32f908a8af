from seofix.schemas.job import IssueCategory, OwnerKey
from seofix.services.diagnostics import prune_resolved_items, remove_resolved_items

from conftest import FakeStore

DIAGNOSTIC = {
    "issues": [
        {
            "category": "Images",
            "type": "error",
            "affected_items": [{"id": "A"}, {"id": "B"}, {"id": "C"}],
        },
        {
            "category": "Images",
            "type": "warning",
            "affected_items": [{"id": "A"}],
        },
        {
            "category": "SEO",
            "type": "warning",
            "affected_items": [{"id": "A"}, {"id": "D"}],
        },
        {"category": "Performance", "type": "info", "title": "Slow theme"},
    ],
}


def test_prune_removes_only_matching_category():
    pruned = prune_resolved_items(DIAGNOSTIC, IssueCategory.images, ["A", "B"])

    issues = pruned["issues"]
    assert [i["category"] for i in issues] == ["Images", "SEO", "Performance"]
    assert issues[0]["affected_items"] == [{"id": "C"}]
    assert issues[1]["affected_items"] == [{"id": "A"}, {"id": "D"}]


def test_prune_recounts_severities():
    pruned = prune_resolved_items(DIAGNOSTIC, IssueCategory.images, ["A", "B"])

    assert pruned["errors_count"] == 1
    assert pruned["warnings_count"] == 2
    assert pruned["info_count"] == 0
    assert pruned["total_issues"] == 3


def test_prune_does_not_mutate_input():
    prune_resolved_items(DIAGNOSTIC, IssueCategory.images, ["A", "B", "C"])
    assert len(DIAGNOSTIC["issues"][0]["affected_items"]) == 3


def test_remove_resolved_items_writes_back():
    store = FakeStore(diagnostics={"D1": {"issues": [dict(i) for i in DIAGNOSTIC["issues"]]}})
    owner = OwnerKey(shopId="S1", diagnosticId="D1", issueType="SEO")

    assert remove_resolved_items(store, owner, ["D"]) is True
    seo = [i for i in store.diagnostics["D1"]["issues"] if i["category"] == "SEO"][0]
    assert seo["affected_items"] == [{"id": "A"}]


def test_remove_resolved_items_without_diagnostic():
    owner = OwnerKey(shopId="S1", diagnosticId="missing", issueType="SEO")

    assert remove_resolved_items(FakeStore(), owner, ["A"]) is False
    assert remove_resolved_items(FakeStore(enabled=False), owner, ["A"]) is False
