# seofix/repos/firestore_repo.py
import logging
from typing import Dict, Optional

from google.auth.exceptions import DefaultCredentialsError
from google.cloud import firestore

from seofix import config

logger = logging.getLogger(__name__)

# Item type -> sub-collection under shops/{shopId}
ITEM_COLLECTIONS = {
    "product": "products",
    "collection": "collections",
    "blog": "blog_posts",
}


class FirestoreRepo:
    """
    Content store for shop items and their SEO diagnostics.

    Layout:
    - shops/{shopId}/{products|collections|blog_posts}/{itemId}
    - shops/{shopId}/seo_diagnostics/{diagnosticId}
    """

    def __init__(self, client=None):
        self._db = client
        if client is not None:
            return

        project = config.FIRESTORE_PROJECT
        if not project:
            logger.info("Firestore disabled: FIRESTORE_PROJECT not set")
            return

        try:
            self._db = firestore.Client(project=project)
        except DefaultCredentialsError as e:
            logger.warning("Firestore disabled due to missing credentials: %s", e)
            self._db = None

    def enabled(self) -> bool:
        return self._db is not None

    def _shop(self, shopId: str):
        return self._db.collection("shops").document(shopId)

    # ---------------------------------------------------
    # Items
    # ---------------------------------------------------
    def get_item(self, shopId: str, itemType: str, itemId: str) -> Optional[Dict]:
        if not self._db:
            return None

        doc = (
            self._shop(shopId)
            .collection(ITEM_COLLECTIONS[itemType])
            .document(itemId)
            .get()
        )
        return doc.to_dict() if doc.exists else None

    def update_item(self, shopId: str, itemType: str, itemId: str, fields: Dict):
        if not self._db:
            return

        self._shop(shopId) \
            .collection(ITEM_COLLECTIONS[itemType]) \
            .document(itemId) \
            .update({**fields, "updated_at": firestore.SERVER_TIMESTAMP})

    # ---------------------------------------------------
    # Diagnostics
    # ---------------------------------------------------
    def get_diagnostic(self, shopId: str, diagnosticId: str) -> Optional[Dict]:
        if not self._db:
            return None

        doc = self._shop(shopId).collection("seo_diagnostics").document(diagnosticId).get()
        return doc.to_dict() if doc.exists else None

    def save_diagnostic(self, shopId: str, diagnosticId: str, data: Dict):
        if not self._db:
            return

        self._shop(shopId) \
            .collection("seo_diagnostics") \
            .document(diagnosticId) \
            .set({**data, "updated_at": firestore.SERVER_TIMESTAMP}, merge=True)
