"""
Document store contract.

The core only ever holds opaque document ids; this service answers whether
they exist. Documents live on the local filesystem under DOCUMENT_STORAGE_DIR,
one file per id. Swap this class for a remote store without changing callers.
"""

import logging
import os
from typing import Iterable, List

from scholarships.config import settings

logger = logging.getLogger(__name__)


class DocumentService:
    """Existence checks against the document storage directory."""

    def __init__(self, storage_dir: str = None):
        self.storage_dir = storage_dir or settings.DOCUMENT_STORAGE_DIR

    def _path_for(self, document_id: str) -> str:
        # Ids are opaque; never let one escape the storage directory
        safe_id = os.path.basename(str(document_id))
        return os.path.join(self.storage_dir, safe_id)

    def missing(self, document_ids: Iterable[str]) -> List[str]:
        """Ids with no stored document."""
        return [doc_id for doc_id in document_ids if not os.path.isfile(self._path_for(doc_id))]

    async def documents_exist(self, document_ids: Iterable[str]) -> bool:
        """True when every id refers to a stored document."""
        ids = list(document_ids)
        missing = self.missing(ids)
        if missing:
            logger.info(f"Missing documents: {missing}")
        return not missing
