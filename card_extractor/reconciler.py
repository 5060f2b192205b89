"""
Merges the local heuristic parse with the AI extraction.
"""

import logging
from dataclasses import replace
from typing import Dict, Optional

from .models import TEXT_FIELDS, ExtractedCardFields, ParseSource

logger = logging.getLogger(__name__)

# Confidence added for each of these fields on which both sources agree
AGREEMENT_FIELDS = ("name", "company")
AGREEMENT_BONUS = 0.05


class ResultReconciler:
    """Combines two partially populated card records into one."""

    def enhance(self, local: ExtractedCardFields, remote: ExtractedCardFields) -> ExtractedCardFields:
        """
        Merge field by field; the remote value wins whenever it is non-empty.

        A field found by either source is never dropped. The merged confidence
        is at least the higher of the two inputs and at most 1.0.

        Args:
            local: Record from the heuristic parser
            remote: Record from the AI extractor

        Returns:
            Merged record, source AI if the remote contributed any field
        """
        merged: Dict[str, Optional[str]] = {}
        remote_contributed = False

        for name in TEXT_FIELDS:
            remote_value = getattr(remote, name)
            if remote_value:
                merged[name] = remote_value
                remote_contributed = True
            else:
                merged[name] = getattr(local, name)

        agreements = sum(
            1 for name in AGREEMENT_FIELDS
            if _same_value(getattr(local, name), getattr(remote, name))
        )
        confidence = min(1.0, max(local.confidence, remote.confidence) + AGREEMENT_BONUS * agreements)
        source = ParseSource.AI if remote_contributed else ParseSource.LOCAL

        logger.debug(
            f"Merged records: {len(local.populated_fields())} local / "
            f"{len(remote.populated_fields())} remote fields, "
            f"{agreements} agreements, confidence {confidence:.2f}"
        )
        return ExtractedCardFields(confidence=confidence, source=source, **merged)

    def passthrough(self, record: ExtractedCardFields) -> ExtractedCardFields:
        """Return a copy of the only available record, unchanged."""
        return replace(record)


def _same_value(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return " ".join(a.split()).casefold() == " ".join(b.split()).casefold()
