"""
ID document verification components.
"""

from .base import BaseComponent
from .identifier_extractor import IdentifierExtractor, extract_aadhaar_number, extract_voter_id_number
from .image_comparison import ImageComparator
from .case_manager import CaseManager
from .orchestrator import VerificationOrchestrator, match_identifiers
from .whitelist import WhitelistChecker, WhitelistDecision

__all__ = [
    "BaseComponent",
    "IdentifierExtractor",
    "extract_aadhaar_number",
    "extract_voter_id_number",
    "ImageComparator",
    "CaseManager",
    "VerificationOrchestrator",
    "match_identifiers",
    "WhitelistChecker",
    "WhitelistDecision",
]
