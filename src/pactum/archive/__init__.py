"""
Template archives: packaging, signing and verification.
"""

from .packager import ARCHIVE_SUFFIX, archive, default_archive_name, parse_target
from .signing import Keystore, load_keystore, sign_hash, verify_signature
from .verifier import verify, verify_files

__all__ = [
    "ARCHIVE_SUFFIX",
    "Keystore",
    "archive",
    "default_archive_name",
    "load_keystore",
    "parse_target",
    "sign_hash",
    "verify",
    "verify_files",
    "verify_signature",
]
