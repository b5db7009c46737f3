"""
Verifies the author signature of a template (archive or directory).

The check runs on the raw content files, before anything is parsed, so a
bundle altered after signing is rejected as an invalid signature even when
the altered files would no longer load.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pactum.core.template import Template, compute_content_hash, read_author_signature

from .signing import verify_signature

logger = logging.getLogger(__name__)


def verify_files(files: Mapping[str, bytes], source: str = "<memory>") -> None:
    """
    Recompute the content hash of raw template files and check it against
    ``signature.json``.

    Raises:
        AuthorSignatureError: If the files are unsigned, or their content,
        signature or certificate does not match.
    """
    verify_signature(read_author_signature(files), compute_content_hash(files))
    logger.info("Author signature of %s is valid", source)


def verify(template: Template) -> None:
    """Check the signature of a loaded template (see ``verify_files``)."""
    verify_files(template.files, template.identifier)
