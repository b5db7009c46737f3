"""
Author signature block stored in signed template archives.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AuthorSignature(BaseModel):
    """
    Detached signature over a template's content hash.

    The signed message is ``template_hash + timestamp`` encoded as UTF-8.
    """

    template_hash: str = Field(alias="templateHash")
    timestamp: str
    algorithm: str
    signature: str  # base64
    certificate: str  # PEM

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def signed_message(self) -> bytes:
        return (self.template_hash + self.timestamp).encode("utf-8")
