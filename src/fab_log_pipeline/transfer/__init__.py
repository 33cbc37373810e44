"""File transfer collaborators."""

from .http_upload import (
    HttpWaferMapTransfer,
    TransferError,
    WaferMapTransfer,
    derive_api_url,
    reference_address,
)

__all__ = [
    "HttpWaferMapTransfer",
    "TransferError",
    "WaferMapTransfer",
    "derive_api_url",
    "reference_address",
]
