"""
Public API types for the ArticleAccess pipeline.

Re-exports the immutable records and the exception taxonomy shared by every
stage.
"""

from .exceptions import (
    ArticleAccessError,
    ArticleNotFound,
    AuthRequired,
    ContentFetchFailed,
    DecryptionDenied,
    MetadataFetchFailed,
    UnknownFailure,
    WalletRequired,
)
from .types import (
    CREDENTIAL_BRANCHES,
    ArticleMetadata,
    ContributorCredential,
    Credential,
    CredentialBranch,
    CredentialSet,
    ErrorKind,
    NftCredential,
    OwnerCredential,
    PipelineState,
    Stage,
    SubscriptionCredential,
)

__all__ = [
    # Types
    "ArticleMetadata",
    "CREDENTIAL_BRANCHES",
    "ContributorCredential",
    "Credential",
    "CredentialBranch",
    "CredentialSet",
    "ErrorKind",
    "NftCredential",
    "OwnerCredential",
    "PipelineState",
    "Stage",
    "SubscriptionCredential",
    # Exceptions
    "ArticleAccessError",
    "ArticleNotFound",
    "AuthRequired",
    "ContentFetchFailed",
    "DecryptionDenied",
    "MetadataFetchFailed",
    "UnknownFailure",
    "WalletRequired",
]
