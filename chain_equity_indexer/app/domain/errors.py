from __future__ import annotations


class IndexerError(Exception):
    """Base class for indexer errors."""


class ChainConnectionError(IndexerError):
    """The configured chain endpoint is unreachable or serves another chain."""


class DeploymentConfigError(IndexerError):
    """Contract addresses could not be resolved from configuration."""


class CatchUpError(IndexerError):
    """
    Catch-up at startup failed. The indexer is not healthy and the host
    process is expected to exit non-zero.
    """
