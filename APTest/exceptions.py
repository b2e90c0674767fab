# =============================================================================
# module: exceptions.py
# Purpose: Error taxonomy shared by the asset pricing testers
# Key Types/Classes: AssetPricingError, DimensionMismatchError, SingularDesignError,
#                    SingularCovarianceError, SingularMomentSystemError,
#                    InvalidConfigurationError, InsufficientDegreesOfFreedomError,
#                    IllConditionedWarning
# Dependencies: None
# =============================================================================
"""Exceptions raised by the asset pricing testers.

Every error is raised as soon as it is detected and propagated to the caller.
The computations are deterministic, so nothing is retried.
"""


class AssetPricingError(Exception):
    """Base class for all errors raised by APTest."""


class DimensionMismatchError(AssetPricingError, ValueError):
    """Return and factor panels disagree on the number of periods, or a panel
    is not one- or two-dimensional."""


class SingularDesignError(AssetPricingError):
    """First-stage normal equations ``X'X`` cannot be solved (collinear
    factors, or too few periods for the number of factors)."""


class SingularCovarianceError(AssetPricingError):
    """Residual covariance matrix is not positive definite where its inverse
    is required (GLS weighting)."""


class SingularMomentSystemError(AssetPricingError):
    """GMM Jacobian/weighting product ``A·D`` is not invertible."""


class InvalidConfigurationError(AssetPricingError, ValueError):
    """Unknown covariance policy or test method, or an invalid lag."""


class InsufficientDegreesOfFreedomError(AssetPricingError):
    """Too few periods (or assets) for the requested test."""


class IllConditionedWarning(UserWarning):
    """Matrix is invertible but badly conditioned; results may be imprecise."""
