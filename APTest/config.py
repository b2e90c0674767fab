# =============================================================================
# module: config.py
# Purpose: Closed configuration types for covariance policies and test methods
# Key Types/Classes: CovMethod, CovPolicy, TimeSeriesMethod, CrossSectionMethod,
#                    RandomWalkMethod
# Key Functions: normalize_tag
# Dependencies: enum, dataclasses, warnings, typing, .exceptions
# =============================================================================
"""Configuration surface of the package.

String selectors such as ``'NW'`` or ``'GLS Shanken'`` are parsed once into
enums; everything downstream dispatches on the enum members.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union
import warnings

from .exceptions import InvalidConfigurationError


def normalize_tag(value: str) -> str:
    """Lower-case a selector and turn spaces and hyphens into underscores.

    Examples
    --------
    >>> normalize_tag('GLS Shanken')
    'gls_shanken'
    >>> normalize_tag('time-iid')
    'time_iid'
    """
    return '_'.join(str(value).strip().lower().replace('-', ' ').split())


class _TagEnum(Enum):
    """Enum parsable from its value or from a registered alias."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def parse(cls, value: Union[str, '_TagEnum']):
        """
        Return the member matching ``value``.

        Raises
        ------
        InvalidConfigurationError
            If ``value`` matches no member value or alias.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidConfigurationError(
                f"{cls.__name__} must be given as a string or {cls.__name__} member, "
                f"got {type(value).__name__}."
            )
        tag = normalize_tag(value)
        tag = cls._aliases().get(tag, tag)
        for member in cls:
            if member.value == tag:
                return member
        allowed = sorted(m.value for m in cls)
        raise InvalidConfigurationError(
            f"Unknown {cls.__name__} '{value}'. Expected one of {allowed}."
        )


# ----------------------------------------------------------------------------
# Covariance policy
# ----------------------------------------------------------------------------

class CovMethod(_TagEnum):
    """Residual / moment covariance estimation policies."""
    IID = 'iid'
    TIME_IID = 'time_iid'
    NEWEY_WEST = 'newey_west'
    HANSEN_HODRICK = 'hansen_hodrick'

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'nw': 'newey_west', 'hh': 'hansen_hodrick', 'timeiid': 'time_iid'}

    @property
    def uses_lags(self) -> bool:
        return self in (CovMethod.NEWEY_WEST, CovMethod.HANSEN_HODRICK)


@dataclass(frozen=True)
class CovPolicy:
    """
    Covariance estimation policy: a method plus its lag length.

    Parameters
    ----------
    method : CovMethod
        Estimation policy.
    lag : int, default 0
        Number of autocovariance lags for Newey-West and Hansen-Hodrick.
        Ignored (and stored as 0) for the iid policies.

    Raises
    ------
    InvalidConfigurationError
        If ``lag`` is negative or not an integer.

    Examples
    --------
    >>> CovPolicy(CovMethod.NEWEY_WEST, lag=3).weight(1)
    0.75
    >>> CovPolicy.from_config('HH', 2)
    CovPolicy(method=<CovMethod.HANSEN_HODRICK: 'hansen_hodrick'>, lag=2)
    """
    method: CovMethod = CovMethod.TIME_IID
    lag: int = 0

    def __post_init__(self):
        method = CovMethod.parse(self.method)
        object.__setattr__(self, 'method', method)
        if isinstance(self.lag, bool) or not isinstance(self.lag, int):
            raise InvalidConfigurationError(
                f"lag must be a non-negative integer, got {self.lag!r}."
            )
        if self.lag < 0:
            raise InvalidConfigurationError(f"lag must be non-negative, got {self.lag}.")
        if self.lag and not method.uses_lags:
            warnings.warn(
                f"lag={self.lag} is ignored for cov_method '{method.value}'.",
                UserWarning,
                stacklevel=3
            )
            object.__setattr__(self, 'lag', 0)

    @classmethod
    def from_config(cls, cov_method: Union[str, CovMethod] = 'time_iid', lag: int = 0) -> 'CovPolicy':
        """Build a policy from the ``cov_method``/``lag`` configuration pair."""
        return cls(CovMethod.parse(cov_method), lag)

    def weight(self, i: int) -> float:
        """Weight applied to the lag-``i`` autocovariance."""
        if self.method is CovMethod.NEWEY_WEST:
            return 1.0 - i / (self.lag + 1.0)
        return 1.0

    def validate(self, nobs: int) -> None:
        """
        Check the lag against a sample of ``nobs`` periods.

        Raises
        ------
        InvalidConfigurationError
            If ``lag >= nobs - 1`` (the lag normalizer ``1/(T-1-i)`` would vanish).
        """
        if self.lag >= nobs - 1:
            raise InvalidConfigurationError(
                f"lag={self.lag} requires more than {self.lag + 1} periods; got T={nobs}."
            )


# ----------------------------------------------------------------------------
# Test methods
# ----------------------------------------------------------------------------

class TimeSeriesMethod(_TagEnum):
    """Time-series (intercept) test variants."""
    ASYMPTOTIC = 'asymptotic'
    FINITE = 'finite'
    GMM_ASYMPTOTIC = 'gmm_asymptotic'
    GMM_FINITE = 'gmm_finite'

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'grs': 'finite'}


class CrossSectionMethod(_TagEnum):
    """Second-stage cross-sectional estimators."""
    OLS = 'ols'
    GLS = 'gls'
    SHANKEN = 'shanken'
    GLS_SHANKEN = 'gls_shanken'
    GMM = 'gmm'
    GLS_GMM = 'gls_gmm'

    @property
    def is_gmm(self) -> bool:
        return self in (CrossSectionMethod.GMM, CrossSectionMethod.GLS_GMM)


class RandomWalkMethod(_TagEnum):
    """Random-walk tests on price increments."""
    BOX_PIERCE = 'box_pierce'
    LJUNG_BOX = 'ljung_box'
    VARIANCE_RATIO = 'variance_ratio'

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'bp': 'box_pierce', 'lb': 'ljung_box', 'vr': 'variance_ratio'}
