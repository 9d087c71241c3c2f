"""Historical annual returns used by bootstrap sampling.

A :class:`HistoricalDataset` is a read-only table with one row per historical
year: the return of every asset class that year plus, optionally, that
year's inflation.  Loaders accept the column names of the commonly used
"returns by year" tables (``S&P 500 (includes dividends)``, ``3-month
T.Bill``, ...) and map them onto the engine's asset-class keys.  Values may
be decimal fractions (``0.0512``) or percent strings (``"5.12%"``).

The bundled ``us_returns_by_year.csv`` is an approximated US series
(1928-2024) suitable for planning and regression checks, not a certified
data source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .config import asset_class_default
from .errors import HistoricalDataError

logger = logging.getLogger(__name__)

DEFAULT_DATASET = "us_returns_by_year.csv"

COLUMN_ALIASES = {
    "s&p 500 (includes dividends)": "stocks",
    "us small cap (bottom decile)": "small_cap",
    "3-month t.bill": "cash",
    "us t. bond (10-year)": "bonds",
    "baa corporate bond": "corporate_bonds",
    "real estate": "real_estate",
    "gold*": "precious_metals",
    "gold": "precious_metals",
    "bitcoin": "crypto",
    "cpi": "inflation",
}


def _parse_percent(value) -> float:
    if value is None:
        return float("nan")
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return float("nan")
        if text.endswith("%"):
            return float(text[:-1]) / 100.0
        return float(text)
    return float(value)


def _normalise_column(name: str) -> str:
    key = str(name).strip().lower()
    if key in COLUMN_ALIASES:
        return COLUMN_ALIASES[key]
    return key.replace(" ", "_").replace("-", "_")


@dataclass(frozen=True)
class ReturnSummary:
    mean: float
    median: float
    standard_deviation: float
    min: float
    max: float


@dataclass
class HistoricalDataset:
    """Per-year asset-class returns and optional inflation.

    ``returns`` maps an asset-class key to an array aligned with ``years``;
    missing observations are ``NaN``.  ``inflation`` is aligned the same way
    or ``None`` when the source carried no inflation column.
    """

    years: np.ndarray
    returns: Dict[str, np.ndarray]
    inflation: Optional[np.ndarray] = None
    description: str = ""
    _filled: Dict[str, np.ndarray] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.years = np.asarray(self.years, dtype=int)
        n = len(self.years)
        cleaned: Dict[str, np.ndarray] = {}
        for cls, series in self.returns.items():
            arr = np.asarray(series, dtype=float)
            if arr.shape != (n,):
                raise HistoricalDataError(
                    f"Series '{cls}' has {arr.size} values for {n} historical years"
                )
            if np.isnan(arr).all():
                logger.warning("Dropping asset class '%s': no historical observations", cls)
                continue
            if np.isnan(arr).any():
                logger.warning(
                    "Asset class '%s' is missing %d of %d years; gaps use its historical mean",
                    cls, int(np.isnan(arr).sum()), n,
                )
            cleaned[cls] = arr
        self.returns = cleaned
        if self.inflation is not None:
            infl = np.asarray(self.inflation, dtype=float)
            if infl.shape != (n,):
                raise HistoricalDataError(
                    f"Inflation series has {infl.size} values for {n} historical years"
                )
            if np.isnan(infl).all():
                infl = None
            elif np.isnan(infl).any():
                infl = np.where(np.isnan(infl), np.nanmean(infl), infl)
            self.inflation = infl

    def __len__(self) -> int:
        return len(self.years)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0 or not self.returns

    @property
    def asset_classes(self) -> List[str]:
        return sorted(self.returns)

    @property
    def start_year(self) -> int:
        return int(self.years.min())

    @property
    def end_year(self) -> int:
        return int(self.years.max())

    def returns_for(self, asset_class: str) -> np.ndarray:
        """Gap-filled return series for ``asset_class`` (empty if unknown)."""
        if asset_class not in self.returns:
            return np.array([], dtype=float)
        if asset_class not in self._filled:
            arr = self.returns[asset_class]
            self._filled[asset_class] = np.where(np.isnan(arr), np.nanmean(arr), arr)
        return self._filled[asset_class]

    def mean_return(self, asset_class: str) -> Optional[float]:
        if asset_class not in self.returns:
            return None
        return float(np.nanmean(self.returns[asset_class]))

    def summary(self, asset_class: str) -> Optional[ReturnSummary]:
        if asset_class not in self.returns:
            return None
        arr = self.returns[asset_class]
        arr = arr[~np.isnan(arr)]
        return ReturnSummary(
            mean=float(arr.mean()),
            median=float(np.median(arr)),
            standard_deviation=float(arr.std()),
            min=float(arr.min()),
            max=float(arr.max()),
        )

    def portfolio_returns(
        self,
        weights: Mapping[str, float],
        fallback_returns: Optional[Mapping[str, float]] = None,
    ) -> np.ndarray:
        """Blended portfolio return for every historical year.

        Classes the dataset does not cover contribute a constant: the
        ``fallback_returns`` entry for that class, else its default return.
        """
        fallback_returns = fallback_returns or {}
        blended = np.zeros(len(self), dtype=float)
        for cls, weight in weights.items():
            if weight == 0:
                continue
            if cls in self.returns:
                blended += weight * self.returns_for(cls)
            else:
                blended += weight * fallback_returns.get(cls, asset_class_default(cls, "mean_return"))
        return blended

    # ------------------------------------------------------------------
    # loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        year_column: str = "year",
        inflation_column: str = "inflation",
        description: str = "",
    ) -> "HistoricalDataset":
        if frame is None or frame.empty:
            raise HistoricalDataError("Historical dataset is empty")

        frame = frame.rename(columns=_normalise_column)
        year_column = _normalise_column(year_column)
        inflation_column = _normalise_column(inflation_column)
        if year_column not in frame.columns:
            raise HistoricalDataError(f"Historical dataset has no '{year_column}' column")

        try:
            frame = frame.assign(**{year_column: frame[year_column].astype(int)})
            frame = frame.sort_values(year_column).reset_index(drop=True)
            parsed = {
                col: np.array([_parse_percent(v) for v in frame[col]], dtype=float)
                for col in frame.columns
                if col != year_column
            }
        except (TypeError, ValueError) as exc:
            raise HistoricalDataError(f"Historical dataset is not in a valid format: {exc}") from exc

        inflation = parsed.pop(inflation_column, None)
        dataset = cls(
            years=frame[year_column].to_numpy(),
            returns=parsed,
            inflation=inflation,
            description=description,
        )
        if dataset.is_empty:
            raise HistoricalDataError("Historical dataset has no asset-class return series")
        logger.debug(
            "Loaded historical dataset %d-%d with classes %s (inflation: %s)",
            dataset.start_year, dataset.end_year, dataset.asset_classes,
            dataset.inflation is not None,
        )
        return dataset

    @classmethod
    def from_records(cls, records: Iterable[Mapping], **kwargs) -> "HistoricalDataset":
        return cls.from_frame(pd.DataFrame(list(records)), **kwargs)

    @classmethod
    def from_csv(cls, path: Union[str, Path], **kwargs) -> "HistoricalDataset":
        try:
            frame = pd.read_csv(path, dtype=str)
        except (OSError, ValueError) as exc:
            raise HistoricalDataError(f"Could not read historical data from {path}: {exc}") from exc
        kwargs.setdefault("description", f"Annual returns from {Path(path).name}")
        return cls.from_frame(frame, **kwargs)

    @classmethod
    def from_json(cls, path: Union[str, Path], **kwargs) -> "HistoricalDataset":
        """Load a JSON array of per-year row objects."""
        try:
            frame = pd.read_json(path, orient="records", dtype=False)
        except (OSError, ValueError) as exc:
            raise HistoricalDataError(f"Could not read historical data from {path}: {exc}") from exc
        kwargs.setdefault("description", f"Annual returns from {Path(path).name}")
        return cls.from_frame(frame, **kwargs)

    @classmethod
    def load_default(cls) -> "HistoricalDataset":
        """The bundled approximated US dataset (1928-2024)."""
        source = resources.files("firecalc").joinpath("data").joinpath(DEFAULT_DATASET)
        with resources.as_file(source) as path:
            return cls.from_csv(path, description="Approximated US annual returns and CPI, 1928-2024")


__all__ = ["HistoricalDataset", "ReturnSummary", "DEFAULT_DATASET"]
