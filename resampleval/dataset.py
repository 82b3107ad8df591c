"""Schema-checked tabular datasets for the resampling harness.

A `Dataset` wraps a pandas DataFrame whose rows carry a stable unique row
identifier. The identifier is assigned once, at construction, so that
train/evaluation splits can be derived by set difference on identity rather
than position.

Examples
--------
>>> import pandas as pd
>>> from resampleval.dataset import Dataset
>>> ds = Dataset(pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [2.0, 4.1, 5.9]}))
>>> len(ds)
3
>>> ds.ids.tolist()
[0, 1, 2]
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Self

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from resampleval.config import Config
from resampleval.errors import ConfigurationError


@dataclass(frozen=True)
class Schema:
    """Named numeric and categorical columns of a dataset.

    Parameters
    ----------
    numeric:
        Columns that must hold numeric values.
    categorical:
        Columns treated as categories (converted to ``category`` dtype).
    """

    numeric: tuple[str, ...] = ()
    categorical: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return self.numeric + self.categorical

    def to_dict(self) -> dict[str, list[str]]:
        return {"numeric": list(self.numeric), "categorical": list(self.categorical)}


def infer_schema(frame: pd.DataFrame, *, exclude: Iterable[str] = ()) -> Schema:
    """Build a `Schema` from the dtypes of ``frame``.

    Boolean and numeric columns are numeric; everything else is categorical.
    """

    skip = set(exclude)
    numeric: list[str] = []
    categorical: list[str] = []
    for col in frame.columns:
        if col in skip:
            continue
        if ptypes.is_numeric_dtype(frame[col]):
            numeric.append(str(col))
        else:
            categorical.append(str(col))
    return Schema(numeric=tuple(numeric), categorical=tuple(categorical))


class Dataset:
    """Validated, identity-keyed table of records.

    Parameters
    ----------
    frame:
        Source records. The frame is copied; the caller's object is never
        modified.
    schema:
        Expected columns. Inferred from dtypes when omitted.
    id_column:
        Name of the unique row identifier column.
    synthesize_ids:
        When the identifier column is missing, assign positional ids
        ``0..n-1``. If False, a missing identifier is a configuration error.

    Raises
    ------
    ConfigurationError
        If the frame is empty, a schema column is missing or has the wrong
        type, or the row identifier is missing or not unique.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        schema: Schema | None = None,
        *,
        id_column: str = Config.ROW_ID_COLUMN,
        synthesize_ids: bool = True,
    ) -> None:
        if not isinstance(frame, pd.DataFrame):
            raise ConfigurationError(f"Dataset expects a pandas DataFrame, got {type(frame).__name__}")
        if frame.empty:
            raise ConfigurationError("Dataset must contain at least one row.")

        data = frame.reset_index(drop=True).copy()
        if id_column not in data.columns:
            if not synthesize_ids:
                raise ConfigurationError(
                    f"Row identifier column {id_column!r} is missing and synthesis is disabled."
                )
            data.insert(0, id_column, np.arange(len(data), dtype=np.int64))
        if data[id_column].isna().any():
            raise ConfigurationError(f"Row identifier column {id_column!r} contains missing values.")
        if not data[id_column].is_unique:
            n_dup = int(data[id_column].duplicated().sum())
            raise ConfigurationError(
                f"Row identifier column {id_column!r} must be unique ({n_dup} duplicate ids)."
            )

        if schema is None:
            schema = infer_schema(data, exclude=[id_column])
        self._validate_schema(data, schema, id_column)
        for col in schema.categorical:
            if not isinstance(data[col].dtype, pd.CategoricalDtype):
                data[col] = data[col].astype("category")

        self.frame: pd.DataFrame = data
        self.schema: Schema = schema
        self.id_column: str = id_column

    # Construction helpers -----------------------------------------------------
    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], schema: Schema | None = None, **kwargs: Any) -> Self:
        """Build a dataset from an iterable of column-name -> value mappings."""

        return cls(pd.DataFrame.from_records(list(records)), schema, **kwargs)

    @classmethod
    def from_csv(cls, path: Path, schema: Schema | None = None, **kwargs: Any) -> Self:
        """Read a CSV file with pandas and wrap it."""

        if not path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")
        return cls(pd.read_csv(path), schema, **kwargs)

    # Accessors ----------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.frame)

    def __repr__(self) -> str:
        return f"Dataset(n_rows={len(self)}, columns={list(self.schema.columns)!r})"

    @property
    def ids(self) -> pd.Series:
        """Row identifiers in storage order."""

        return self.frame[self.id_column]

    @property
    def columns(self) -> tuple[str, ...]:
        return self.schema.columns

    def check_compatible(self, other: "Dataset") -> None:
        """Raise `ConfigurationError` unless ``other`` has the same schema columns."""

        missing = [c for c in self.schema.columns if c not in other.frame.columns]
        if missing:
            raise ConfigurationError(f"Datasets are incompatible; missing columns: {missing}")

    # Internal -----------------------------------------------------------------
    @staticmethod
    def _validate_schema(data: pd.DataFrame, schema: Schema, id_column: str) -> None:
        overlap = set(schema.numeric) & set(schema.categorical)
        if overlap:
            raise ConfigurationError(f"Columns declared both numeric and categorical: {sorted(overlap)}")
        if id_column in schema.columns:
            raise ConfigurationError(f"Row identifier {id_column!r} cannot also be a schema column.")
        missing = [c for c in schema.columns if c not in data.columns]
        if missing:
            raise ConfigurationError(f"Dataset is missing schema columns: {missing}")
        non_numeric = [c for c in schema.numeric if not ptypes.is_numeric_dtype(data[c])]
        if non_numeric:
            raise ConfigurationError(f"Columns declared numeric hold non-numeric values: {non_numeric}")


def as_dataset(data: Dataset | pd.DataFrame, **kwargs: Any) -> Dataset:
    """Return ``data`` unchanged if it is a `Dataset`, otherwise wrap it."""

    if isinstance(data, Dataset):
        return data
    return Dataset(data, **kwargs)


__all__ = ["Schema", "Dataset", "infer_schema", "as_dataset"]
