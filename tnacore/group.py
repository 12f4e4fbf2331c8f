"""Group TNA models: per-group transition networks over a shared state space."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import pandas as pd

from .model import TNA, build_model
from .sequences import create_seqdata


def _is_group_tna(x: Any) -> bool:
    """Duck-type check for GroupTNA (avoids circular imports)."""
    return hasattr(x, "models") and callable(getattr(x, "items", None))


@dataclass
class GroupTNA:
    """Container for grouped TNA models.

    A dict-like container mapping group names to TNA models that share the
    same labels in the same order. Supports ``group_model["High"]``,
    iteration, ``len()``, ``keys()``, ``values()`` and ``items()``.

    Attributes
    ----------
    models : dict of str to TNA
        Ordered mapping from group name to TNA model.
    """

    models: dict[str, TNA]

    def __post_init__(self):
        label_sets = {tuple(m.labels) for m in self.models.values()}
        if len(label_sets) > 1:
            raise ValueError("All group models must share the same state labels")

    def __getitem__(self, key: str) -> TNA:
        return self.models[key]

    def __contains__(self, key: str) -> bool:
        return key in self.models

    def __iter__(self):
        return iter(self.models)

    def __len__(self) -> int:
        return len(self.models)

    def keys(self):
        return self.models.keys()

    def values(self):
        return self.models.values()

    def items(self):
        return self.models.items()

    def __repr__(self) -> str:
        return f"GroupTNA(groups={list(self.models)})"

    @property
    def labels(self) -> list[str]:
        """State labels shared by every group."""
        first = next(iter(self.models.values()), None)
        return list(first.labels) if first is not None else []

    def names(self) -> list[str]:
        """Return group names as a list."""
        return list(self.models.keys())

    def summary(self) -> pd.DataFrame:
        """One row of model summary statistics per group."""
        rows = []
        for name, model in self.models.items():
            s = model.summary()
            s["group"] = name
            rows.append(s)
        return pd.DataFrame(rows).set_index("group")

    def apply(self, func, *args, **kwargs) -> dict:
        """Apply *func* to each group's model and collect results by name."""
        return {name: func(m, *args, **kwargs) for name, m in self.models.items()}


def group_model(
    x: pd.DataFrame | np.ndarray | Sequence[Sequence],
    group: str | Sequence,
    type_: str = "relative",
    scaling: str | list[str] | None = None,
    labels: list[str] | None = None,
    **kwargs: Any,
) -> GroupTNA:
    """Build one TNA model per group level.

    Parameters
    ----------
    x : pd.DataFrame, np.ndarray, or list of sequences
        Wide-format sequence data, one row per sequence.
    group : str or array-like
        Column name in ``x`` (DataFrame input) or one group label per row.
    type_ : str
        Model type (``"relative"``, ``"frequency"``, etc.).
    scaling : str or list of str, optional
        Scaling to apply to each group model.
    labels : list of str, optional
        Shared state labels. Detected from the full data when omitted, so
        every group has the same state space.
    **kwargs
        Additional arguments forwarded to :func:`build_model`.

    Returns
    -------
    GroupTNA
    """
    if isinstance(x, pd.DataFrame) and isinstance(group, str):
        if group not in x.columns:
            raise ValueError(
                f"Column '{group}' not found in DataFrame. "
                f"Available: {list(x.columns)}"
            )
        group_values = x[group].values
        seq_data, detected = create_seqdata(x.drop(columns=[group]))
    else:
        seq_data, detected = create_seqdata(x)
        group_values = np.asarray(group)
        if len(group_values) != len(seq_data):
            raise ValueError(
                f"Group vector length ({len(group_values)}) doesn't match "
                f"number of sequences ({len(seq_data)})"
            )

    if labels is None:
        labels = detected

    models: dict[str, TNA] = {}
    for grp in dict.fromkeys(group_values):
        rows = seq_data[group_values == grp]
        models[str(grp)] = build_model(
            list(rows), type_=type_, scaling=scaling, labels=labels, **kwargs
        )

    return GroupTNA(models=models)


def group_tna(x, group, scaling=None, labels=None, **kwargs) -> GroupTNA:
    """Build grouped relative transition probability models.

    Examples
    --------
    >>> gm = tnacore.group_tna(df, group="Achiever")
    >>> gm["High"]
    """
    return group_model(x, group, type_="relative", scaling=scaling, labels=labels, **kwargs)


def group_ftna(x, group, scaling=None, labels=None, **kwargs) -> GroupTNA:
    """Build grouped frequency-based transition models."""
    return group_model(x, group, type_="frequency", scaling=scaling, labels=labels, **kwargs)


def group_ctna(x, group, scaling=None, labels=None, **kwargs) -> GroupTNA:
    """Build grouped co-occurrence models."""
    return group_model(x, group, type_="co-occurrence", scaling=scaling, labels=labels, **kwargs)


def group_atna(x, group, scaling=None, labels=None, **kwargs) -> GroupTNA:
    """Build grouped attention-weighted transition models."""
    return group_model(x, group, type_="attention", scaling=scaling, labels=labels, **kwargs)
