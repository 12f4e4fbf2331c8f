"""Sequence data normalisation for tnacore models."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from .utils import is_na


def pad_sequences(
    sequences: Sequence[Sequence] | np.ndarray,
    length: int | None = None,
) -> np.ndarray:
    """Right-pad sequences with ``None`` into a rectangular object array.

    Transition tensors are computed column by column, so every sequence
    needs the same number of columns for all of its transitions to count.

    Parameters
    ----------
    sequences : sequence of sequences or np.ndarray
        One row per sequence. Rows may differ in length.
    length : int, optional
        Target width. Defaults to the longest sequence.

    Returns
    -------
    np.ndarray
        Object array of shape (n_sequences, length)
    """
    rows = [list(seq) for seq in sequences]
    width = max((len(r) for r in rows), default=0)
    if length is not None:
        if length < width:
            raise ValueError(
                f"Cannot pad to length {length}: longest sequence has {width} steps"
            )
        width = length

    out = np.full((len(rows), width), None, dtype=object)
    for k, row in enumerate(rows):
        for t, token in enumerate(row):
            out[k, t] = None if is_na(token) else token
    return out


def state_labels(data: np.ndarray) -> list[str]:
    """Sorted unique non-missing states of a sequence array."""
    found = {str(tok) for tok in np.asarray(data, dtype=object).ravel() if not is_na(tok)}
    return sorted(found)


def create_seqdata(
    x: pd.DataFrame | np.ndarray | Sequence[Sequence],
    cols: list[str] | None = None,
    begin_state: str | None = None,
    end_state: str | None = None,
) -> tuple[np.ndarray, list[str]]:
    """Create sequence data from wide-format input.

    Parameters
    ----------
    x : pd.DataFrame, np.ndarray, or list of sequences
        Rows are sequences, columns are time steps. Ragged lists are padded.
    cols : list of str, optional
        Column names to use (if DataFrame)
    begin_state : str, optional
        Add this state at the beginning of each sequence
    end_state : str, optional
        Add this state after the last observed state of each sequence

    Returns
    -------
    tuple
        (sequence_array, state_labels)
    """
    if isinstance(x, pd.DataFrame):
        frame = x[cols] if cols is not None else x
        rows = frame.values.tolist()
    else:
        rows = [list(r) for r in x]

    data = pad_sequences(rows)
    labels = state_labels(data)

    if begin_state is not None or end_state is not None:
        framed = []
        head = [begin_state] if begin_state is not None else []
        tail = [end_state] if end_state is not None else []
        for row in data:
            last = max((t for t, tok in enumerate(row) if tok is not None), default=-1)
            framed.append(head + list(row[:last + 1]) + tail)
        data = pad_sequences(framed)

    if begin_state is not None and begin_state not in labels:
        labels = [begin_state] + labels
    if end_state is not None and end_state not in labels:
        labels = labels + [end_state]

    return data, labels
