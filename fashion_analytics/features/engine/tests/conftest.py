"""Test fixtures for the evaluation engine."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def scores() -> pd.DataFrame:
    """Scores in two partitions with a tie and a null."""
    return pd.DataFrame(
        {
            "team": ["a", "a", "a", "a", "b", "b"],
            "player": ["p1", "p2", "p3", "p4", "p5", "p6"],
            "score": [10.0, 30.0, 30.0, 20.0, 5.0, np.nan],
        }
    )


@pytest.fixture
def lines() -> pd.DataFrame:
    """Sale lines with a null grouping key and a null amount."""
    return pd.DataFrame(
        {
            "region": ["north", "south", "north", None, "south"],
            "customer": ["c1", "c2", "c1", "c3", "c4"],
            "amount": [10.0, 5.0, np.nan, 7.0, 1.0],
        }
    )
