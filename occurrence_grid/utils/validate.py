"""
This module contains functions helpful for checking and validating
observation tables and written grids throughout the gridding process.
"""
from typing import Callable, Iterable, List, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel

from occurrence_grid.config import MISSING_VALUE
from occurrence_grid.exceptions import GridVerificationError


class VerificationReport(BaseModel):
    cells: int = 0
    expected_values: int = 0
    written_values: int = 0
    mismatched_cells: int = 0

    @property
    def ok(self) -> bool:
        return self.mismatched_cells == 0 and self.expected_values == self.written_values


def check_for_taxon_conflicts(taxa: pd.DataFrame) -> List[int]:
    """Taxon ids that occur with more than one (name, lsid) pair"""
    distinct = taxa.drop_duplicates()
    counts = distinct.groupby("aphiaid").size()
    return [int(i) for i in counts[counts > 1].index]


def check_for_duplicate_coordinates(located: pd.DataFrame, keys: List[str]) -> Tuple[pd.DataFrame, int]:
    duplicated = located.duplicated(subset=keys, keep="last")
    duplicates = int(duplicated.sum())
    if duplicates:
        conflicting = located.groupby(keys)["status"].nunique()
        conflicting = int((conflicting > 1).sum())
        logger.warning(
            f"{duplicates} observation(s) share a cell with a later observation "
            f"({conflicting} cell(s) with conflicting status). Keeping the last one."
        )
    return located[~duplicated], duplicates


def verify_grid(
    windows: Iterable,
    expected: Callable,
    written: Callable,
    missing_value: int = MISSING_VALUE,
    strict: bool = False,
) -> VerificationReport:
    """
    Compare the materialized grid with what the store holds, window by window.

    The check mirrors a simple before/after comparison of all non-missing
    values; it reports divergence and never repairs it.
    """
    logger.info("Verifying written grid ...")
    report = VerificationReport()
    for window in windows:
        before = np.asarray(expected(window))
        after = np.asarray(written(window))
        if before.shape != after.shape:
            raise GridVerificationError(
                f"Window {window} has shape {after.shape} in the store, expected {before.shape}"
            )
        report.cells += before.size
        report.expected_values += int((before != missing_value).sum())
        report.written_values += int((after != missing_value).sum())
        report.mismatched_cells += int((before != after).sum())

    if report.ok:
        logger.info(f"Verification passed: {report.written_values} values in {report.cells} cells")
    else:
        message = (
            f"Verification failed: expected {report.expected_values} values, "
            f"found {report.written_values}, {report.mismatched_cells} mismatched cell(s)"
        )
        if strict:
            raise GridVerificationError(message)
        logger.warning(message)
    return report
