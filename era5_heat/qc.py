"""
Automated QC of the final unit-day output: missing data and impossible
temperature values. Anomalies are reported, never corrected.
"""
import logging

import pandas as pd

from .config import ORDER_TOLERANCE

logger = logging.getLogger(__name__)


def missing_summary(finaloutput, columns, head=5):
    """Number of missing unit-days per column, with example rows logged."""
    counts = pd.Series({col: int(finaloutput[col].isnull().sum()) for col in columns}, dtype="int64")
    if counts.sum() > 0:
        logger.warning("WARNING: Note the number of missing unit-days by variable:\n%s",
                       counts[counts > 0].to_string())
        for col in counts[counts > 0].index:
            logger.warning("The first few lines of missing %s are:\n%s",
                           col, finaloutput[finaloutput[col].isnull()].head(head).to_string())
    else:
        logger.info(":) No missing temperature values!")
    return counts


def ordering_mask(finaloutput, variable, tolerance=ORDER_TOLERANCE):
    vmin = finaloutput[variable + "_min"]
    vmean = finaloutput[variable + "_mean"]
    vmax = finaloutput[variable + "_max"]
    return ((vmax < vmean - tolerance) | (vmax < vmin - tolerance)
            | (vmin > vmean + tolerance) | (vmin > vmax + tolerance))


def ordering_violations(finaloutput, variables, tolerance=ORDER_TOLERANCE):
    """Rows where min <= mean <= max fails for any variable."""
    masks = {var: ordering_mask(finaloutput, var, tolerance) for var in variables}
    any_bad = pd.concat(masks, axis=1).any(axis=1) if masks else pd.Series(False, index=finaloutput.index)
    bad = finaloutput[any_bad]
    if len(bad) > 0:
        counts = {var: int(mask.sum()) for var, mask in masks.items() if mask.any()}
        logger.error("ERROR: impossible temperature values %s. Applicable rows:\n%s",
                     counts, bad.to_string())
    else:
        logger.info(":) all temperature values are of correct *relative* magnitude")
    return bad
