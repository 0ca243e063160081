"""
Cleaning module: Normalise area codes and coerce percentage columns in the attribute table.
"""

import logging
import re

import pandas as pd
import numpy as np

LOGGER = logging.getLogger(__name__)

# Placeholders statistical releases use for suppressed/unavailable values
MISSING_MARKERS = {"", "-", "..", ".", "*", "x", "n/a", "na", "nan", "none", "null", ":", "c", "z"}


def normalise_code(value):
    """
    Canonical form of an area code: text, trimmed, upper-case.

    Numbers that arrived as floats (e.g. 123.0 from a spreadsheet) lose the '.0'.
    Missing values stay None.
    """
    if value is None:
        return None
    if isinstance(value, float):
        if np.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    code = str(value).strip().upper()
    return code or None


def parse_percentage_series(s: pd.Series) -> pd.Series:
    """
    Robustly parse percentage values given as numbers or text.

    Handles '12.5%', ' 12,5 ', '1,234.5', '1.5e1', NBSP and suppression markers ('*', '..', 'n/a').
    Decision: when both separators occur, the LAST one is the decimal point;
    a lone comma is a decimal comma.

    Args:
        s: pd.Series of raw values

    Returns:
        pd.Series of float values (NaN for unparseable)
    """
    def parse_single(val):
        if val is None or (not isinstance(val, str) and pd.isna(val)):
            return np.nan

        if isinstance(val, (int, float, np.integer, np.floating)) and not isinstance(val, bool):
            return float(val)

        val_str = str(val).strip()
        if val_str.lower() in MISSING_MARKERS:
            return np.nan

        # Remove percent signs, spaces, NBSP
        val_str = re.sub(r'[%\s\xa0]', '', val_str)

        # Plain numbers, including scientific notation ('1.5e1')
        try:
            number = float(val_str)
        except ValueError:
            pass
        else:
            return number if np.isfinite(number) else np.nan

        # Keep only digits, dots, commas, minus sign
        val_str = re.sub(r'[^\d.,\-]', '', val_str)

        if not val_str or val_str == '-':
            return np.nan

        last_comma_idx = val_str.rfind(',')
        last_dot_idx = val_str.rfind('.')

        if last_comma_idx > last_dot_idx:
            if last_dot_idx == -1 and val_str.count(',') > 1:
                # 1,234,567 → thousands separators only
                val_str = val_str.replace(',', '')
            else:
                val_str = val_str.replace('.', '').replace(',', '.')
        elif last_dot_idx > last_comma_idx:
            val_str = val_str.replace(',', '')

        try:
            return float(val_str)
        except ValueError:
            return np.nan

    return s.apply(parse_single).astype('float64')


def clean_area_table(df_raw, schema):
    """
    Reduce a raw attribute table to the (code, name, numeric_value) area records.

    Malformed rows never abort the load: rows without a code are dropped,
    unparseable values become NaN. Duplicate codes are kept here (they are
    resolved at join time, last-write-wins).

    Args:
        df_raw: Raw DataFrame from io.load_table()
        schema: TableSchema naming the columns

    Returns:
        Cleaned DataFrame and log info
    """
    log = []

    # 1. Resolve columns (exact match, then whitespace/case-insensitive)
    lookup = {str(c).strip().lower(): c for c in df_raw.columns}

    def resolve(name):
        if name is None:
            return None
        if name in df_raw.columns:
            return name
        return lookup.get(str(name).strip().lower())

    code_col = resolve(schema.code_column)
    value_col = resolve(schema.value_column)
    name_col = resolve(schema.name_column)

    missing = [
        wanted for wanted, found in [(schema.code_column, code_col), (schema.value_column, value_col)]
        if found is None
    ]
    if schema.name_column is not None and name_col is None:
        missing.append(schema.name_column)
    if missing:
        raise ValueError(f"Missing columns in area table: {missing} (have: {list(df_raw.columns)})")

    df_clean = pd.DataFrame({
        'code': df_raw[code_col].map(normalise_code),
        'name': df_raw[name_col].where(df_raw[name_col].notna(), None) if name_col else None,
        'numeric_value': parse_percentage_series(df_raw[value_col]),
    })
    log.append(f"✓ Columns selected: code='{code_col}', name='{name_col}', value='{value_col}'")

    # 2. Drop rows without a code (footnotes, blank spacer rows)
    no_code = df_clean['code'].isna().sum()
    if no_code > 0:
        df_clean = df_clean[df_clean['code'].notna()]
        log.append(f"⚠️  Dropped {no_code} rows without an area code")

    # 3. Report coercion results
    raw_present = df_raw.loc[df_clean.index, value_col].notna().sum()
    parsed = df_clean['numeric_value'].notna().sum()
    if raw_present > parsed:
        log.append(f"⚠️  {raw_present - parsed} values could not be parsed (set to NaN)")
    if parsed > 0:
        log.append(
            f"✓ {value_col} parsed: {parsed:,} values "
            f"({df_clean['numeric_value'].min():.2f} to {df_clean['numeric_value'].max():.2f})"
        )
    else:
        log.append(f"⚠️  No numeric values found in '{value_col}'")

    out_of_range = ((df_clean['numeric_value'] < 0) | (df_clean['numeric_value'] > 100)).sum()
    if out_of_range > 0:
        log.append(f"⚠️  {out_of_range} values outside 0-100 (kept; classification clamps them)")

    dup_codes = df_clean['code'].duplicated().sum()
    if dup_codes > 0:
        log.append(f"⚠️  {dup_codes} duplicate area codes (last row wins at join)")

    df_clean = df_clean.reset_index(drop=True)
    log.append(f"✓ Area table cleaned: {len(df_clean):,} rows")

    return df_clean, log
