"""
Bulk order row parsing.

A bulk order is pasted as one line per recipient:

    0241234567,10GB
    0551234567, 500mb
"""

import re
from decimal import Decimal

from .exceptions import BulkRowError

VOLUME_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)\s*(GB|MB)$', re.IGNORECASE)
PHONE_PATTERN = re.compile(r'^\+?[0-9]{9,15}$')


def parse_bulk_row(row, line_number=None):
    """
    Parse a "phone,volume" row.

    Returns:
        dict: {'customer_phone': str, 'data_volume': Decimal, 'data_unit': 'GB'|'MB'}

    Raises:
        BulkRowError: when the row is malformed
    """
    where = f'Line {line_number}: ' if line_number is not None else ''
    parts = [part.strip() for part in (row or '').split(',')]
    if len(parts) != 2 or not all(parts):
        raise BulkRowError(f'{where}Expected "phone,volume" e.g. 0241234567,10GB')

    phone, volume = parts
    if not PHONE_PATTERN.match(phone):
        raise BulkRowError(f'{where}Invalid phone number: {phone}')

    match = VOLUME_PATTERN.match(volume)
    if not match:
        raise BulkRowError(f'{where}Invalid data volume: {volume} (use e.g. 10GB or 500MB)')

    return {
        'customer_phone': phone,
        'data_volume': Decimal(match.group(1)),
        'data_unit': match.group(2).upper(),
    }


def parse_bulk_rows(text_or_rows):
    """
    Parse many rows, collecting errors instead of stopping at the first.

    Returns:
        tuple: (parsed rows, list of {'line', 'message'} errors)
    """
    if isinstance(text_or_rows, str):
        rows = text_or_rows.splitlines()
    else:
        rows = list(text_or_rows)

    parsed, errors = [], []
    for index, row in enumerate(rows, start=1):
        if not row or not row.strip():
            continue
        try:
            item = parse_bulk_row(row, index)
        except BulkRowError as e:
            errors.append({'line': index, 'message': e.message})
            continue
        item['line'] = index
        parsed.append(item)
    return parsed, errors
