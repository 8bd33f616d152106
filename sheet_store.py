# sheet_store.py

from datetime import date, datetime, timedelta, timezone

from sheet_grid import cell_text

DATE_FORMAT = '%Y-%m-%d'
DEFAULT_BACKUP_DATE_FIELD = 'Backup Date'
DEFAULT_GROUP_BY_KEY = 'id'

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def batch_consecutive_integers(integers):
    """
    Groups a list of integers into runs of consecutive values.
    Returns a list of (first_integer, run_length) tuples, in input order.
    Example: [1, 2, 4, 5] -> [(1, 2), (4, 2)]
    """
    batches = []
    for value in integers:
        if batches and value == batches[-1][0] + batches[-1][1]:
            start, length = batches[-1]
            batches[-1] = (start, length + 1)
        else:
            batches.append((value, 1))
    return batches

def get_header_from_records(records):
    """
    Returns the union of field names across records, in first-seen order.
    Records do not need to share an identical set of fields.
    """
    header = []
    seen = set()
    for record in records:
        for field_name in record:
            if field_name not in seen:
                seen.add(field_name)
                header.append(field_name)
    return header

def format_date(value):
    return value.strftime(DATE_FORMAT)

def utc_today():
    # Snapshots are stamped with the UTC date, whatever the host timezone.
    return datetime.now(timezone.utc).date()

def get_today_string(today=None):
    return format_date(today or utc_today())

def parse_backup_date(value):
    """
    Converts a retention column value to a date.
    Returns None when the value cannot be interpreted as a YYYY-MM-DD date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError:
        return None

# ============================================================================
# TABULAR STORE
# ============================================================================

class TabularStore:
    """
    A table of records kept in a grid whose first row is the header.

    The header only ever grows: missing fields are appended as new columns
    on the right, existing columns are never moved or removed. Operations
    that reference a field missing from the header find nothing and change
    nothing.
    """

    def __init__(self, grid):
        self.grid = grid

    def get_header(self):
        last_column = self.grid.last_column()
        if last_column == 0:
            return []
        return list(self.grid.get_range(1, 1, 1, last_column)[0])

    def get_column_id(self, field_name):
        """
        Returns the 1-indexed column of the first header cell equal to
        field_name, or None if the header doesn't contain it.
        """
        header = self.get_header()
        if field_name not in header:
            return None
        return header.index(field_name) + 1

    def ensure_columns(self, field_names):
        """
        Adds a column for every field missing from the header.
        Existing columns are left untouched, even if absent from field_names.
        """
        if self.grid.is_blank():
            # A blank grid takes the field list as its header directly.
            new_header = list(dict.fromkeys(field_names))
            if new_header:
                self.grid.set_range(1, 1, 1, len(new_header), [new_header])
            return

        header = self.get_header()
        last_column_id = self.grid.last_column()
        for field_name in field_names:
            if field_name in header:
                continue
            self.grid.insert_column_after(last_column_id)
            last_column_id += 1
            self.grid.set_range(1, last_column_id, 1, 1, [[field_name]])
            header.append(field_name)

    def get_value(self, row_id, field_name):
        column_id = self.get_column_id(field_name)
        if column_id is None:
            return None
        return self.grid.get_cell(row_id, column_id)

    def find_rows_where(self, field_name, value):
        """
        Returns the sorted data row numbers whose cell under field_name is
        exactly value. The whole cell must match, not a substring of it.
        """
        column_id = self.get_column_id(field_name)
        if column_id is None:
            return []
        cells = self.grid.find_exact_matches(value)
        return sorted(c.row for c in cells if c.column == column_id and c.row >= 2)

    def delete_rows_where(self, field_name, value):
        # Consecutive rows are deleted with one call per batch instead of one per row.
        row_ids = self.find_rows_where(field_name, value)
        row_batches = batch_consecutive_integers(row_ids)

        # Work from the bottom of the sheet up, otherwise each deletion shifts
        # the row numbers of the batches below it.
        for start_row, row_count in reversed(row_batches):
            print(f"deleting {row_count} rows starting from row #{start_row}...")
            self.grid.delete_rows(start_row, row_count)
        return len(row_ids)

    def append_records(self, records):
        """
        Appends records below the existing data, one row per record.
        Fields missing from the header are added first; fields missing from a
        record are written as empty cells.
        """
        if not records:
            return 0
        self.ensure_columns(get_header_from_records(records))
        header = self.get_header()

        data = [[record.get(f, "") for f in header] for record in records]
        start_row = self.grid.last_row() + 1
        self.grid.set_range(start_row, 1, len(data), len(header), data)
        return len(data)

    def append_with_date(self, records, date_field_name, date_string):
        dated_records = [dict(record, **{date_field_name: date_string}) for record in records]
        return self.append_records(dated_records)

    def overwrite(self, records):
        """Clears the grid, then writes records along with a fresh header."""
        self.grid.clear()
        return self.append_records(records)

    def read_all_rows(self):
        header = self.get_header()
        last_row = self.grid.last_row()
        if not header or last_row < 2:
            return []

        rows = []
        for values in self.grid.get_range(2, 1, last_row - 1, len(header)):
            record = {}
            for field_name, value in zip(header, values):
                # Duplicate titles resolve to the first column, like get_column_id.
                if field_name not in record:
                    record[field_name] = value
            rows.append(record)
        return rows

    def lookup_column(self, start_row, row_count, key_column_id, value_map, default_value=None):
        """
        Reads the keys in key_column_id for row_count rows from start_row and
        maps each one through value_map. Returns a single-column block,
        e.g. [[3], [0], [1]], ready to be written back alongside those rows.
        """
        keys = self.grid.get_range(start_row, key_column_id, row_count, 1)
        return [[value_map.get(row[0], default_value)] for row in keys]

    def set_column_values(self, start_row, column_id, values):
        if values:
            self.grid.set_range(start_row, column_id, len(values), 1, values)

# ============================================================================
# RETAINED STORE
# ============================================================================

class RetainedStore:
    """
    Daily snapshots of a data source kept in a TabularStore.

    Every ingested row is stamped with the snapshot date under
    date_field_name. Only the fields in fields_to_keep are stored.
    """

    def __init__(self, store, fields_to_keep, date_field_name=DEFAULT_BACKUP_DATE_FIELD):
        self.store = store
        self.fields_to_keep = list(fields_to_keep)
        self.date_field_name = date_field_name

    def filter_record(self, record):
        return {f: record.get(f, "") for f in self.fields_to_keep}

    def ingest_snapshot(self, records, overwrite_today=True, today=None):
        """
        Appends today's snapshot of records.
        With overwrite_today, rows already stamped with today's date are
        deleted first, so running the backup twice in a day keeps one copy.
        """
        today_str = get_today_string(today)
        if overwrite_today:
            deleted = self.store.delete_rows_where(self.date_field_name, today_str)
            if deleted:
                print(f"  Replaced {deleted} rows already backed up on {today_str}.")

        filtered = [self.filter_record(record) for record in records]
        appended = self.store.append_with_date(filtered, self.date_field_name, today_str)
        print(f"  Backed up {appended} rows for {today_str}.")
        return appended

    def get_backup_dates(self):
        """Returns the distinct values of the backup date column, in row order."""
        column_id = self.store.get_column_id(self.date_field_name)
        last_row = self.store.grid.last_row()
        if column_id is None or last_row < 2:
            return []

        values = []
        for row in self.store.grid.get_range(2, column_id, last_row - 1, 1):
            if row[0] not in values:
                values.append(row[0])
        return values

    def prune_older_than(self, n_days, today=None):
        """
        Deletes snapshots dated strictly before today minus n_days.
        Rows whose date can't be parsed are kept.
        """
        cutoff = (today or utc_today()) - timedelta(days=n_days)
        deleted = 0
        for value in self.get_backup_dates():
            backup_date = parse_backup_date(value)
            if backup_date is None:
                print(f"  - WARNING: Could not parse date '{value}' in column '{self.date_field_name}'. Keeping these rows.")
                continue
            if backup_date < cutoff:
                deleted += self.store.delete_rows_where(self.date_field_name, value)
        if deleted:
            print(f"  Deleted {deleted} rows backed up before {format_date(cutoff)}.")
        return deleted

# ============================================================================
# METRIC STORE
# ============================================================================

class MetricStore:
    """
    Adds computed columns to a RetainedStore.

    A computed column counts, for each key, how many retained rows matched a
    condition (e.g. the number of daily snapshots an opportunity spent in a
    given stage). Values are only written into the rows of one snapshot date.
    """

    def __init__(self, retained, group_by_key=DEFAULT_GROUP_BY_KEY):
        self.retained = retained
        self.group_by_key = group_by_key

    @property
    def store(self):
        return self.retained.store

    def count_rows_where(self, field_name, values, group_by_key):
        # Compared as cell text, the same way find_rows_where matches cells.
        match_texts = {cell_text(v) for v in values}
        counts = {}
        for row in self.store.read_all_rows():
            if field_name in row and cell_text(row[field_name]) in match_texts:
                key = row.get(group_by_key)
                counts[key] = counts.get(key, 0) + 1
        return counts

    def compute_grouped_count(self, computed_field_name, field_name, values, group_by_key, snapshot_date):
        """
        Writes the per-key count of rows where field_name is one of values
        into computed_field_name, for the rows stamped with snapshot_date.
        Keys without any matching row get 0. Other dates are left untouched.
        """
        counts = self.count_rows_where(field_name, values, group_by_key)

        self.store.ensure_columns([computed_field_name])
        metric_column_id = self.store.get_column_id(computed_field_name)
        key_column_id = self.store.get_column_id(group_by_key)
        if key_column_id is None:
            print(f"  - WARNING: Group-by column '{group_by_key}' not found. Skipping '{computed_field_name}'.")
            return 0

        row_ids = self.store.find_rows_where(self.retained.date_field_name, snapshot_date)
        for start_row, n_rows in batch_consecutive_integers(row_ids):
            column_values = self.store.lookup_column(start_row, n_rows, key_column_id, counts, 0)
            self.store.set_column_values(start_row, metric_column_id, column_values)
        return len(row_ids)

    def add_computed_fields(self, snapshot_date, computed_fields):
        """
        Runs compute_grouped_count for each computed field definition:
        {'name': ..., 'source_field': ..., 'match_values': [...]}
        """
        for computed_field in computed_fields:
            print(f"  Computing '{computed_field['name']}' for {snapshot_date}...")
            self.compute_grouped_count(
                computed_field['name'],
                computed_field['source_field'],
                computed_field['match_values'],
                self.group_by_key,
                snapshot_date,
            )
