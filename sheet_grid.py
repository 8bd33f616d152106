# sheet_grid.py

from collections import namedtuple

import smartsheet

# Position of a matching cell, 1-indexed. Row 1 is the header.
CellPosition = namedtuple('CellPosition', ['row', 'column'])

# Smartsheet limits how many rows a single request may carry.
ROW_WRITE_BATCH_SIZE = 500
ROW_DELETE_BATCH_SIZE = 400

# Smartsheet needs a title on every column, and titles must be unique.
# Columns that have not been named yet carry a placeholder title.
PLACEHOLDER_TITLE = 'Column'

def cell_text(value):
    """Text used for exact-match searches. Empty cells match ''."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

def chunked(items, size):
    for i in range(0, len(items), size):
        yield items[i:i + size]

# ============================================================================
# IN-MEMORY GRID
# ============================================================================

class MemoryGrid:
    """
    A grid held in a list of row lists. Used for tests and dry runs.
    Every row is padded to the full width so all cells have a value.
    """

    def __init__(self, rows=None):
        self._rows = [list(row) for row in (rows or [])]
        self._width = max((len(row) for row in self._rows), default=0)
        self._pad()

    def _pad(self):
        for row in self._rows:
            row.extend([""] * (self._width - len(row)))

    @property
    def rows(self):
        return [list(row) for row in self._rows]

    def last_row(self):
        return len(self._rows)

    def last_column(self):
        return self._width

    def is_blank(self):
        return all(cell_text(v) == "" for row in self._rows for v in row)

    def get_cell(self, row, column):
        return self.get_range(row, column, 1, 1)[0][0]

    def get_range(self, row, column, height, width):
        values = []
        for r in range(row, row + height):
            source = self._rows[r - 1] if r <= len(self._rows) else []
            values.append([
                source[c - 1] if c <= len(source) else ""
                for c in range(column, column + width)
            ])
        return values

    def set_range(self, row, column, height, width, values):
        if len(values) != height or any(len(v) != width for v in values):
            raise ValueError(f"Expected a {height}x{width} block of values.")
        while len(self._rows) < row + height - 1:
            self._rows.append([])
        self._width = max(self._width, column + width - 1)
        self._pad()
        for i, row_values in enumerate(values):
            self._rows[row - 1 + i][column - 1:column - 1 + width] = row_values

    def insert_column_after(self, column):
        if column < 0 or column > self._width:
            raise IndexError(f"Column {column} is outside the grid.")
        for row in self._rows:
            row.insert(column, "")
        self._width += 1

    def delete_rows(self, start_row, count):
        if start_row < 1 or count < 1 or start_row + count - 1 > len(self._rows):
            raise IndexError(f"Rows {start_row}-{start_row + count - 1} are outside the grid.")
        del self._rows[start_row - 1:start_row - 1 + count]

    def clear(self):
        self._rows = []
        self._width = 0

    def find_exact_matches(self, value):
        target = cell_text(value)
        return [
            CellPosition(r, c)
            for r, row in enumerate(self._rows, start=1)
            for c, cell in enumerate(row, start=1)
            if cell_text(cell) == target
        ]

# ============================================================================
# SMARTSHEET GRID
# ============================================================================

class SmartsheetGrid:
    """
    Exposes a Smartsheet sheet as a positional grid.

    Row 1 is made of the column titles; grid row n (n >= 2) is the sheet's
    row number n - 1. Columns follow the sheet's column order. The sheet is
    cached between reads and fetched again after every write.
    """

    def __init__(self, smart, sheet_id):
        self.smart = smart
        self.sheet_id = sheet_id
        self._sheet = None

    @classmethod
    def open_or_create(cls, smart, sheet_name):
        """Returns a grid on the sheet named sheet_name, creating the sheet if needed."""
        for sheet in smart.Sheets.list_sheets(include_all=True).data:
            if sheet.name == sheet_name:
                return cls(smart, sheet.id)

        print(f"  Sheet '{sheet_name}' not found. Creating it...")
        new_sheet = smartsheet.models.Sheet({
            'name': sheet_name,
            'columns': [{'title': PLACEHOLDER_TITLE, 'primary': True, 'type': 'TEXT_NUMBER'}],
        })
        response = smart.Home.create_sheet(new_sheet)
        return cls(smart, response.result.id)

    # --- SHEET ACCESS ---

    def _get_sheet(self):
        if self._sheet is None:
            self._sheet = self.smart.Sheets.get_sheet(self.sheet_id)
        return self._sheet

    def _invalidate(self):
        self._sheet = None

    def _columns(self):
        return sorted(self._get_sheet().columns, key=lambda c: c.index)

    def _rows(self):
        return sorted(self._get_sheet().rows, key=lambda r: r.row_number)

    def _row_values(self, row, columns):
        values_by_column = {cell.column_id: cell.value for cell in row.cells}
        return [values_by_column.get(column.id) for column in columns]

    def _header_is_placeholder(self):
        return all(c.title.startswith(PLACEHOLDER_TITLE) for c in self._columns())

    def _placeholder_title(self):
        titles = {c.title for c in self._columns()}
        n = len(titles) + 1
        while f"{PLACEHOLDER_TITLE} {n}" in titles:
            n += 1
        return f"{PLACEHOLDER_TITLE} {n}"

    # --- GRID CONTRACT ---

    def is_blank(self):
        return not self._get_sheet().rows and self._header_is_placeholder()

    def last_row(self):
        if self.is_blank():
            return 0
        return len(self._get_sheet().rows) + 1

    def last_column(self):
        if self.is_blank():
            return 0
        return len(self._get_sheet().columns)

    def get_cell(self, row, column):
        return self.get_range(row, column, 1, 1)[0][0]

    def get_range(self, row, column, height, width):
        columns = self._columns()[column - 1:column - 1 + width]
        rows = self._rows()
        values = []
        for r in range(row, row + height):
            if r == 1:
                row_values = [c.title for c in columns]
            elif r - 2 < len(rows):
                row_values = self._row_values(rows[r - 2], columns)
            else:
                row_values = []
            row_values = ["" if v is None else v for v in row_values]
            values.append(row_values + [""] * (width - len(row_values)))
        return values

    def set_range(self, row, column, height, width, values):
        if len(values) != height or any(len(v) != width for v in values):
            raise ValueError(f"Expected a {height}x{width} block of values.")
        if row == 1:
            self._set_titles(column, values[0])
            row, values = 2, values[1:]
        if values:
            self._set_rows(row, column, values)

    def _set_titles(self, column, titles):
        for offset, title in enumerate(titles):
            columns = self._columns()
            index = column - 1 + offset
            if index < len(columns):
                self.smart.Sheets.update_column(
                    self.sheet_id, columns[index].id,
                    smartsheet.models.Column({'title': title, 'index': columns[index].index}))
            else:
                self.smart.Sheets.add_columns(
                    self.sheet_id, [smartsheet.models.Column({'title': title, 'type': 'TEXT_NUMBER', 'index': index})])
            self._invalidate()

    def _set_rows(self, row, column, values):
        columns = self._columns()
        rows = self._rows()
        rows_to_update, rows_to_add = [], []
        for offset, row_values in enumerate(values):
            cells = [
                smartsheet.models.Cell({
                    'column_id': columns[column - 1 + i].id,
                    'value': "" if value is None else value,
                })
                for i, value in enumerate(row_values)
            ]
            existing_index = row + offset - 2
            if existing_index < len(rows):
                rows_to_update.append(smartsheet.models.Row({'id': rows[existing_index].id, 'cells': cells}))
            else:
                rows_to_add.append(smartsheet.models.Row({'to_bottom': True, 'cells': cells}))

        for batch in chunked(rows_to_update, ROW_WRITE_BATCH_SIZE):
            self.smart.Sheets.update_rows(self.sheet_id, batch)
        for batch in chunked(rows_to_add, ROW_WRITE_BATCH_SIZE):
            self.smart.Sheets.add_rows(self.sheet_id, batch)
        self._invalidate()

    def insert_column_after(self, column):
        new_column = smartsheet.models.Column({
            'title': self._placeholder_title(),
            'type': 'TEXT_NUMBER',
            'index': column,
        })
        self.smart.Sheets.add_columns(self.sheet_id, [new_column])
        self._invalidate()

    def delete_rows(self, start_row, count):
        rows = self._rows()
        if start_row < 2 or start_row + count - 2 > len(rows):
            raise IndexError(f"Rows {start_row}-{start_row + count - 1} are outside the sheet.")
        row_ids = [r.id for r in rows[start_row - 2:start_row - 2 + count]]
        for batch in chunked(row_ids, ROW_DELETE_BATCH_SIZE):
            self.smart.Sheets.delete_rows(self.sheet_id, batch)
        self._invalidate()

    def clear(self):
        """Deletes every row and every non-primary column, leaving a blank sheet."""
        row_ids = [r.id for r in self._get_sheet().rows]
        for batch in chunked(row_ids, ROW_DELETE_BATCH_SIZE):
            self.smart.Sheets.delete_rows(self.sheet_id, batch)
        for column in self._columns():
            if column.primary:
                self.smart.Sheets.update_column(
                    self.sheet_id, column.id,
                    smartsheet.models.Column({'title': PLACEHOLDER_TITLE, 'index': column.index}))
            else:
                self.smart.Sheets.delete_column(self.sheet_id, column.id)
        self._invalidate()

    def find_exact_matches(self, value):
        target = cell_text(value)
        columns = self._columns()
        matches = [
            CellPosition(1, c)
            for c, column in enumerate(columns, start=1)
            if cell_text(column.title) == target
        ]
        for r, row in enumerate(self._rows(), start=2):
            for c, cell_value in enumerate(self._row_values(row, columns), start=1):
                if cell_text(cell_value) == target:
                    matches.append(CellPosition(r, c))
        return matches
