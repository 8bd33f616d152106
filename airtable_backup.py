# airtable_backup.py

import os
import sys
import traceback

import smartsheet

from airtable_client import AirtableClient
from config import BACKUP_CONFIG
from sheet_grid import SmartsheetGrid
from sheet_store import (
    DEFAULT_BACKUP_DATE_FIELD,
    DEFAULT_GROUP_BY_KEY,
    MetricStore,
    RetainedStore,
    TabularStore,
    get_today_string,
)

DEFAULT_RETENTION_DAYS = 60

REQUIRED_TABLE_KEYS = ('table_name', 'view_id', 'fields_to_backup')
REQUIRED_COMPUTED_FIELD_KEYS = ('name', 'source_field', 'match_values')

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def validate_config(config):
    """
    Checks the backup configuration before anything is fetched or written.
    Raises ValueError describing the first problem found.
    """
    tables = config.get('tables')
    if not tables:
        raise ValueError("Configuration must list at least one table under 'tables'.")
    for table_config in tables:
        for key in REQUIRED_TABLE_KEYS:
            if not table_config.get(key):
                raise ValueError(f"Table configuration {table_config} is missing '{key}'.")
        for computed_field in table_config.get('computed_fields', []):
            for key in REQUIRED_COMPUTED_FIELD_KEYS:
                if not computed_field.get(key):
                    raise ValueError(
                        f"Computed field {computed_field} for table '{table_config['table_name']}' is missing '{key}'.")
            if not isinstance(computed_field['match_values'], (list, tuple)):
                raise ValueError(
                    f"Computed field '{computed_field['name']}' must list its 'match_values', got {computed_field['match_values']!r}.")

def build_store(grid, table_config, config):
    tabular = TabularStore(grid)
    retained = RetainedStore(
        tabular,
        table_config['fields_to_backup'],
        config.get('backup_date_field', DEFAULT_BACKUP_DATE_FIELD),
    )
    return MetricStore(retained, config.get('group_by_key', DEFAULT_GROUP_BY_KEY))

# --- LOGIC HANDLERS ---

def backup_table(grid, airtable, table_config, config, today=None):
    """
    Backs up one Airtable table into its grid:
    fetch -> snapshot for today -> computed fields -> retention pruning.
    """
    metrics = build_store(grid, table_config, config)
    records = airtable.fetch_all(table_config['table_name'], table_config['view_id'])

    metrics.retained.ingest_snapshot(records, overwrite_today=True, today=today)
    metrics.add_computed_fields(get_today_string(today), table_config.get('computed_fields', []))
    metrics.retained.prune_older_than(config.get('retention_days', DEFAULT_RETENTION_DAYS), today=today)

# --- MAIN DISPATCHER ---

def main_process(smart, airtable, config, today=None, open_grid=SmartsheetGrid.open_or_create):
    print("--- Starting Backup Process ---")
    validate_config(config)

    failed_tables = []
    for table_config in config['tables']:
        sheet_name = table_config.get('sheet_name') or table_config['table_name']
        print(f"\n{'='*80}")
        print(f"Backing up table: '{table_config['table_name']}' (view: {table_config['view_id']})")
        print(f"Destination sheet: '{sheet_name}'")
        print(f"{'='*80}")

        try:
            grid = open_grid(smart, sheet_name)
            backup_table(grid, airtable, table_config, config, today=today)
        except Exception as e:
            print(f"ERROR backing up table '{table_config['table_name']}'. Error: {e}")
            traceback.print_exc()
            failed_tables.append(table_config['table_name'])

    print("\n" + "="*80)
    if failed_tables:
        print(f"--- Backup Process Complete with errors in: {', '.join(failed_tables)} ---")
    else:
        print("--- Backup Process Complete ---")
    print("="*80)
    return failed_tables

def main(config=BACKUP_CONFIG):
    """Runs the backup with credentials from the environment. Returns the exit status."""
    access_token = os.getenv('SMARTSHEET_ACCESS_TOKEN')
    if not access_token:
        raise ValueError("FATAL ERROR: SMARTSHEET_ACCESS_TOKEN environment variable not found.")
    airtable_api_key = os.getenv('AIRTABLE_API_KEY')
    if not airtable_api_key:
        raise ValueError("FATAL ERROR: AIRTABLE_API_KEY environment variable not found.")
    airtable_base_id = os.getenv('AIRTABLE_BASE_ID')
    if not airtable_base_id:
        raise ValueError("FATAL ERROR: AIRTABLE_BASE_ID environment variable not found.")

    smartsheet_client = smartsheet.Smartsheet(access_token)
    smartsheet_client.errors_as_exceptions(True)
    airtable_client = AirtableClient(airtable_api_key, airtable_base_id)
    failed_tables = main_process(smartsheet_client, airtable_client, config)
    # Non-zero when any table failed.
    return 1 if failed_tables else 0

if __name__ == '__main__':
    sys.exit(main())
