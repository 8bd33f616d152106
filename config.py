# config.py

# ============================================================================
# AIRTABLE BACKUP CONFIGURATION
# ============================================================================
# This configuration defines which Airtable tables are backed up to
# Smartsheet, which fields are kept, and which metrics are computed.
#
# ARCHITECTURE OVERVIEW:
# - tables: Array of Airtable table configurations, one destination sheet each
# - Destination sheets are named after the Airtable table unless
#   'sheet_name' is given. Missing sheets are created on the first run.
#
# SNAPSHOT STRATEGY:
# - Every run appends one row per Airtable record, stamped with today's
#   date (YYYY-MM-DD) in the 'backup_date_field' column.
# - Re-running on the same day replaces that day's rows instead of
#   duplicating them.
# - Snapshots older than 'retention_days' days are deleted at the end of
#   each run. Rows with an unreadable date are never deleted.
#
# FIELD SELECTION:
# - fields_to_backup: Only these Airtable fields are copied. Fields listed
#   here but missing from a record are written as empty cells.
# - 'id' is the Airtable record ID. Keep it in the list when the table has
#   computed fields, since metrics are grouped by it.
#
# COMPUTED FIELDS:
# - Each entry adds a column counting, per record ID, how many retained
#   snapshots had 'source_field' equal to one of 'match_values'.
#   With daily backups, this is the number of days spent in those values.
# - Values are written only into the rows of the current snapshot.
# ============================================================================

BACKUP_CONFIG = {
    # Days of snapshots to keep
    'retention_days': 60,
    # Column holding the snapshot date
    'backup_date_field': 'Backup Date',
    # Column identifying a record across snapshots
    'group_by_key': 'id',
    'tables': [
        {
            'table_name': 'Opportunities',
            'view_id': 'viwOpportunitiesAll',
            'fields_to_backup': [
                'id',
                'Name',
                'Stage',
                'Organization',
                'Created',
            ],
            'computed_fields': [
                {
                    'name': 'Days waiting',
                    'source_field': 'Stage',
                    'match_values': ['Project form submitted'],
                },
                {
                    'name': 'Days in Verification',
                    'source_field': 'Stage',
                    'match_values': ['Project verification'],
                },
                {
                    'name': 'Days waiting or in verification',
                    'source_field': 'Stage',
                    'match_values': ['Project form submitted', 'Project verification'],
                },
            ],
        },
        {
            'table_name': 'Organizations',
            'view_id': 'viwOrganizationsAll',
            'fields_to_backup': [
                'id',
                'Name',
                'Stage',
                'Country',
            ],
            'computed_fields': [
                {
                    'name': 'Days waiting for verification',
                    'source_field': 'Stage',
                    'match_values': ['Waiting for verification'],
                },
            ],
        },
        {
            # Backed up without metrics; the sheet name differs from the table.
            'table_name': 'Volunteers',
            'view_id': 'viwVolunteersAll',
            'sheet_name': 'Volunteers Backup',
            'fields_to_backup': [
                'Name',
                'Skills',
                'Status',
            ],
        },
    ]
}
