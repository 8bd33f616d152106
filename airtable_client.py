# airtable_client.py

import time
from urllib.parse import quote

import requests

AIRTABLE_API_URL = 'https://api.airtable.com/v0'

# Pause between page requests so we don't get rate limited by Airtable
# (5 requests per second per base).
PAGE_DELAY_SECONDS = 0.2

RECORD_ID_FIELD = 'id'

def flatten_record(airtable_record):
    """
    Converts an Airtable record ({'id': ..., 'fields': {...}}) into a flat
    {field: value} dict. The record ID is kept under 'id'.
    """
    record = {RECORD_ID_FIELD: airtable_record['id']}
    record.update(airtable_record.get('fields', {}))
    return record

class AirtableClient:

    def __init__(self, api_key, base_id, timeout=30):
        self.api_key = api_key
        self.base_id = base_id
        self.timeout = timeout

    def fetch_all(self, table_name, view_id):
        """
        Retrieves every record in the table's view, following Airtable's
        pagination offset until the last page.
        Returns a list of flat records.
        """
        url = f"{AIRTABLE_API_URL}/{self.base_id}/{quote(table_name, safe='')}"
        headers = {'Authorization': f"Bearer {self.api_key}"}

        records = []
        offset = None
        while True:
            params = {'view': view_id}
            if offset:
                params['offset'] = offset
            response = requests.get(url, headers=headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
            records.extend(flatten_record(r) for r in payload.get('records', []))

            # Airtable omits the offset once the final page has been returned.
            offset = payload.get('offset')
            if not offset:
                break
            time.sleep(PAGE_DELAY_SECONDS)

        print(f"  Fetched {len(records)} records from Airtable table '{table_name}'.")
        return records
