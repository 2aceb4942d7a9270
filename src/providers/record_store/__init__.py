"""Recipe record store adapters implementing IRecordStoreProvider."""

from src.providers.record_store.airtable_provider import AirtableRecordStore

__all__ = ["AirtableRecordStore"]
