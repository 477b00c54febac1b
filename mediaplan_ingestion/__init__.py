"""
mediaplan_ingestion -- spreadsheet import and reconciliation.

Adapters read plan files, the field mapper turns headers and cells into
typed logical fields, the resolver reconciles names against the master-data
taxonomy, the validation engine tiers issues, and the scoped import
executor replaces one (country, period, business unit) scope atomically.
Entry point: ``mediaplan_ingestion.services.ImportPipeline``.
"""
