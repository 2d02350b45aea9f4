"""Core (UI-agnostic) marketplace reporting logic.

This package contains:
- SKU mapping table and canonicalizer (platform SKU -> local SKU)
- upload row ingestion into UploadRecords
- aggregation, parent rollups and warehouse distribution
- the sales projection engine
- the sqlite record store
- page payloads and chart helpers (Altair -> Vega-Lite spec dict)
"""
