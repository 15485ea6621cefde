from ingestion.csv_import import export, ingest

__all__ = ["ingest", "export"]
