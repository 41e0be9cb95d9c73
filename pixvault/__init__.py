"""pixvault - image asset ingestion, catalog and thumbnail cache."""
