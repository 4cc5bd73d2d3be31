# WORKFLOW: ETL package for price archive ingestion and export.
# Used by: Price API endpoints, command line ingestion
# Modules include:
# 1. archive.py - Iterate CSV members of ZIP and TAR archives
# 2. validators.py - Validate one CSV row into a PriceRecord
# 3. sink.py - Insert records inside a single transaction
# 4. ingest_archive.py - Drive archive -> CSV -> validator -> sink, aggregate counters
# 5. export_csv.py - Export stored prices as data.csv inside a ZIP archive
#
# ETL flow: Archive -> CSV members -> Validated records -> prices table -> CSV/ZIP export

"""
ETL package for price archive ingestion and export.
"""
