"""
Bulk import of raw daily facts.

Modules
-------
record_csv : parse_record_csv() — CSV → validated DailyRecord list.
"""
