"""
One-way Airtable -> inventario_cache jobs. Run from scripts/ (cron or the
built-in scheduler), never inside a web request.
"""
