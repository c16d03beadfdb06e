"""
FastAPI service for timed mock tests: session lifecycle, scoring and access
control over Firestore, SQL or in-memory storage.
"""
