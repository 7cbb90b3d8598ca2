"""
FastAPI RESTful API for the Golib book catalogue.

This package provides a small resource API backed by MongoDB:
- Create, read, update, delete and list books
- Collision-resistant identifier generation
- Per-request deadlines and cancellation for store calls
- Health reporting for the document store
"""
