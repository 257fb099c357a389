"""Pure domain logic (no database or HTTP access).

Functions in this package take already-fetched rows and return plain values,
so they can be unit tested without a running application.
"""
