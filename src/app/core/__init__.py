"""
Core module - process settings, database session, Redis client, staff auth,
rate limiting, the background scheduler and the mail/blob storage adapters
the admissions module is wired with.
"""
