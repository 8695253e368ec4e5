"""
Services module for business logic separation.

This module contains the link service, the link stores, the rate governor and
the short code generator, keeping them separate from API endpoints and
database models.
"""
