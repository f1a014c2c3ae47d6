"""
Authentication application.

Owns the account rows the billing engine points at. Token issuance and
login flows live in the external auth service.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Name and cached Stripe customer handle

Usage:
    from authentication.models import User, Profile
"""
