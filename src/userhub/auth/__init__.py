"""Authentication and authorization.

Learn: Three building blocks, each usable on its own:
1. password.py → bcrypt hashing plus generators for initial secrets
2. attempts.py → bounded, time-aware failed-login counter
3. jwt.py → signed, time-bounded tokens carrying the authority set

roles.py maps a role to its authorities; dependencies.py exposes the
FastAPI side (bearer token → CurrentIdentity, authority checks).
"""
