"""auth/ -- Authentication core for tokengate.

Credential store, password hashing, token service, lockout policy and the
session protocol that ties them together.

Layer rule: auth/ may import from core/ and third-party libraries.
It does NOT import from api/ or client/.
api/ imports from auth/, not the other way around.
"""
