"""auth/ -- Authentication core for Gatekeeper.

Password hashing, dual-token issuance, refresh-token rotation, and the
request-authorization check.

Layer rule: auth/ imports stdlib, third-party libraries, and core/config only.
It does NOT import from api/ or media/. api/ imports from auth/, not the other
way around.
"""
