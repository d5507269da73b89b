"""auth/ -- Authentication core for authcore.

Layer rule: auth/ imports only stdlib + third-party libraries and auth/ itself.
It does NOT import from api/ or core/. cache/ is referenced for typing only.
api/ imports from auth/, not the other way around.
"""
