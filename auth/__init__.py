"""auth/ -- Authentication and authorization core for AssetDesk.

Layer rule: auth/ imports stdlib, third-party libraries, and core.config.
It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
