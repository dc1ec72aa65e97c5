"""auth/ -- Cookie-backed stateless sessions for the SecureToken demo.

Layer rule: auth/ imports from securetoken/, core/ and third-party libraries.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
