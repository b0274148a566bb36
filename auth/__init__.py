"""auth/ -- Identity and authorization package for Keeper.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, vault/, or service/.
api/ and service/ import from auth/, not the other way around.
"""
