"""
vault/ -- Owner-scoped credential storage for Keeper.

Layer rule: vault/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, auth/, or service/.
"""
