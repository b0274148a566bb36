"""
service/ -- The five shared Keeper operations, implemented once.

Both transport adapters (api/routes/keeper.py and api/routes/rpc.py) are pure
translation layers over service.keeper.KeeperService.
"""
