"""
DeployWatch - Error Taxonomy

Probe and parse failures are never raised: they degrade to "offline" or
"no data". Only caller input errors and storage failures reach the caller.
"""


class DeployWatchError(Exception):
    """Base class for errors surfaced by the monitoring core"""


class InputError(DeployWatchError, ValueError):
    """Malformed caller input (bad URL, mismatched arrays, missing field)"""


class EndpointNotFound(InputError):
    """Referenced apiId is not registered"""
    
    def __init__(self, api_id: int):
        super().__init__(f"API {api_id} is not registered")
        self.api_id = api_id


class StorageFailure(DeployWatchError):
    """Ledger or endpoint registry read/write failed"""
