"""
DeployWatch - deployment version tracking across environments.
"""
__version__ = "1.0.0"
