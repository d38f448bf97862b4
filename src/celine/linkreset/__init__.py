"""CELINE identity link reset.

Purges the identities of a federated realm and removes the federation links
that point at it from an application realm, so that the next login through
the identity provider re-creates fresh links.
"""

__version__ = "0.1.0"
